"""
Automator Store — raw document persistence for automators.

Stores each automator as one JSON document keyed by id. Documents are
returned as plain dicts, not parsed models, so that a stored definition
that no longer parses still reaches ``AutomatorService`` intact and can
be recovered there.

Two backends:
    JsonFileAutomatorStore — one ``<id>.json`` file per automator
    InMemoryAutomatorStore — dict-backed, for tests and previews
"""

from __future__ import annotations

import copy
import json
import threading
from abc import ABC, abstractmethod
from logging import getLogger
from pathlib import Path
from typing import Any, Dict, List, Optional

from automator.config import get_automator_config

logger = getLogger(__name__)

Document = Dict[str, Any]


class AutomatorStore(ABC):
    """Backing store contract. Methods may raise ``OSError`` or ``ValueError``."""

    @abstractmethod
    def get(self, automator_id: str) -> Optional[Document]:
        """Return the stored document, or ``None`` if absent."""

    @abstractmethod
    def put(self, document: Document) -> None:
        """Create or overwrite the document under ``document["id"]``."""

    @abstractmethod
    def delete(self, automator_id: str) -> bool:
        """Delete a document. Returns whether it existed."""

    @abstractmethod
    def list_all(self) -> List[Document]:
        """Return every stored document."""

    def exists(self, automator_id: str) -> bool:
        return self.get(automator_id) is not None


class JsonFileAutomatorStore(AutomatorStore):
    """Persist automator documents as JSON files."""

    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        self._dir = Path(storage_dir or get_automator_config().storage_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info(f"AutomatorStore initialized at {self._dir}")

    # ── CRUD ──

    def get(self, automator_id: str) -> Optional[Document]:
        path = self._path_for(automator_id)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def put(self, document: Document) -> None:
        path = self._path_for(document["id"])
        tmp = path.with_suffix(".json.tmp")
        with self._lock:
            tmp.write_text(json.dumps(document, indent=2), encoding="utf-8")
            tmp.replace(path)
        logger.debug(f"Automator document written: {path.name}")

    def delete(self, automator_id: str) -> bool:
        path = self._path_for(automator_id)
        with self._lock:
            if path.exists():
                path.unlink()
                logger.info(f"Automator deleted: {automator_id}")
                return True
        return False

    def list_all(self) -> List[Document]:
        documents: List[Document] = []
        for path in sorted(self._dir.glob("*.json")):
            try:
                documents.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable automator file {path.name}: {e}")
        return documents

    def exists(self, automator_id: str) -> bool:
        return self._path_for(automator_id).exists()

    # ── Internals ──

    def _path_for(self, automator_id: str) -> Path:
        # Sanitize ID for filesystem
        safe_id = "".join(c for c in automator_id if c.isalnum() or c in "-_")
        if not safe_id:
            raise ValueError(f"Invalid automator id: {automator_id!r}")
        return self._dir / f"{safe_id}.json"


class InMemoryAutomatorStore(AutomatorStore):
    """Keep documents in a dict. Returned documents are deep copies."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}
        self._lock = threading.Lock()

    def get(self, automator_id: str) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(automator_id)
            return copy.deepcopy(document) if document is not None else None

    def put(self, document: Document) -> None:
        with self._lock:
            self._documents[document["id"]] = copy.deepcopy(document)

    def delete(self, automator_id: str) -> bool:
        with self._lock:
            return self._documents.pop(automator_id, None) is not None

    def list_all(self) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._documents.values()]


# ── Singleton ──

_store_instance: Optional[AutomatorStore] = None


def get_automator_store() -> AutomatorStore:
    """Return the global file-backed AutomatorStore singleton."""
    global _store_instance
    if _store_instance is None:
        _store_instance = JsonFileAutomatorStore()
    return _store_instance
