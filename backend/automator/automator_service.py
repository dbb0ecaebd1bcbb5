"""
Automator Service — the persistence adapter and draft/publish lifecycle.

Sits between the in-memory builder and an ``AutomatorStore``. All
methods are coroutines; the store is blocking, so calls run in a
worker thread. Any store failure is raised as ``PersistenceError``.

Lifecycle::

    create ──► draft ──publish──► published
                 ▲                    │
                 └─────unpublish──────┘

Saving overwrites the single live definition (last write wins). There
is no version history; publishing republishes the latest save.
"""

from __future__ import annotations

import asyncio
import uuid
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from automator.automator_model import (
    Automator,
    AutomatorDefinition,
    AutomatorStatus,
    ValidationIssue,
    ValidationResult,
)
from automator.automator_store import AutomatorStore, Document, get_automator_store
from automator.config import AutomatorConfig, get_automator_config
from automator.errors import (
    AutomatorNotFound,
    MalformedDefinition,
    NameConflict,
    PersistenceError,
    ValidationFailed,
)
from automator.graph_model import Graph
from automator.graph_validator import validate
from automator.templates import TEMPLATES

logger = getLogger(__name__)

T = TypeVar("T")


class AutomatorService:
    """Load, save, publish and unpublish automators.

    Usage::

        service = AutomatorService(InMemoryAutomatorStore())
        automator = await service.create("team-1", "Intake", actor_id="u1")
        await service.save(automator.id, definition, actor_id="u1")
        await service.publish(automator.id, actor_id="u1")
    """

    def __init__(
        self,
        store: Optional[AutomatorStore] = None,
        config: Optional[AutomatorConfig] = None,
    ) -> None:
        self._store = store or get_automator_store()
        self._config = config or get_automator_config()

    # ========================================================================
    # Reads
    # ========================================================================

    async def load(self, automator_id: str) -> Automator:
        """Fetch an automator for editing.

        A missing or malformed stored definition is replaced with the
        empty graph and reported on ``Automator.definition_error``.

        Raises:
            AutomatorNotFound: if no automator has this id.
            PersistenceError: if the store fails or the envelope is unreadable.
        """
        document = await self._call(self._store.get, automator_id)
        if document is None:
            raise AutomatorNotFound(automator_id)
        return self._parse(document)

    async def get(self, automator_id: str) -> Optional[Automator]:
        """Like ``load`` but returns ``None`` when the id is unknown."""
        try:
            return await self.load(automator_id)
        except AutomatorNotFound:
            return None

    async def list_for_team(self, team_id: str) -> List[Automator]:
        """All automators of a team, most recently updated first."""
        documents = await self._call(self._store.list_all)
        automators: List[Automator] = []
        for document in documents:
            if document.get("team_id") != team_id:
                continue
            try:
                automators.append(self._parse(document))
            except PersistenceError as e:
                logger.warning(f"Skipping unreadable automator {document.get('id')}: {e}")
        automators.sort(key=lambda a: a.updated_at, reverse=True)
        return automators

    async def is_name_unique(
        self,
        team_id: str,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Case-insensitive name check within a team."""
        wanted = name.strip().casefold()
        for automator in await self.list_for_team(team_id):
            if automator.id == exclude_id:
                continue
            if automator.name.strip().casefold() == wanted:
                return False
        return True

    # ========================================================================
    # Writes
    # ========================================================================

    async def create(
        self,
        team_id: str,
        name: str,
        actor_id: str,
        description: Optional[str] = None,
        definition: Optional[AutomatorDefinition] = None,
        template: Optional[str] = None,
    ) -> Automator:
        """Create a new draft automator, optionally seeded from a template."""
        if definition is None and template is not None:
            factory = TEMPLATES.get(template)
            if factory is None:
                raise ValueError(f"Unknown automator template: {template}")
            definition = factory()

        automator = Automator(
            id=str(uuid.uuid4()),
            team_id=team_id,
            name=name,
            description=description or None,
            status=AutomatorStatus.DRAFT,
            definition=definition or AutomatorDefinition.empty(),
            version=1,
            created_by=actor_id,
            updated_by=actor_id,
        )
        await self._write(automator)
        logger.info(f"Automator created: {automator.name} ({automator.id})")
        return automator

    async def update(
        self,
        automator_id: str,
        actor_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Automator:
        """Rename an automator and/or change its description.

        ``None`` leaves a field as it is; an empty description clears it.

        Raises:
            ValueError: if ``name`` is blank.
            NameConflict: if another automator of the team has ``name``.
        """
        document = await self._call(self._store.get, automator_id)
        if document is None:
            raise AutomatorNotFound(automator_id)
        automator = self._parse(document)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValueError("Automator name cannot be empty")
            if not await self.is_name_unique(automator.team_id, name, exclude_id=automator.id):
                raise NameConflict(automator.team_id, name)
            automator.name = name
        if description is not None:
            automator.description = description or None

        automator.touch(actor_id)
        updated = automator.to_document()
        # An unreadable stored definition is kept for a later save to replace.
        if automator.definition_error:
            updated.pop("definition", None)
            if "definition" in document:
                updated["definition"] = document["definition"]
        await self._call(self._store.put, updated)
        logger.info(f"Automator updated: {automator.name} ({automator.id})")
        return automator

    async def save(
        self,
        automator_id: str,
        definition: AutomatorDefinition,
        actor_id: str,
    ) -> Automator:
        """Overwrite the stored definition (no conflict detection).

        Raises:
            MalformedDefinition: if ids collide or an edge dangles.
        """
        Graph.from_definition(definition)
        automator = await self.load(automator_id)
        automator.definition = definition
        automator.definition_error = None
        automator.touch(actor_id)
        await self._write(automator)
        logger.info(
            f"Automator saved: {automator.name} ({automator.id}), "
            f"{len(definition.nodes)} nodes, {len(definition.edges)} edges"
        )
        return automator

    async def publish(self, automator_id: str, actor_id: str) -> Automator:
        """Mark the automator published.

        Raises:
            ValidationFailed: if the stored definition is not valid
                (unless ``require_valid_to_publish`` is off).
        """
        automator = await self.load(automator_id)
        if self._config.require_valid_to_publish:
            result = self.validate(automator)
            if not result.valid:
                logger.info(
                    f"Publish refused for {automator.id}: {len(result.errors)} validation errors"
                )
                raise ValidationFailed(result.errors)

        automator.status = AutomatorStatus.PUBLISHED
        automator.version += 1
        automator.touch(actor_id)
        automator.published_at = automator.updated_at
        await self._write(automator)
        logger.info(f"Automator published: {automator.name} ({automator.id}) v{automator.version}")
        return automator

    async def unpublish(self, automator_id: str, actor_id: str) -> Automator:
        """Return the automator to draft. Always permitted."""
        automator = await self.load(automator_id)
        automator.status = AutomatorStatus.DRAFT
        automator.touch(actor_id)
        await self._write(automator)
        logger.info(f"Automator unpublished: {automator.name} ({automator.id})")
        return automator

    async def delete(self, automator_id: str) -> bool:
        deleted = await self._call(self._store.delete, automator_id)
        if deleted:
            logger.info(f"Automator deleted: {automator_id}")
        return deleted

    async def duplicate(self, automator_id: str, new_name: str, actor_id: str) -> Automator:
        """Copy an automator's definition into a new draft."""
        original = await self.load(automator_id)
        return await self.create(
            team_id=original.team_id,
            name=new_name,
            actor_id=actor_id,
            description=original.description,
            definition=original.definition,
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def validate(automator: Automator) -> ValidationResult:
        if automator.definition_error:
            return ValidationResult(
                valid=False,
                errors=[ValidationIssue(
                    message=f"Stored definition is unreadable: {automator.definition_error}",
                )],
            )
        return validate(Graph.from_definition(automator.definition))

    def _parse(self, document: Document) -> Automator:
        """Build an ``Automator``, recovering a bad definition as empty."""
        envelope: Dict[str, Any] = {k: v for k, v in document.items() if k != "definition"}
        raw_definition = document.get("definition")

        definition_error: Optional[str] = None
        if raw_definition is None:
            definition_error = "Stored definition is missing"
            definition = AutomatorDefinition.empty()
            logger.warning(
                f"Automator {document.get('id')} has no stored definition; "
                "substituting an empty graph"
            )
        else:
            try:
                definition = Graph.from_document(raw_definition).to_definition()
            except MalformedDefinition as e:
                definition_error = str(e)
                definition = AutomatorDefinition.empty()
                logger.warning(
                    f"Automator {document.get('id')} has a malformed definition; "
                    f"substituting an empty graph: {e}"
                )

        try:
            automator = Automator.model_validate(envelope)
        except ValidationError as e:
            raise PersistenceError(f"Stored automator {document.get('id')} is unreadable: {e}") from e
        automator.definition = definition
        automator.definition_error = definition_error
        return automator

    async def _write(self, automator: Automator) -> None:
        await self._call(self._store.put, automator.to_document())

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except (OSError, ValueError) as e:
            logger.error(f"Automator store failure in {fn.__name__}: {e}")
            raise PersistenceError(str(e)) from e


# ── Singleton ──

_service_instance: Optional[AutomatorService] = None


def get_automator_service() -> AutomatorService:
    """Return the global AutomatorService singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = AutomatorService()
    return _service_instance
