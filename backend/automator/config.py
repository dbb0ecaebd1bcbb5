"""
Automator Configuration.

Controls where automator documents are stored, whether publishing
is gated on validation, and the canvas grid/zoom limits used by the
screen-to-flow transform.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

_DEFAULT_DIR = Path(__file__).parent.parent / "automators"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(raw: str, target: Any) -> Any:
    """Convert an environment string to the dataclass field's type."""
    if target in (bool, "bool"):
        return raw.strip().lower() in _TRUE_VALUES
    if target in (int, "int"):
        return int(raw)
    if target in (float, "float"):
        return float(raw)
    if target in (Path, "Path"):
        return Path(raw).expanduser()
    return raw


def read_env_defaults(env_map: Dict[str, str], dataclass_fields: Dict[str, Any]) -> Dict[str, Any]:
    """Collect constructor kwargs from environment variables.

    Only variables that are set (and non-empty) are returned, so the
    dataclass defaults apply for everything else.
    """
    values: Dict[str, Any] = {}
    for name, env_key in env_map.items():
        raw = os.environ.get(env_key)
        if raw is None or raw == "":
            continue
        values[name] = _coerce(raw, dataclass_fields[name].type)
    return values


@dataclass
class AutomatorConfig:
    """Automator builder settings."""

    storage_dir: Path = _DEFAULT_DIR
    require_valid_to_publish: bool = True
    snap_grid: int = 15
    min_zoom: float = 0.5
    max_zoom: float = 2.0

    _ENV_MAP = {
        "storage_dir": "AUTOMATOR_STORAGE_DIR",
        "require_valid_to_publish": "AUTOMATOR_REQUIRE_VALID_PUBLISH",
        "snap_grid": "AUTOMATOR_SNAP_GRID",
        "min_zoom": "AUTOMATOR_MIN_ZOOM",
        "max_zoom": "AUTOMATOR_MAX_ZOOM",
    }

    @classmethod
    def get_default_instance(cls) -> "AutomatorConfig":
        defaults = read_env_defaults(cls._ENV_MAP, {f.name: f for f in fields(cls)})
        return cls(**defaults)

    def clamp_zoom(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))


# ── Singleton ──

_config_instance: Optional[AutomatorConfig] = None


def get_automator_config() -> AutomatorConfig:
    """Return the global AutomatorConfig, read from the environment once."""
    global _config_instance
    if _config_instance is None:
        _config_instance = AutomatorConfig.get_default_instance()
    return _config_instance
