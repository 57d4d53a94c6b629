"""Layered configuration: defaults < env < config file < runtime overrides.

The config file is YAML or JSON. Runtime overrides let staff retune moderation
vocabulary and business limits without a deploy; they live in memory only and
are lost on restart.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

logger = logging.getLogger(__name__)

_LOADERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def read_config_file(path: Path) -> dict[str, Any]:
    """Mapping from the file, or {} when the file is absent or unusable (logged)."""
    if not path.exists():
        logger.debug("Config file not found: %s (using env/defaults)", path)
        return {}
    loader = _LOADERS.get(path.suffix.lower())
    if loader is None:
        logger.warning("Config file must be .yaml, .yml or .json: %s", path)
        return {}
    try:
        data = loader(path.read_text())
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        logger.warning("Could not load config file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a mapping, got %s", path, type(data).__name__)
        return {}
    return data


class ConfigStore:
    """Builds and caches the Settings instance from its layers."""

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._file_path = Path(config_file_path).expanduser().resolve() if config_file_path else None
        self._overrides: dict[str, Any] = {}
        self._current: Optional[Any] = None
        self._lock = threading.RLock()

    @property
    def overrides(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._overrides)

    def _build(self, overrides: dict[str, Any]) -> Any:
        merged = self._settings_cls().model_dump()
        if self._file_path is not None:
            merged.update(read_config_file(self._file_path))
        merged.update(overrides)
        return self._settings_cls(**merged)

    def load_initial(self) -> None:
        with self._lock:
            self._current = self._build(self._overrides)
            if self._file_path is not None and self._file_path.exists():
                logger.info("Loaded config file: %s", self._file_path)

    def get_settings(self) -> Any:
        with self._lock:
            if self._current is None:
                self.load_initial()
            return self._current

    def update(self, overrides: dict[str, Any], allowed: Optional[Iterable[str]] = None) -> Any:
        """Apply overrides and return the new Settings.

        Unknown keys (or keys outside ``allowed``) raise ValueError; invalid values
        raise pydantic's ValidationError. Either way the previous settings stay.
        """
        known = set(self._settings_cls.model_fields)
        permitted = known if allowed is None else known & set(allowed)
        rejected = sorted(set(overrides) - permitted)
        if rejected:
            raise ValueError(f"Settings cannot be overridden at runtime: {', '.join(rejected)}")
        with self._lock:
            pending = {**self._overrides, **overrides}
            self._current = self._build(pending)
            self._overrides = pending
        logger.info("Config overrides applied: %s", sorted(overrides))
        return self._current

    def reload_from_file(self) -> Any:
        """Re-read the config file; overrides stay on top."""
        with self._lock:
            self._current = self._build(self._overrides)
            return self._current

    def clear_overrides(self) -> Any:
        with self._lock:
            self._overrides = {}
            self._current = self._build({})
        logger.info("Config overrides cleared")
        return self._current
