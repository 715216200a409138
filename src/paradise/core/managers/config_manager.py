# src/paradise/core/managers/config_manager.py
import json
import logging
from typing import Any, Dict, List, Optional

from paradise.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

_TRUE_WORDS = ("1", "true", "yes", "on")


def _cast_like(current: Any, value: Any) -> Any:
    """Casts `value` to the type of the setting it replaces; strings parse as booleans where needed."""
    if current is None or isinstance(value, type(current)):
        return value
    if isinstance(current, bool):
        return str(value).strip().lower() in _TRUE_WORDS
    return type(current)(value)


class ConfigManager:
    """
    Process-wide holder of the engine's tunable defaults from settings.json.
    Analysis runs never read it directly: AnalysisConfig.from_settings()
    snapshots the values into a validated, immutable config.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._config = {}
            instance.reset()
            cls._instance = instance
        return cls._instance

    def get_all(self) -> Dict[str, Any]:
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """Dotted lookup, e.g. 'completeness.floor'. Missing or null values yield `default`."""
        node: Any = self._config
        for part in key_path.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Overrides one setting in memory, e.g. ('fuzzy.min_distance', '3').
        The value takes the type of the setting it replaces when it can.
        """
        *parents, leaf = key_path.split('.')
        section = self._section(parents)
        if section is None:
            return False
        try:
            value = _cast_like(section.get(leaf), value)
        except (ValueError, TypeError):
            logger.warning(f"Setting '{key_path}' keeps the uncast value {value!r}.")
        section[leaf] = value
        logger.info(f"Setting '{key_path}' = {value!r}")
        return True

    def reset(self):
        """Reloads settings.json, discarding in-memory overrides."""
        path = PathUtils.get_settings_file()
        if not path.exists():
            logger.warning(f"No settings file at {path}; every setting falls back to its default.")
            self._config = {}
            return
        try:
            self._config = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not load {path}: {e}", exc_info=True)
            self._config = {}

    def _section(self, parents: List[str]) -> Optional[Dict[str, Any]]:
        section = self._config
        for part in parents:
            section = section.setdefault(part, {})
            if not isinstance(section, dict):
                logger.error(f"Cannot set below '{part}': it holds a value, not a section.")
                return None
        return section


# Shared by the whole package.
config_manager = ConfigManager()
