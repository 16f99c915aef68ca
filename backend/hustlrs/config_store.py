"""Config store: env, then an optional YAML/JSON file, then pushed overrides."""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a flat YAML or JSON mapping. Missing or malformed files yield {}."""
    if not path.exists():
        logger.debug("Config file not found: %s (using env/defaults)", path)
        return {}
    try:
        raw = path.read_text()
    except OSError as e:
        logger.warning("Could not read config file %s: %s", path, e)
        return {}
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            logger.warning("Invalid YAML in %s: %s", path, e)
            return {}
    elif suffix == ".json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s", path, e)
            return {}
    else:
        logger.warning("Config file must be .yaml, .yml, or .json: %s", path)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file must contain a mapping; got %s", type(data).__name__)
        return {}
    return data


class ConfigStore:
    """
    Current Settings built from env, config file and runtime overrides.

    Precedence: overrides > config file > env > defaults.
    """

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._file_path: Optional[Path] = None
        if config_file_path:
            self._file_path = Path(config_file_path).expanduser().resolve()
        self._overrides: dict[str, Any] = {}
        self._current: Optional[Any] = None
        self._lock = threading.RLock()

    def _build(self) -> Any:
        env_dict = self._settings_cls().model_dump()
        file_dict = _read_config_file(self._file_path) if self._file_path else {}
        return self._settings_cls(**{**env_dict, **file_dict, **self._overrides})

    def load_initial(self) -> None:
        with self._lock:
            self._current = self._build()
            if self._file_path and self._file_path.exists():
                logger.info("Loaded config file (master over env): %s", self._file_path)

    def get_settings(self) -> Any:
        with self._lock:
            if self._current is None:
                self.load_initial()
            return self._current

    def update(self, overrides: dict[str, Any]) -> None:
        """Merge overrides and rebuild. The previous snapshot is kept if validation fails."""
        with self._lock:
            if self._current is None:
                self.load_initial()
            try:
                self._current = self._settings_cls(
                    **{**self._current.model_dump(), **self._overrides, **overrides}
                )
            except ValueError as e:
                logger.warning("Config update rejected; keeping previous config: %s", e)
                return
            self._overrides.update(overrides)

    def reload_from_file(self) -> None:
        with self._lock:
            try:
                self._current = self._build()
            except ValueError as e:
                logger.warning("Config reload rejected; keeping previous config: %s", e)

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()
            self._current = self._build()
