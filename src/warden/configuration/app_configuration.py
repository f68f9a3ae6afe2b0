from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict

import yaml

from warden.datatypes.sanction_datatypes import SanctionKind
from warden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_RELATIVE_PATH = Path("config") / "app_config.yml"
CONFIG_PATH = CONFIG_RELATIVE_PATH.resolve()

DEFAULT_SWEEP_INTERVAL_SECONDS = 3600.0
DEFAULT_MAX_CONCURRENT_REVOCATIONS = 4
DEFAULT_MUTE_ROLE_NAME = "Muted"
DEFAULT_COMMAND_PREFIX = "!"
DEFAULT_COMMANDS_DOCUMENT = "data/commands.json"
DEFAULT_DATABASE_PATH = "data/app.db"


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers and typed properties with defaults for
    every setting Warden reads. A missing or unreadable file yields the
    defaults.
    """

    def __init__(self, config_path: Path = CONFIG_PATH) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.error("[APP CONFIGURATION] Config %s must be a mapping at the top level.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    def _positive_number(self, section: Dict[str, Any], key: str, default: float) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] %s=%r is not a number; using %s", key, value, default)
            return default
        if number <= 0:
            logger.warning("[APP CONFIGURATION] %s=%r must be positive; using %s", key, value, default)
            return default
        return number

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the cache and return it (empty dict on error)."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # Sanctions
    # --------------------------
    def sweep_interval(self, kind: SanctionKind) -> float:
        """Seconds between expiry sweeps for ``kind``. Default is one hour."""
        kind_section = self._section("sanctions").get(kind.value, {})
        if not isinstance(kind_section, dict):
            kind_section = {}
        return self._positive_number(kind_section, "sweep_interval_seconds", DEFAULT_SWEEP_INTERVAL_SECONDS)

    @property
    def max_concurrent_revocations(self) -> int:
        """Size of the worker pool revoking expired sanctions within one sweep."""
        return int(self._positive_number(
            self._section("sanctions"), "max_concurrent_revocations", DEFAULT_MAX_CONCURRENT_REVOCATIONS
        ))

    @property
    def mute_role_name(self) -> str:
        value = self._section("sanctions").get("mute_role_name") or DEFAULT_MUTE_ROLE_NAME
        return str(value)

    # --------------------------
    # Custom commands
    # --------------------------
    @property
    def custom_commands_path(self) -> Path:
        value = self._section("custom_commands").get("document_path") or DEFAULT_COMMANDS_DOCUMENT
        return Path(str(value))

    @property
    def command_prefix(self) -> str:
        value = self._section("custom_commands").get("prefix") or DEFAULT_COMMAND_PREFIX
        return str(value)

    # --------------------------
    # Database
    # --------------------------
    @property
    def database_path(self) -> Path:
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value))
