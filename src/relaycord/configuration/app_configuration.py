from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from relaycord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_PREFIX = "[GC]"
DEFAULT_SUFFIX = "• {server}"


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml`` and exposes typed
    shortcuts for the relay and proxy settings. Every shortcut falls back to a
    built-in default, so a missing or partial file still yields a usable
    configuration.
    """

    def __init__(self, config_path: Path) -> None:
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
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        value = self._section("database").get("path") or "./data/relaycord.db"
        return Path(str(value)).resolve()

    @property
    def database_write_wait(self) -> float:
        """Seconds a write may wait for the write lock before the store reports an outage."""
        return float(self._section("database").get("write_wait_seconds", 10.0))

    @property
    def database_busy_timeout_ms(self) -> int:
        return int(self._section("database").get("busy_timeout_ms", 5000))

    @property
    def default_message_prefix(self) -> str:
        """Bracketed prefix of the default relay display name."""
        value = self._section("global_chat").get("default_prefix")
        return DEFAULT_PREFIX if value is None else str(value)

    @property
    def default_message_suffix(self) -> str:
        value = self._section("global_chat").get("default_suffix")
        return DEFAULT_SUFFIX if value is None else str(value)

    @property
    def max_display_name_length(self) -> int:
        """Webhook usernames are capped by Discord at 80 characters."""
        return int(self._section("global_chat").get("max_display_name_length", 80))

    @property
    def max_content_length(self) -> int:
        return int(self._section("global_chat").get("max_content_length", 2000))

    @property
    def max_attachments(self) -> int:
        return int(self._section("global_chat").get("max_attachments", 5))

    @property
    def global_chat_webhook_name(self) -> str:
        return str(self._section("global_chat").get("webhook_name", "Relaycord GlobalChat"))

    @property
    def notice_display_name(self) -> str:
        """Display name used for moderation and rules notices."""
        return str(self._section("global_chat").get("notice_display_name", "Global Chat"))

    @property
    def proxy_indicator_text(self) -> str:
        return str(self._section("proxy").get("indicator_text", " `[proxied]`"))

    @property
    def ignored_prefixes(self) -> List[str]:
        """Message prefixes treated as commands and never proxied or relayed."""
        value = self._section("proxy").get("ignored_prefixes", ["/", "!"])
        if not isinstance(value, list):
            return ["/", "!"]
        return [str(item) for item in value if item]

    @property
    def proxy_webhook_name(self) -> str:
        return str(self._section("proxy").get("webhook_name", "Relaycord Proxy"))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
