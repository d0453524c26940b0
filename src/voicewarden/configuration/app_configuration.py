from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, Mapping
import yaml

from voicewarden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


DEFAULT_SETTINGS: Dict[str, Any] = {
    # Core
    "enabled": True,
    "guild_id": "",
    "category_id": "",
    "creation_channel_id": "",
    "bot_id": "",
    "local_channel_id": "",
    "enable_debug": False,
    # Queue
    "queue_enabled": True,
    "queue_interval": 2,
    # Ownership / command templates
    "ownership_change_message": "✨ <@{user_id}> is now the owner of <#{channel_id}> (Reason: {reason})",
    "claim_command": "!v claim",
    "lock_command": "!v lock",
    "unlock_command": "!v unlock",
    "reset_command": "!v reset",
    "info_command": "!v info",
    "kick_command": "!v kick {user_id}",
    "ban_command": "!v ban {user_id}",
    "unban_command": "!v unban {user_id}",
    "permit_command": "!v permit {user_id}",
    "unpermit_command": "!v unpermit {user_id}",
    "set_size_command": "!v limit {size}",
    "set_channel_name_command": "!v name {name}",
    # Name rotation
    "channel_name_rotation_enabled": True,
    "channel_name_rotation_names": [],
    "channel_name_rotation_interval": 11,
    # Bans
    "ban_limit": 5,
    "ban_rotate_enabled": True,
    "ban_rotate_cooldown": 0,
    "ban_rotation_message": "♻️ Ban rotated: <@{user_id}> was unbanned to make room for <@{user_id_new}>",
    "ban_in_local_blacklist": True,
    # Role enforcement
    "ban_not_in_roles": True,
    "required_role_ids": [],
    "required_role_mode": "Any",
    # Whitelist / permits
    "local_user_whitelist": [],
    "permit_limit": 5,
    "permit_rotate_enabled": False,
    "permit_rotation_message": "♻️ Permit rotated: <@{user_id}> was unpermitted to make room for <@{user_id_new}>",
    # Blacklist
    "local_user_blacklist": [],
    # Remote operators
    "remote_operators_enabled": True,
    "external_command_prefix": "@",
    "remote_operator_list": [],
    # Vote banning
    "vote_ban_percentage": 50,
    "vote_ban_window_secs": 300,
    # Auto claim
    "auto_claim_disbanded": False,
    # Command cleanup
    "command_cleanup": True,
    "command_cleanup_delay": 1000,
}


class AppConfig:
    """Live, mutable settings store backed by ``./config/app_config.yml``.

    Values from the YAML file are overlaid on ``DEFAULT_SETTINGS``. Modules
    read values through ``get`` on every operation, so edits made with
    ``set``/``toggle`` (console, menu items) or ``reload`` take effect without
    a restart. Uses fcntl file locks for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path | None = None, overrides: Mapping[str, Any] | None = None) -> None:
        self.config_path = config_path
        self._overrides: Dict[str, Any] = dict(overrides or {})
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        if self.config_path is None:
            return {}
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if data is None:
                    return {}
                if not isinstance(data, dict):
                    logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the merged mapping.

        Defaults are applied first, then the file, then any constructor
        overrides. In-memory edits made with ``set`` are discarded.
        """
        merged = dict(DEFAULT_SETTINGS)
        merged.update(self.load_from_disk())
        merged.update(self._overrides)
        self._data = merged
        return self._data

    def save(self) -> bool:
        """Write the current settings back to the YAML file.

        Returns False (after logging) when there is no file path or the write fails.
        """
        if self.config_path is None:
            return False
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                yaml.safe_dump(self._data, f, allow_unicode=True, sort_keys=False)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            return True
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to save config %s: %s", self.config_path, exc)
            return False

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current settings mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it; use set(...) instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` if present, otherwise `default`."""
        return self._data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def toggle(self, key: str) -> bool:
        """Flip a boolean setting and return its new value."""
        value = not bool(self._data.get(key, False))
        self._data[key] = value
        return value

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def guild_id(self) -> str:
        return str(self._data.get("guild_id") or "")

    @property
    def category_id(self) -> str:
        return str(self._data.get("category_id") or "")

    @property
    def creation_channel_id(self) -> str:
        return str(self._data.get("creation_channel_id") or "")

    @property
    def bot_id(self) -> str:
        """ID of the external voice bot whose replies are classified."""
        return str(self._data.get("bot_id") or "")

    @property
    def local_channel_id(self) -> str:
        """Private channel that receives local-only notices and debug output."""
        return str(self._data.get("local_channel_id") or "")

    @property
    def debug_enabled(self) -> bool:
        return bool(self._data.get("enable_debug", False))

    @property
    def queue_enabled(self) -> bool:
        return self._data.get("queue_enabled") is not False

    @property
    def queue_interval(self) -> float:
        """Seconds between two queued sends; falls back to 2 when unset or invalid."""
        try:
            value = float(self._data.get("queue_interval") or 0)
        except (TypeError, ValueError):
            value = 0.0
        return value if value > 0 else 2.0
