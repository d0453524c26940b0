"""Local blacklist of users who are removed from owned channels on sight."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.util.lists import dedupe, get_user_id_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("blacklist")

SETTING_KEY = "local_user_blacklist"


class BlacklistModule(Module):
    name = "BlacklistModule"
    description = "Maintains a local blacklist of users."

    def init(self, context: AppContext) -> None:
        super().init(context)
        logger.info("[BLACKLIST] Initializing with %d user(s)", len(self.get_blacklist()))

    def get_blacklist(self) -> list[str]:
        return get_user_id_list(self.context.settings.get(SETTING_KEY))

    def set_blacklist(self, user_ids: Iterable[str]) -> None:
        settings = self.context.settings
        settings.set(SETTING_KEY, dedupe(user_ids))
        settings.save()

    def is_blacklisted(self, user_id: str) -> bool:
        return user_id in self.get_blacklist()

    def blacklist_users(self, user_ids: Iterable[str], channel_id: str | None = None) -> list[str]:
        """Add users; returns the ones that were not listed before."""
        current = self.get_blacklist()
        added = [uid for uid in dedupe(user_ids) if uid and uid not in current]
        if not added:
            return []
        self.set_blacklist([*current, *added])
        for user_id in added:
            self.context.notifier.send_debug(f"User <@{user_id}> added to local blacklist.", channel_id)
        return added

    def unblacklist_users(self, user_ids: Iterable[str], channel_id: str | None = None) -> list[str]:
        """Remove users; returns the ones that were actually listed."""
        current = self.get_blacklist()
        removed = [uid for uid in dedupe(user_ids) if uid in current]
        if not removed:
            return []
        self.set_blacklist([uid for uid in current if uid not in removed])
        for user_id in removed:
            self.context.notifier.send_debug(f"User <@{user_id}> removed from local blacklist.", channel_id)
        return removed

    def get_user_menu_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem | None]:
        if user_id == self.context.me:
            return []
        listed = self.is_blacklisted(user_id)

        def toggle() -> None:
            if listed:
                self.unblacklist_users([user_id], channel_id)
            else:
                self.blacklist_users([user_id], channel_id)

        return [MenuItem(item_id=f"blacklist-{user_id}", label="Blacklisted", checked=listed, action=toggle)]
