"""
Whitelisted and temporarily permitted users.

Whitelisted users are exempt from every automated enforcement action: the
module marks their joins as allowed before any enforcing module sees them.
Permits are forwarded to the external bot and mirrored in the local actor's
member config; when ``permit_rotate_enabled`` is on and the list reaches
``permit_limit``, the oldest permit is revoked to make room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.datatypes.event_datatypes import CoreEvent, UserJoinedOwnedChannel
from voicewarden.util.lists import dedupe, get_user_id_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("whitelist")

SETTING_KEY = "local_user_whitelist"
DEFAULT_PERMIT_LIMIT = 5


class WhitelistModule(Module):
    name = "WhitelistModule"
    description = "Manages whitelisted and temporarily permitted users."

    def __init__(self) -> None:
        super().__init__()
        self._unsubscribe: Callable[[], None] | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._unsubscribe = context.registry.on(CoreEvent.USER_JOINED_OWNED_CHANNEL, self._on_user_joined)
        logger.info("[WHITELIST] Initializing with %d user(s)", len(self.get_whitelist()))

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("[WHITELIST] Stopping")

    def _on_user_joined(self, payload: UserJoinedOwnedChannel) -> None:
        if not self.is_whitelisted(payload.user_id):
            return
        payload.is_allowed = True
        payload.reason = "Whitelisted"
        self.context.notifier.send_debug(
            f"Whitelisted user <@{payload.user_id}> join: **ALLOWED**", payload.channel_id
        )

    # ==================== Whitelist ====================

    def get_whitelist(self) -> list[str]:
        return get_user_id_list(self.context.settings.get(SETTING_KEY))

    def set_whitelist(self, user_ids: Iterable[str]) -> None:
        settings = self.context.settings
        settings.set(SETTING_KEY, dedupe(user_ids))
        settings.save()

    def is_whitelisted(self, user_id: str) -> bool:
        return user_id in self.get_whitelist()

    def whitelist_users(self, user_ids: Iterable[str], channel_id: str | None = None) -> list[str]:
        current = self.get_whitelist()
        added = [uid for uid in dedupe(user_ids) if uid and uid not in current]
        if added:
            self.set_whitelist([*current, *added])
            for user_id in added:
                self.context.notifier.send_debug(f"User <@{user_id}> added to local whitelist.", channel_id)
        return added

    def unwhitelist_users(self, user_ids: Iterable[str], channel_id: str | None = None) -> list[str]:
        current = self.get_whitelist()
        removed = [uid for uid in dedupe(user_ids) if uid in current]
        if removed:
            self.set_whitelist([uid for uid in current if uid not in removed])
            for user_id in removed:
                self.context.notifier.send_debug(f"User <@{user_id}> removed from local whitelist.", channel_id)
        return removed

    # ==================== Permits ====================

    def _permit_limit(self) -> int:
        try:
            return max(1, int(self.context.settings.get("permit_limit", DEFAULT_PERMIT_LIMIT)))
        except (TypeError, ValueError):
            return DEFAULT_PERMIT_LIMIT

    def apply_permit_rotation(self, user_id: str, channel_id: str) -> bool:
        """Record a permit locally, revoking the oldest one first if the list is full.

        Returns False when the user was already permitted.
        """
        context = self.context
        me = context.me
        if not me:
            return False

        permitted = context.state.get_member_config(me).permitted_users
        if user_id in permitted:
            context.notifier.send_debug(f"<@{user_id}> is already permitted, skipping duplicate.", channel_id)
            return False

        limit = self._permit_limit()
        if context.settings.get("permit_rotate_enabled", False) and len(permitted) >= limit:
            oldest = permitted.pop(0)
            context.notifier.send_debug(
                f"Permit list full ({limit}). Unpermitting oldest: <@{oldest}>", channel_id
            )
            context.queue.enqueue(
                context.format(context.settings.get("unpermit_command", ""), channel_id, user_id=oldest),
                channel_id,
                priority=True,
            )
            template = context.settings.get("permit_rotation_message", "")
            if template:
                context.notifier.send_local(
                    context.format(template, channel_id, user_id=oldest, new_user_id=user_id), channel_id
                )

        context.state.update_member_config(me, permitted_users=[*permitted, user_id])
        return True

    def permit_users(self, user_ids: Iterable[str], channel_id: str) -> int:
        sent = 0
        for user_id in dedupe(user_ids):
            if not user_id:
                continue
            self.apply_permit_rotation(user_id, channel_id)
            self.context.notifier.send_debug(f"Permitting user <@{user_id}>", channel_id)
            self.context.queue.enqueue(
                self.context.format(self.context.settings.get("permit_command", ""), channel_id, user_id=user_id),
                channel_id,
            )
            sent += 1
        return sent

    def unpermit_users(self, user_ids: Iterable[str], channel_id: str) -> int:
        context = self.context
        me = context.me
        sent = 0
        for user_id in dedupe(user_ids):
            if not user_id:
                continue
            context.notifier.send_debug(f"Unpermitting user <@{user_id}>", channel_id)
            context.queue.enqueue(
                context.format(context.settings.get("unpermit_command", ""), channel_id, user_id=user_id),
                channel_id,
            )
            sent += 1
            if me and context.state.has_member_config(me):
                permitted = context.state.get_member_config(me).permitted_users
                if user_id in permitted:
                    context.state.update_member_config(
                        me, permitted_users=[uid for uid in permitted if uid != user_id]
                    )
        return sent

    # ==================== Menus ====================

    def get_user_menu_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem | None]:
        context = self.context
        if user_id == context.me:
            return []

        listed = self.is_whitelisted(user_id)

        def toggle() -> None:
            if listed:
                self.unwhitelist_users([user_id], channel_id)
            else:
                self.whitelist_users([user_id], channel_id)

        items: list[MenuItem | None] = [
            MenuItem(item_id=f"whitelist-{user_id}", label="Whitelisted", checked=listed, action=toggle)
        ]

        my_channel_id = context.host.my_voice_channel_id()
        if my_channel_id and context.is_me_owner(my_channel_id):
            permitted = user_id in context.state.get_member_config(context.me).permitted_users  # type: ignore[arg-type]
            if permitted:
                items.append(MenuItem(f"unpermit-{user_id}", "Unpermit", action=lambda: self.unpermit_users([user_id], my_channel_id)))
            else:
                items.append(MenuItem(f"permit-{user_id}", "Permit", action=lambda: self.permit_users([user_id], my_channel_id)))
        return items
