"""
Ban enforcement for owned channels.

A user joining a channel the local actor owns is evaluated against the local
blacklist, the required roles, the owner's ban list and the recent-kick
waitlist. Offenders are kicked first; a user who comes back within the
cooldown (or at all, with a zero cooldown) is banned. When the external bot's
ban list is full the oldest ban is lifted to make room.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable, Iterable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.datatypes.event_datatypes import CoreEvent, ManagedChannelEvent, UserJoinedOwnedChannel
from voicewarden.modules.role_enforcement import required_roles, violates_role_requirement
from voicewarden.util.lists import dedupe
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext
    from voicewarden.modules.blacklist import BlacklistModule

logger = get_logger("bans")

DEFAULT_BAN_LIMIT = 5


class BansModule(Module):
    name = "BansModule"
    description = "Manages and enforces user bans and kicks in owned channels."
    required_dependencies = ("BlacklistModule",)
    optional_dependencies = ("WhitelistModule",)

    def __init__(self) -> None:
        super().__init__()
        # user ID -> monotonic time of the last kick
        self.recently_kicked: dict[str, float] = {}
        self._unsubscribers: list[Callable[[], None]] = []
        self._blacklist: BlacklistModule | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._blacklist = context.module("BlacklistModule")  # type: ignore[assignment]
        self._unsubscribers = [
            context.registry.on(CoreEvent.USER_JOINED_OWNED_CHANNEL, self._on_user_joined),
            context.registry.on(CoreEvent.LOCAL_USER_LEFT_MANAGED_CHANNEL, self._on_local_user_left),
        ]
        logger.info("[BANS] Initializing")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.recently_kicked.clear()
        logger.info("[BANS] Stopping")

    # ==================== Listeners ====================

    def _on_user_joined(self, payload: UserJoinedOwnedChannel) -> None:
        if payload.is_settled:
            return
        if payload.user_id == self.context.me or not self.context.is_me_owner(payload.channel_id):
            return
        if self.evaluate_user_join(payload.user_id, payload.channel_id, payload.guild_id):
            payload.is_handled = True
            payload.reason = "Ban Policy Violation"

    def _on_local_user_left(self, payload: ManagedChannelEvent) -> None:
        self.recently_kicked.clear()

    # ==================== Policy ====================

    def _is_missing_role(self, guild_id: str | None, user_id: str) -> bool:
        settings = self.context.settings
        if not settings.get("ban_not_in_roles", True):
            return False
        required, mode = required_roles(settings)
        if not required:
            return False
        roles = self.context.host.get_member_roles(guild_id or settings.guild_id, user_id)
        if not roles:
            return True
        return violates_role_requirement(roles, required, mode)

    def evaluate_user_join(self, user_id: str, channel_id: str, guild_id: str | None) -> bool:
        """Apply the ban policy to a join; returns True when the user was acted on."""
        context = self.context
        me = context.me

        banned = (
            context.state.get_member_config(me).banned_users
            if me and context.state.has_member_config(me)
            else []
        )
        reasons = []
        if (
            context.settings.get("ban_in_local_blacklist", True)
            and self._blacklist is not None
            and self._blacklist.is_blacklisted(user_id)
        ):
            reasons.append("Blacklisted")
        if self._is_missing_role(guild_id, user_id):
            reasons.append("Missing Role")
        if user_id in banned:
            reasons.append("Already Banned")
        if user_id in self.recently_kicked:
            reasons.append("Repeat Join")

        if not reasons:
            return False

        reason = ", ".join(reasons)
        logger.info("[BANS] Enforcing ban policy on %s in %s (%s)", user_id, channel_id, reason)
        self.enforce_ban_policy(user_id, channel_id, kick_first=True, reason=reason)
        return True

    def _cooldown_seconds(self) -> float:
        try:
            return max(0.0, float(self.context.settings.get("ban_rotate_cooldown", 0) or 0))
        except (TypeError, ValueError):
            return 0.0

    def _ban_limit(self) -> int:
        try:
            return max(1, int(self.context.settings.get("ban_limit", DEFAULT_BAN_LIMIT)))
        except (TypeError, ValueError):
            return DEFAULT_BAN_LIMIT

    def enforce_ban_policy(
        self,
        user_id: str,
        channel_id: str,
        kick_first: bool = False,
        reason: str | None = None,
    ) -> str | None:
        """Kick or ban a user; returns "kick", "ban" or None when nothing was queued.

        With ``kick_first`` a user who was not kicked recently (or whose kick
        is older than a non-zero cooldown) is only kicked. Otherwise the user
        is banned, rotating out the oldest ban when the list is full.
        """
        context = self.context
        settings = context.settings
        if self._blacklist is not None:
            self._blacklist.blacklist_users([user_id], channel_id)

        now = time.monotonic()
        last_kick = self.recently_kicked.get(user_id)
        cooldown = self._cooldown_seconds()

        if kick_first and (last_kick is None or (cooldown > 0 and now - last_kick > cooldown)):
            self.recently_kicked[user_id] = now
            context.queue.enqueue(
                context.format(settings.get("kick_command", ""), channel_id, user_id=user_id, reason=reason),
                channel_id,
                priority=True,
                execute_condition=lambda: context.host.is_user_in_voice_channel(user_id, channel_id),
            )
            return "kick"

        me = context.me
        if not me:
            return None

        banned = context.state.get_member_config(me).banned_users
        if settings.get("ban_rotate_enabled", True) and len(banned) >= self._ban_limit():
            oldest = banned.pop(0)
            self.unban_users([oldest], channel_id)
            template = settings.get("ban_rotation_message", "")
            if template:
                context.notifier.send_local(
                    context.format(template, channel_id, user_id=oldest, new_user_id=user_id), channel_id
                )

        if user_id not in banned:
            context.state.update_member_config(me, banned_users=[*banned, user_id])

        context.queue.enqueue(
            context.format(settings.get("ban_command", ""), channel_id, user_id=user_id, reason=reason),
            channel_id,
            priority=True,
        )
        self.recently_kicked.pop(user_id, None)
        return "ban"

    def ban_users(self, user_ids: Iterable[str], channel_id: str, reason: str | None = None) -> None:
        for user_id in dedupe(user_ids):
            if user_id:
                self.enforce_ban_policy(user_id, channel_id, kick_first=True, reason=reason)

    def unban_users(self, user_ids: Iterable[str], channel_id: str) -> None:
        context = self.context
        me = context.me
        if not me:
            return
        targets = [uid for uid in dedupe(user_ids) if uid]
        for user_id in targets:
            context.queue.enqueue(
                context.format(context.settings.get("unban_command", ""), channel_id, user_id=user_id),
                channel_id,
            )

        if context.state.has_member_config(me):
            banned = context.state.get_member_config(me).banned_users
            context.state.update_member_config(me, banned_users=[uid for uid in banned if uid not in targets])
        if self._blacklist is not None:
            self._blacklist.unblacklist_users(targets, channel_id)

    # ==================== Menus ====================

    def get_user_menu_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem | None]:
        context = self.context
        my_channel_id = context.host.my_voice_channel_id()
        if user_id == context.me or not my_channel_id or not context.is_me_owner(my_channel_id):
            return []

        banned = user_id in context.state.get_member_config(context.me).banned_users  # type: ignore[arg-type]
        if banned:
            return [MenuItem(f"unban-{user_id}", "Unban", action=lambda: self.unban_users([user_id], my_channel_id))]
        return [
            MenuItem(
                f"ban-{user_id}",
                "Ban",
                action=lambda: self.enforce_ban_policy(user_id, my_channel_id, kick_first=True, reason="Manual Ban"),
            )
        ]
