"""Kick users whose roles do not satisfy the configured requirement."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.event_datatypes import CoreEvent, UserJoinedOwnedChannel
from voicewarden.util.lists import get_newline_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.configuration.app_configuration import AppConfig
    from voicewarden.core.app_context import AppContext

logger = get_logger("role_enforcement")


class RequiredRoleMode(Enum):
    ALL = "All"
    ANY = "Any"
    NONE = "None"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_setting(cls, value: object) -> RequiredRoleMode:
        try:
            return cls(str(value))
        except ValueError:
            return cls.ANY


def violates_role_requirement(member_roles: Iterable[str], required: Iterable[str], mode: RequiredRoleMode) -> bool:
    """True when the member's roles fail the requirement.

    ALL: every required role must be present. ANY: at least one must be.
    NONE: none of them may be.
    """
    roles = set(member_roles)
    required_set = set(required)
    if mode is RequiredRoleMode.ALL:
        return not required_set <= roles
    if mode is RequiredRoleMode.NONE:
        return bool(roles & required_set)
    return not roles & required_set


def required_roles(settings: AppConfig) -> tuple[list[str], RequiredRoleMode]:
    return (
        get_newline_list(settings.get("required_role_ids")),
        RequiredRoleMode.from_setting(settings.get("required_role_mode", "Any")),
    )


class RoleEnforcementModule(Module):
    """Kicks on role mismatch when the bans module is not configured to ban for it."""

    name = "RoleEnforcementModule"
    description = "Kicks users that do not match the required roles."
    optional_dependencies = ("WhitelistModule", "BansModule")

    def __init__(self) -> None:
        super().__init__()
        self._unsubscribe: Callable[[], None] | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._unsubscribe = context.registry.on(CoreEvent.USER_JOINED_OWNED_CHANNEL, self._on_user_joined)
        logger.info("[ROLE ENFORCEMENT] Initializing")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("[ROLE ENFORCEMENT] Stopping")

    def _on_user_joined(self, payload: UserJoinedOwnedChannel) -> None:
        if payload.is_settled:
            return
        context = self.context
        settings = context.settings
        if payload.user_id == context.me or not context.is_me_owner(payload.channel_id):
            return
        # Missing roles are then handled as a ban by BansModule.
        if settings.get("ban_not_in_roles", True):
            return

        required, mode = required_roles(settings)
        if not required:
            return

        roles = context.host.get_member_roles(payload.guild_id or settings.guild_id, payload.user_id)
        if roles is None:
            return

        channel_id = payload.channel_id
        if not violates_role_requirement(roles, required, mode):
            context.notifier.send_debug(
                f"<@{payload.user_id}> did not match role enforcement conditions ({mode}). Not kicking.", channel_id
            )
            return

        context.notifier.send_debug(
            f"<@{payload.user_id}> matched role enforcement conditions ({mode}). Kicking.", channel_id
        )
        user_id = payload.user_id
        context.queue.enqueue(
            context.format(settings.get("kick_command", ""), channel_id, user_id=user_id),
            channel_id,
            priority=True,
            execute_condition=lambda: context.host.is_user_in_voice_channel(user_id, channel_id),
        )
        payload.is_handled = True
        payload.reason = "Role Enforcement Violation"
