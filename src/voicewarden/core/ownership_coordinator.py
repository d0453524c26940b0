"""
Reply-driven ownership and member configuration updates.

The coordinator turns classified replies into state changes:

- CREATED / CLAIMED with a resolved initiator update the creator or claimant
  slot, but only when the ID or the reply timestamp differs from what is
  stored, so a replayed reply triggers nothing downstream.
- An accepted change broadcasts CHANNEL_OWNERSHIP_CHANGED, posts the local
  ownership notice for managed channels and starts (or stops) name rotation
  depending on whether the local actor gained (or lost) the channel.
- INFO replies are copied onto the owner's member config.
- Ban, permit, size and lock replies are mirrored onto the member config of
  the initiator (or the channel's current owner when no initiator is known).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol

from voicewarden.classification.bot_response import parse_channel_info
from voicewarden.datatypes.event_datatypes import (
    BotResponseType,
    ClassifiedResponse,
    CoreEvent,
    OwnershipChanged,
)
from voicewarden.datatypes.state_datatypes import ChannelOwnership
from voicewarden.util.channels import is_managed_channel
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("ownership_coordinator")

_SIZE_PATTERN = re.compile(r"(\d+)")

_OWNERSHIP_TYPES = (BotResponseType.CREATED, BotResponseType.CLAIMED)
_MEMBER_CONFIG_TYPES = frozenset({
    BotResponseType.BANNED,
    BotResponseType.UNBANNED,
    BotResponseType.PERMITTED,
    BotResponseType.UNPERMITTED,
    BotResponseType.SIZE_SET,
    BotResponseType.LOCKED,
    BotResponseType.UNLOCKED,
})


class RotationControl(Protocol):
    def is_rotating(self, channel_id: str) -> bool: ...

    def start_rotation(self, channel_id: str) -> bool: ...

    def stop_rotation(self, channel_id: str | None = None) -> None: ...


class OwnershipCoordinator:
    """Applies classified replies to the state manager and triggers follow-ups."""

    def __init__(self, context: AppContext, rotation: RotationControl | None = None) -> None:
        self.context = context
        self.rotation = rotation

    # ==================== Entry point ====================

    def handle_reply(self, response: ClassifiedResponse) -> None:
        if response.initiator_id and response.type in _OWNERSHIP_TYPES:
            self.apply_ownership(response)

        if response.type is BotResponseType.INFO:
            self.sync_channel_info(response)

        if response.type in _MEMBER_CONFIG_TYPES:
            self.mirror_member_config(response)

    # ==================== Ownership ====================

    def apply_ownership(self, response: ClassifiedResponse) -> bool:
        """Record creator/claimant from a CREATED/CLAIMED reply; returns True on an actual change."""
        channel_id = response.channel_id
        owner_id = response.initiator_id
        if not owner_id:
            return False

        is_creator = response.type is BotResponseType.CREATED
        old = self.context.state.get_ownership(channel_id)

        if is_creator:
            unchanged = old is not None and old.creator_id == owner_id and old.created_at == response.timestamp
            changes = {"creator_id": owner_id, "created_at": response.timestamp}
        else:
            unchanged = old is not None and old.claimant_id == owner_id and old.claimed_at == response.timestamp
            changes = {"claimant_id": owner_id, "claimed_at": response.timestamp}

        if unchanged:
            logger.debug("[OWNERSHIP] Ignoring repeated %s reply for %s", response.type, channel_id)
            return False

        new = self.context.state.set_ownership(channel_id, changes)
        self._on_ownership_changed(channel_id, owner_id, "creator" if is_creator else "claimant", old, new)
        return True

    def _on_ownership_changed(
        self,
        channel_id: str,
        owner_id: str,
        role: str,
        old: ChannelOwnership | None,
        new: ChannelOwnership | None,
    ) -> None:
        context = self.context
        me = context.me

        logger.info("[OWNERSHIP] %s recognized as %s of %s", owner_id, role, channel_id)
        context.registry.dispatch(
            CoreEvent.CHANNEL_OWNERSHIP_CHANGED,
            OwnershipChanged(channel_id=channel_id, old_ownership=old, new_ownership=new),
        )

        settings = context.settings
        if is_managed_channel(context.host.get_channel(channel_id), settings.category_id):
            notice = context.format(
                settings.get("ownership_change_message", ""),
                channel_id,
                user_id=owner_id,
                reason="Created" if role == "creator" else "Claimed",
            )
            context.notifier.send_local(notice, channel_id)

        who = "You" if owner_id == me else f"<@{owner_id}>"
        context.notifier.send_debug(f"Ownership: **{who}** recognized as **{role}**", channel_id)

        if owner_id == me:
            if self.rotation is not None and not self.rotation.is_rotating(channel_id):
                self.rotation.start_rotation(channel_id)
            self.request_channel_info(channel_id)
        elif old is not None and old.current_owner_id == me and (new is None or new.current_owner_id != me):
            if self.rotation is not None:
                self.rotation.stop_rotation(channel_id)

    def request_channel_info(self, channel_id: str) -> None:
        template = self.context.settings.get("info_command", "")
        if not template:
            return
        self.context.queue.enqueue(self.context.format(template, channel_id), channel_id, priority=True)

    # ==================== Member config ====================

    def _config_owner(self, response: ClassifiedResponse) -> str | None:
        if response.initiator_id:
            return response.initiator_id
        ownership = self.context.state.get_ownership(response.channel_id)
        return ownership.current_owner_id if ownership else None

    def sync_channel_info(self, response: ClassifiedResponse) -> bool:
        user_id = self._config_owner(response)
        info = parse_channel_info(response.raw_description)
        if not user_id or info is None:
            return False

        changes: dict[str, object] = {}
        if info.name is not None:
            changes["custom_name"] = info.name
        if info.limit is not None:
            changes["user_limit"] = info.limit
        if info.is_locked is not None:
            changes["is_locked"] = info.is_locked
        if info.banned is not None:
            changes["banned_users"] = info.banned
        if info.permitted is not None:
            changes["permitted_users"] = info.permitted

        changed = self.context.state.update_member_config(user_id, **changes) if changes else False
        if changed:
            self.context.notifier.send_debug(f"Synchronized info for <@{user_id}>", response.channel_id)
        return changed

    def mirror_member_config(self, response: ClassifiedResponse) -> bool:
        user_id = self._config_owner(response)
        if not user_id:
            return False

        state = self.context.state
        config = state.get_member_config(user_id)
        target = response.target_id
        # "@name" fallbacks are display names and cannot be matched against IDs later.
        if target is not None and not target.isdigit():
            logger.debug("[OWNERSHIP] Unresolved target %s in %s reply; not mirrored", target, response.type)
            target = None

        match response.type:
            case BotResponseType.BANNED if target and target not in config.banned_users:
                return state.update_member_config(user_id, banned_users=[*config.banned_users, target])
            case BotResponseType.UNBANNED if target:
                return state.update_member_config(
                    user_id, banned_users=[uid for uid in config.banned_users if uid != target]
                )
            case BotResponseType.PERMITTED if target and target not in config.permitted_users:
                return state.update_member_config(user_id, permitted_users=[*config.permitted_users, target])
            case BotResponseType.UNPERMITTED if target:
                return state.update_member_config(
                    user_id, permitted_users=[uid for uid in config.permitted_users if uid != target]
                )
            case BotResponseType.SIZE_SET:
                match = _SIZE_PATTERN.search(response.raw_description or response.raw.content)
                if match:
                    return state.update_member_config(user_id, user_limit=int(match.group(1)))
            case BotResponseType.LOCKED:
                return state.update_member_config(user_id, is_locked=True)
            case BotResponseType.UNLOCKED:
                return state.update_member_config(user_id, is_locked=False)
        return False
