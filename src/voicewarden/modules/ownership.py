"""
Ownership tracking for managed voice channels.

The module watches voice state changes in the managed category and the
creation channel, and turns them into the higher-level events other modules
listen to:

- ``LOCAL_USER_JOINED_MANAGED_CHANNEL`` / ``LOCAL_USER_LEFT_MANAGED_CHANNEL``
  when the local actor moves.
- ``USER_JOINED_OWNED_CHANNEL`` / ``USER_LEFT_OWNED_CHANNEL`` for movements
  in a channel with known ownership that the local actor is in.

Replies from the external bot are handed to the ``OwnershipCoordinator``.
When a channel is observed empty its ownership record is dropped and every
scheduled task keyed by the channel is cancelled.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Iterable

from voicewarden.core.module_registry import Module
from voicewarden.core.ownership_coordinator import OwnershipCoordinator
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.datatypes.event_datatypes import (
    ClassifiedResponse,
    CoreEvent,
    ManagedChannelEvent,
    UserJoinedOwnedChannel,
    UserLeftOwnedChannel,
)
from voicewarden.datatypes.message_datatypes import ChannelRecord, VoiceStateChange
from voicewarden.util.channels import is_managed_channel
from voicewarden.util.lists import get_newline_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext
    from voicewarden.modules.channel_name_rotation import ChannelNameRotationModule

logger = get_logger("ownership")

FETCH_SPACING_SECONDS = 0.5
MENU_SIZES = range(0, 11)


class OwnershipActions:
    """Owner operations shared by menus, the console and remote commands."""

    def __init__(self, context: AppContext) -> None:
        self.context = context

    def _enqueue(self, setting: str, channel_id: str, priority: bool = False, **values: Any) -> None:
        template = self.context.settings.get(setting, "")
        if not template:
            logger.warning("[OWNERSHIP] Setting %s is empty; nothing sent", setting)
            return
        self.context.queue.enqueue(self.context.format(template, channel_id, **values), channel_id, priority=priority)

    def sync_info(self, channel_id: str) -> None:
        self._enqueue("info_command", channel_id, priority=True)

    def claim_channel(self, channel_id: str) -> None:
        self._enqueue("claim_command", channel_id, priority=True)

    def lock_channel(self, channel_id: str) -> None:
        self._enqueue("lock_command", channel_id, priority=True)

    def unlock_channel(self, channel_id: str) -> None:
        self._enqueue("unlock_command", channel_id, priority=True)

    def reset_channel(self, channel_id: str) -> None:
        self._enqueue("reset_command", channel_id)

    def set_channel_size(self, channel_id: str, size: int) -> None:
        self._enqueue("set_size_command", channel_id, size=size)

    def rename_channel(self, channel_id: str, name: str) -> None:
        self._enqueue("set_channel_name_command", channel_id, priority=True, name=name)

    def kick_users(self, channel_id: str, user_ids: Iterable[str]) -> int:
        """Queue kicks; each is dropped at send time if the user already left."""
        context = self.context
        template = context.settings.get("kick_command", "")
        count = 0
        for user_id in user_ids:
            context.queue.enqueue(
                context.format(template, channel_id, user_id=user_id),
                channel_id,
                execute_condition=lambda uid=user_id: context.host.is_user_in_voice_channel(uid, channel_id),
            )
            count += 1
        return count

    def kick_banned_users(self, channel_id: str) -> int:
        """Kick every user of my ban list present in the channel; -1 when I have no ban list."""
        context = self.context
        me = context.me
        if not me or not context.state.has_member_config(me):
            return -1
        banned = set(context.state.get_member_config(me).banned_users)
        present = [uid for uid in context.host.get_voice_members(channel_id) if uid in banned]
        if present:
            self.kick_users(channel_id, present)
        return len(present)

    async def create_channel(self) -> bool:
        creation_channel_id = self.context.settings.creation_channel_id
        if not creation_channel_id:
            self.context.notifier.send_local("No creation channel ID configured.")
            return False
        return await self.context.host.connect_voice(creation_channel_id)

    def _find_existing_channel(self) -> ChannelRecord | None:
        context = self.context
        settings = context.settings
        host = context.host
        me = context.me
        if not me:
            return None

        # 1. My most recently acquired channel that still exists in the category.
        mine = sorted(
            context.state.get_channel_ownerships_for_user(me),
            key=lambda o: max(o.created_at or 0, o.claimed_at or 0),
            reverse=True,
        )
        for ownership in mine:
            channel = host.get_channel(ownership.channel_id)
            if channel is not None and channel.parent_id == settings.category_id:
                return channel

        candidates = [
            channel
            for channel in host.get_guild_channels(settings.guild_id)
            if channel.is_voice and channel.parent_id == settings.category_id
        ] if settings.guild_id else []

        # 2. A channel carrying my configured custom name.
        if context.state.has_member_config(me):
            custom_name = context.state.get_member_config(me).custom_name
            if custom_name:
                for channel in candidates:
                    if channel.name == custom_name:
                        return channel

        # 3. A channel carrying one of the rotation names.
        rotation_names = get_newline_list(settings.get("channel_name_rotation_names"))
        for channel in candidates:
            if channel.name in rotation_names:
                return channel
        return None

    async def find_or_create_channel(self, create: bool = True) -> str | None:
        """Join an existing channel of mine, or create a new one; returns the joined channel ID."""
        notifier = self.context.notifier
        if not self.context.me:
            await self.create_channel()
            return None

        channel = self._find_existing_channel()
        if channel is not None:
            logger.info("[OWNERSHIP] Found existing channel %s (%s)", channel.channel_id, channel.name)
            notifier.send_local(f"Joining channel {channel.name}")
            joined = await self.context.host.connect_voice(channel.channel_id)
            return channel.channel_id if joined else None

        if create:
            notifier.send_local("No channel found, creating one")
            await self.create_channel()
        else:
            notifier.send_local("No existing channel found")
        return None

    def reset_state(self) -> None:
        self.context.state.reset_state()
        self.context.notifier.send_local("Plugin state has been reset.")


class OwnershipModule(Module):
    name = "OwnershipModule"
    description = "Tracks and manages voice channel ownership."
    required_dependencies = ("WhitelistModule", "BansModule", "BlacklistModule", "ChannelNameRotationModule")

    def __init__(self) -> None:
        super().__init__()
        self.actions: OwnershipActions | None = None
        self.coordinator: OwnershipCoordinator | None = None
        self._rotation: ChannelNameRotationModule | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._rotation = context.module("ChannelNameRotationModule")  # type: ignore[assignment]
        self.actions = OwnershipActions(context)
        self.coordinator = OwnershipCoordinator(context, self._rotation)
        logger.info("[OWNERSHIP] Initializing")

        me = context.me
        my_channel_id = context.host.my_voice_channel_id()
        if me and my_channel_id and self.is_tracked_channel(my_channel_id):
            self.handle_user_joined(me, my_channel_id)

    def stop(self) -> None:
        logger.info("[OWNERSHIP] Stopping")

    # ==================== Helpers ====================

    def is_tracked_channel(self, channel_id: str | None) -> bool:
        if not channel_id:
            return False
        settings = self.context.settings
        return is_managed_channel(
            self.context.host.get_channel(channel_id), settings.category_id, settings.creation_channel_id
        )

    def request_channel_info(self, channel_id: str) -> None:
        self.actions.sync_info(channel_id)  # type: ignore[union-attr]

    async def fetch_all_owners(self) -> int:
        """Request info for every voice channel in the category, spaced out."""
        settings = self.context.settings
        if not settings.guild_id:
            return 0
        channels = [
            channel
            for channel in self.context.host.get_guild_channels(settings.guild_id)
            if channel.is_voice and channel.parent_id == settings.category_id
        ]
        logger.info("[OWNERSHIP] Batch fetching owners for %d channel(s)", len(channels))
        for channel in channels:
            self.request_channel_info(channel.channel_id)
            await asyncio.sleep(FETCH_SPACING_SECONDS)
        logger.info("[OWNERSHIP] Batch fetch complete")
        return len(channels)

    # ==================== Event hooks ====================

    def on_voice_state_update(self, change: VoiceStateChange) -> None:
        if change.old_channel_id == change.new_channel_id:
            return
        if self.is_tracked_channel(change.new_channel_id):
            self.handle_user_joined(change.user_id, change.new_channel_id)  # type: ignore[arg-type]
        if self.is_tracked_channel(change.old_channel_id):
            self.handle_user_left(change.user_id, change.old_channel_id)  # type: ignore[arg-type]

    def on_custom_event(self, event: CoreEvent, payload: Any) -> None:
        if event is CoreEvent.BOT_REPLY_RECEIVED and self.coordinator is not None:
            self.coordinator.handle_reply(payload)

    def handle_reply(self, response: ClassifiedResponse) -> None:
        self.coordinator.handle_reply(response)  # type: ignore[union-attr]

    def handle_user_joined(self, user_id: str, channel_id: str) -> UserJoinedOwnedChannel | None:
        context = self.context
        me = context.me
        ownership = context.state.get_ownership(channel_id)

        if user_id == me:
            context.notifier.send_debug(f"You joined managed channel <#{channel_id}>", channel_id)
            context.registry.dispatch(CoreEvent.LOCAL_USER_JOINED_MANAGED_CHANNEL, ManagedChannelEvent(channel_id))
            if ownership is not None:
                rotation = self._rotation
                if ownership.is_owner(me) and rotation is not None and not rotation.is_rotating(channel_id):
                    rotation.start_rotation(channel_id)
            elif channel_id != context.settings.creation_channel_id:
                context.notifier.send_debug(f"Unknown channel <#{channel_id}> joined. Requesting info.", channel_id)
                self.request_channel_info(channel_id)

        if ownership is None:
            return None
        if user_id != me and channel_id != context.host.my_voice_channel_id():
            return None

        channel = context.host.get_channel(channel_id)
        payload = UserJoinedOwnedChannel(
            channel_id=channel_id,
            user_id=user_id,
            guild_id=(channel.guild_id if channel else None) or context.settings.guild_id or None,
        )
        context.notifier.send_debug(f"<@{user_id}> joined owned channel", channel_id)
        context.registry.dispatch(CoreEvent.USER_JOINED_OWNED_CHANNEL, payload)
        if payload.reason:
            logger.info("[OWNERSHIP] Join of %s in %s settled: %s", user_id, channel_id, payload.reason)
        return payload

    def handle_user_left(self, user_id: str, channel_id: str) -> None:
        context = self.context
        me = context.me

        if user_id == me:
            context.registry.dispatch(CoreEvent.LOCAL_USER_LEFT_MANAGED_CHANNEL, ManagedChannelEvent(channel_id))
            if self._rotation is not None:
                self._rotation.stop_rotation(channel_id)

        ownership = context.state.get_ownership(channel_id)
        if ownership is not None and (user_id == me or channel_id == context.host.my_voice_channel_id()):
            context.registry.dispatch(CoreEvent.USER_LEFT_OWNED_CHANNEL, UserLeftOwnedChannel(channel_id, user_id))

        if channel_id != context.settings.creation_channel_id and not context.host.get_voice_members(channel_id):
            self.forget_channel(channel_id)

    def forget_channel(self, channel_id: str) -> None:
        """Drop the ownership of an emptied channel and cancel its scheduled tasks."""
        context = self.context
        had_ownership = context.state.get_ownership(channel_id) is not None
        context.state.set_ownership(channel_id, None)
        cancelled = context.scheduler.cancel_key(channel_id)
        if had_ownership or cancelled:
            logger.info("[OWNERSHIP] Channel %s is empty; ownership cleared (%d task(s) cancelled)", channel_id, cancelled)
            context.notifier.send_debug(f"Channel <#{channel_id}> is empty; ownership cleared", channel_id)

    # ==================== Menus ====================

    def _status_items(self, channel_id: str | None, scope: str) -> list[MenuItem | None]:
        ownership = self.context.state.get_ownership(channel_id) if channel_id else None
        me = self.context.me

        def describe(user_id: str | None) -> str:
            if not user_id:
                return "none"
            return "You" if user_id == me else (self.context.host.get_user_name(user_id) or user_id)

        return [
            MenuItem(f"{scope}-status-creator", f"Creator: {describe(ownership.creator_id if ownership else None)}", disabled=True),
            MenuItem(f"{scope}-status-claimant", f"Claimant: {describe(ownership.claimant_id if ownership else None)}", disabled=True),
        ]

    def get_toolbox_menu_items(self, channel_id: str | None = None) -> list[MenuItem | None]:
        actions = self.actions
        channel_id = channel_id or self.context.host.my_voice_channel_id()
        items = self._status_items(channel_id, "toolbox")
        items.extend([
            MenuItem("find-channel", "Find or create my channel", action=lambda: actions.find_or_create_channel(True)),
            MenuItem("create-channel", "Create channel", action=actions.create_channel),
            MenuItem("fetch-owners", "Fetch all owners", action=self.fetch_all_owners),
            MenuItem("reset-state", "Reset state", action=actions.reset_state),
        ])
        return items

    def get_channel_menu_items(self, channel: ChannelRecord) -> list[MenuItem | None]:
        if not channel.is_voice or not self.is_tracked_channel(channel.channel_id):
            return []
        actions = self.actions
        channel_id = channel.channel_id
        items: list[MenuItem | None] = [
            MenuItem(f"sync-{channel_id}", "Sync info", action=lambda: actions.sync_info(channel_id)),
            MenuItem(f"claim-{channel_id}", "Claim", action=lambda: actions.claim_channel(channel_id)),
        ]
        if self.context.is_me_owner(channel_id):
            items.extend([
                MenuItem(f"lock-{channel_id}", "Lock", action=lambda: actions.lock_channel(channel_id)),
                MenuItem(f"unlock-{channel_id}", "Unlock", action=lambda: actions.unlock_channel(channel_id)),
                MenuItem(f"reset-{channel_id}", "Reset", action=lambda: actions.reset_channel(channel_id)),
                MenuItem(f"kick-banned-{channel_id}", "Kick banned users", action=lambda: actions.kick_banned_users(channel_id)),
            ])
            items.extend(
                MenuItem(f"size-{size}-{channel_id}", f"Set size {size}", action=lambda s=size: actions.set_channel_size(channel_id, s))
                for size in MENU_SIZES
            )
        return items

    def get_user_menu_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem | None]:
        context = self.context
        my_channel_id = context.host.my_voice_channel_id()
        if not my_channel_id:
            return []
        items: list[MenuItem | None] = []
        ownership = context.state.get_ownership(my_channel_id)
        if ownership is not None and ownership.is_owner(user_id):
            items.append(MenuItem(f"owner-{user_id}", "Channel owner", disabled=True))
        if user_id != context.me and context.is_me_owner(my_channel_id):
            items.append(MenuItem(f"kick-{user_id}", "Kick", action=lambda: self.actions.kick_users(my_channel_id, [user_id])))
        return items

    def get_guild_menu_items(self, guild_id: str) -> list[MenuItem | None]:
        if guild_id != self.context.settings.guild_id:
            return []
        items = self._status_items(self.context.host.my_voice_channel_id(), "guild")
        items.append(MenuItem("guild-fetch-owners", "Fetch all owners", action=self.fetch_all_owners))
        return items
