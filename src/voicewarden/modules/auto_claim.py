"""Claim a managed channel when both its creator and claimant have left."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.datatypes.event_datatypes import CoreEvent, ManagedChannelEvent, UserLeftOwnedChannel
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("auto_claim")

JOIN_CHECK_DELAY_SECONDS = 1.0


class AutoClaimModule(Module):
    name = "AutoClaimModule"
    description = "Automatically claims voice channels when their owners leave."
    optional_dependencies = ("CommandCleanupModule",)

    def __init__(self) -> None:
        super().__init__()
        self._unsubscribers: list[Callable[[], None]] = []

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._unsubscribers = [
            context.registry.on(CoreEvent.USER_LEFT_OWNED_CHANNEL, self._on_user_left),
            context.registry.on(CoreEvent.LOCAL_USER_JOINED_MANAGED_CHANNEL, self._on_local_user_joined),
        ]
        logger.info("[AUTO CLAIM] Initializing")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self.is_initialized:
            self.context.scheduler.cancel_owner(self.name)
        logger.info("[AUTO CLAIM] Stopping")

    @property
    def enabled(self) -> bool:
        return bool(self.context.settings.get("auto_claim_disbanded", False))

    def _on_user_left(self, payload: UserLeftOwnedChannel) -> None:
        if not self.enabled:
            return
        ownership = self.context.state.get_ownership(payload.channel_id)
        if ownership is not None and ownership.is_owner(payload.user_id):
            self.check_and_claim_if_disbanded(payload.channel_id)

    def _on_local_user_joined(self, payload: ManagedChannelEvent) -> None:
        if not self.enabled:
            return
        channel_id = payload.channel_id
        # Voice membership of a freshly joined channel settles shortly after the join.
        try:
            self.context.scheduler.schedule_once(
                self.name, channel_id, JOIN_CHECK_DELAY_SECONDS,
                lambda: self.check_and_claim_if_disbanded(channel_id),
            )
        except RuntimeError:
            self.check_and_claim_if_disbanded(channel_id)

    def check_and_claim_if_disbanded(self, channel_id: str) -> bool:
        """Queue a claim at the very front when I am in the channel and no owner is."""
        context = self.context
        me = context.me
        if not me:
            return False

        members = set(context.host.get_voice_members(channel_id))
        if me not in members:
            return False

        ownership = context.state.get_ownership(channel_id)
        if ownership is None:
            return False

        creator_present = bool(ownership.creator_id) and ownership.creator_id in members
        claimant_present = bool(ownership.claimant_id) and ownership.claimant_id in members
        if creator_present or claimant_present:
            return False

        context.notifier.send_debug(f"Channel <#{channel_id}> is disbanded. Auto-claiming...", channel_id)
        context.queue.unshift(context.format(context.settings.get("claim_command", ""), channel_id), channel_id)
        return True

    def get_toolbox_menu_items(self, channel_id: str | None = None) -> list[MenuItem | None]:
        settings = self.context.settings
        return [
            MenuItem(
                item_id="auto-claim-toggle",
                label="Auto-claim disbanded channels",
                checked=self.enabled,
                action=lambda: settings.toggle("auto_claim_disbanded"),
            )
        ]
