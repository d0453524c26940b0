"""
Periodic renaming of owned voice channels.

Each owned channel gets its own repeating task in the scheduler, keyed by the
channel ID, so rotation for one channel never stops another and everything
tied to a channel can be cancelled once it is gone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.util.lists import get_newline_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("channel_name_rotation")

# Discord allows two renames per channel every ten minutes.
MIN_INTERVAL_MINUTES = 11


class ChannelNameRotationModule(Module):
    name = "ChannelNameRotationModule"
    description = "Periodically renames a voice channel."

    def init(self, context: AppContext) -> None:
        super().init(context)
        logger.info("[NAME ROTATION] Initializing")

    def stop(self) -> None:
        self.stop_rotation()
        logger.info("[NAME ROTATION] Stopping")

    # ==================== Settings ====================

    @property
    def enabled(self) -> bool:
        return bool(self.context.settings.get("channel_name_rotation_enabled", True))

    def names(self) -> list[str]:
        return get_newline_list(self.context.settings.get("channel_name_rotation_names"))

    def interval_seconds(self) -> float:
        raw = self.context.settings.get("channel_name_rotation_interval", MIN_INTERVAL_MINUTES)
        try:
            minutes = float(raw)
        except (TypeError, ValueError):
            minutes = MIN_INTERVAL_MINUTES
        return max(MIN_INTERVAL_MINUTES, minutes) * 60

    # ==================== Rotation ====================

    def is_rotating(self, channel_id: str) -> bool:
        return self.context.scheduler.is_scheduled(self.name, channel_id)

    def start_rotation(self, channel_id: str) -> bool:
        """Start (or restart) rotation for a channel; returns False when disabled or nothing to rotate."""
        if not self.enabled or not self.names():
            return False

        try:
            self.context.scheduler.schedule_repeating(
                self.name,
                channel_id,
                self.interval_seconds,
                lambda: self.rotate_next_name(channel_id),
            )
        except RuntimeError:
            logger.warning("[NAME ROTATION] No running event loop; rotation for %s not started", channel_id)
            return False

        self.context.notifier.send_debug(f"Starting name rotation for channel <#{channel_id}>", channel_id)
        return True

    def stop_rotation(self, channel_id: str | None = None) -> None:
        """Stop rotation for one channel, or for every channel when none is given."""
        if not self.is_initialized:
            return
        scheduler = self.context.scheduler
        if channel_id is None:
            stopped = scheduler.cancel_owner(self.name) > 0
        else:
            stopped = scheduler.cancel(self.name, channel_id)
        if stopped:
            self.context.notifier.send_debug("Name rotation stopped.", channel_id)

    def rotate_next_name(self, channel_id: str) -> str | None:
        """Queue a rename to the name after the channel's current one."""
        if not self.enabled:
            return None
        names = self.names()
        if not names:
            return None

        channel = self.context.host.get_channel(channel_id)
        current_index = names.index(channel.name) if channel is not None and channel.name in names else -1
        next_name = names[(current_index + 1) % len(names)]

        self.context.notifier.send_debug(f"Rotating name to: **{next_name}**", channel_id)
        command = self.context.format(
            self.context.settings.get("set_channel_name_command", ""), channel_id, name=next_name
        )
        self.context.queue.enqueue(command, channel_id)
        return next_name

    # ==================== Menus ====================

    def get_toolbox_menu_items(self, channel_id: str | None = None) -> list[MenuItem | None]:
        settings = self.context.settings
        items: list[MenuItem | None] = [
            MenuItem(
                item_id="rotation-toggle",
                label="Channel name rotation",
                checked=self.enabled,
                action=lambda: settings.toggle("channel_name_rotation_enabled"),
            )
        ]
        if channel_id and self.context.is_me_owner(channel_id):
            if self.is_rotating(channel_id):
                items.append(MenuItem("rotation-stop", "Stop name rotation", action=lambda: self.stop_rotation(channel_id)))
            else:
                items.append(MenuItem("rotation-start", "Start name rotation", action=lambda: self.start_rotation(channel_id)))
        return items
