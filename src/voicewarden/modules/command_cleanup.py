"""
Delete the command messages the queue sends once the external bot has seen them.

Sends that return a message ID are deleted after ``command_cleanup_delay``
milliseconds. Sends without one are remembered by their normalized text for
30 seconds; a message of mine with the same text arriving in that window is
deleted instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.event_datatypes import ActionEvent, CoreEvent
from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("command_cleanup")

TRACK_SECONDS = 30.0
DEFAULT_DELAY_MS = 1000


def normalize_command(text: str) -> str:
    return (text or "").strip().lower()


class CommandCleanupModule(Module):
    name = "CommandCleanupModule"
    description = "Cleans up command messages sent by the action queue."

    def __init__(self) -> None:
        super().__init__()
        # channel ID -> normalized commands sent without a known message ID
        self.pending_commands: dict[str, set[str]] = {}
        self._unsubscribe: Callable[[], None] | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._unsubscribe = context.registry.on(CoreEvent.ACTION_EXECUTED, self._on_action_executed)
        logger.info("[COMMAND CLEANUP] Initializing")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.pending_commands.clear()
        if self.is_initialized:
            self.context.scheduler.cancel_owner(self.name)
        logger.info("[COMMAND CLEANUP] Stopping")

    @property
    def enabled(self) -> bool:
        return bool(self.context.settings.get("command_cleanup", True))

    def delay_seconds(self) -> float:
        try:
            return max(0.0, float(self.context.settings.get("command_cleanup_delay", DEFAULT_DELAY_MS))) / 1000
        except (TypeError, ValueError):
            return DEFAULT_DELAY_MS / 1000

    def schedule_delete(self, channel_id: str, message_id: str) -> None:
        host = self.context.host
        self.context.scheduler.schedule_once(
            self.name,
            f"delete:{message_id}",
            self.delay_seconds(),
            lambda: host.delete_message(channel_id, message_id),
        )

    def _on_action_executed(self, payload: ActionEvent) -> None:
        if not self.enabled:
            return
        item = payload.item
        if item.reply_id:
            self.schedule_delete(item.channel_id, item.reply_id)
            return

        normalized = normalize_command(item.command)
        self.pending_commands.setdefault(item.channel_id, set()).add(normalized)
        self.context.scheduler.schedule_once(
            self.name,
            f"track:{item.channel_id}:{normalized}",
            TRACK_SECONDS,
            lambda: self._forget(item.channel_id, normalized),
        )

    def _forget(self, channel_id: str, normalized: str) -> None:
        commands = self.pending_commands.get(channel_id)
        if commands is None:
            return
        commands.discard(normalized)
        if not commands:
            del self.pending_commands[channel_id]

    def on_message_create(self, message: ChatMessage) -> None:
        if not self.enabled or message.author_id != self.context.me:
            return
        content = normalize_command(message.content)
        for channel_id, commands in list(self.pending_commands.items()):
            if content in commands:
                self.schedule_delete(message.channel_id, message.message_id)
                self._forget(channel_id, content)
                self.context.scheduler.cancel(self.name, f"track:{channel_id}:{content}")
                return
