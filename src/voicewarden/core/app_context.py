"""
The application context: one object, built at startup, that every component
receives instead of reaching for module-level singletons.

Tests build isolated contexts around a fake host; the bot builds one around
``DiscordHost``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from voicewarden.configuration.app_configuration import AppConfig
from voicewarden.core.action_queue import ActionQueue
from voicewarden.core.host import HostClient
from voicewarden.core.module_registry import Module, ModuleRegistry
from voicewarden.datatypes.queue_datatypes import ActionQueueItem
from voicewarden.scheduler.task_scheduler import TaskScheduler
from voicewarden.state.state_manager import StateManager
from voicewarden.util.formatting import format_command
from voicewarden.util.logger import get_logger
from voicewarden.util.notifications import LocalNotifier

if TYPE_CHECKING:
    from voicewarden.core.command_router import ExternalCommandRouter

logger = get_logger("app_context")


@dataclass
class AppContext:
    settings: AppConfig
    host: HostClient
    registry: ModuleRegistry
    queue: ActionQueue
    state: StateManager
    notifier: LocalNotifier
    scheduler: TaskScheduler
    router: ExternalCommandRouter | None = field(default=None)

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def me(self) -> str | None:
        """ID of the local actor."""
        return self.host.current_user_id

    def module(self, name: str) -> Module | None:
        return self.registry.get_module(name)

    def is_me_owner(self, channel_id: str | None) -> bool:
        return self.state.is_owner(self.me, channel_id)

    def format(self, template: str, channel_id: str, **values: Any) -> str:
        """``format_command`` with the local actor and user name filled in from the host."""
        user_id = values.get("user_id")
        if user_id and "user_name" not in values:
            values["user_name"] = self.host.get_user_name(user_id)
        channel = self.host.get_channel(channel_id)
        if channel is not None:
            values.setdefault("channel_name", channel.name)
            values.setdefault("guild_id", channel.guild_id)
        return format_command(template, channel_id, me_id=self.me, **values)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_action(self, item: ActionQueueItem) -> Any:
        """Send handler installed on the action queue.

        Text is never posted into the creation channel: joining it is what
        makes the external bot create a channel, and it has no chat of its own.
        """
        creation_channel_id = self.settings.creation_channel_id
        if creation_channel_id and item.channel_id == creation_channel_id:
            logger.warning("[APP CONTEXT] Withholding %r: target is the creation channel", item.command)
            return None
        return await self.host.send_message(item.channel_id, item.command)


def create_context(
    settings: AppConfig,
    host: HostClient,
    *,
    state: StateManager | None = None,
    notifier: LocalNotifier | None = None,
    scheduler: TaskScheduler | None = None,
) -> AppContext:
    """Wire a complete context; modules are registered separately and started with ``registry.init``."""
    from voicewarden.core.command_router import ExternalCommandRouter

    registry = ModuleRegistry()
    notifier = notifier or LocalNotifier(settings, host)
    queue = ActionQueue(settings, registry=registry, notifier=notifier)

    context = AppContext(
        settings=settings,
        host=host,
        registry=registry,
        queue=queue,
        state=state or StateManager(),
        notifier=notifier,
        scheduler=scheduler or TaskScheduler(),
    )
    queue.set_send_handler(context.send_action)
    context.router = ExternalCommandRouter(context)
    return context
