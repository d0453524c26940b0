"""Local-only notices and debug output.

Nothing diagnostic is ever posted where other users can read it: notices go
to the log and, when ``local_channel_id`` is configured, to that private
channel. Debug output is additionally gated by the ``enable_debug`` setting.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.configuration.app_configuration import AppConfig
    from voicewarden.core.host import HostClient

logger = get_logger("notifications")


class LocalNotifier:
    """Deliver local-only messages without blocking the caller.

    Both methods are synchronous so they can be called from event listeners;
    the actual send is scheduled as a task on the running loop and tracked
    until it completes.
    """

    def __init__(self, settings: AppConfig, host: HostClient | None = None) -> None:
        self.settings = settings
        self.host = host
        self._pending: set[asyncio.Task] = set()

    def send_local(self, message: str, channel_id: str | None = None) -> None:
        """Always log, and forward to the local channel."""
        logger.info("[LOCAL] %s%s", f"({channel_id}) " if channel_id else "", message)
        self._forward(message)

    def send_debug(self, message: str, channel_id: str | None = None) -> None:
        """Log at debug level; forward only when debug output is enabled."""
        logger.debug("[DEBUG] %s%s", f"({channel_id}) " if channel_id else "", message)
        if self.settings.debug_enabled:
            self._forward(f"🔧 {message}")

    def _forward(self, message: str) -> None:
        target = self.settings.local_channel_id
        if not target or self.host is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        task = loop.create_task(self._deliver(target, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, channel_id: str, message: str) -> None:
        try:
            await self.host.send_message(channel_id, message)  # type: ignore[union-attr]
        except Exception as exc:
            logger.warning("[NOTIFICATIONS] Failed to deliver local message to %s: %s", channel_id, exc)

    async def shutdown(self) -> None:
        """Wait for in-flight deliveries to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
