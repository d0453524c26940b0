"""
Priority-aware, rate-limited, serialized outbound command dispatcher.

Every command sent to the external bot passes through ``ActionQueue``. At
most one item is in flight at a time and consecutive items are separated by
the ``queue_interval`` setting. The priority sub-queue is always drained
before the normal one.

Drain cycle for one item:

1. ``queue_enabled`` is re-read; while it is off, items accumulate.
2. The next item is popped (priority first).
3. If its ``execute_condition`` is now False it is dropped unsent.
4. Without a send handler it is dropped with an error.
5. Otherwise the send races a fixed timeout; the reply ID is extracted and
   ``ACTION_EXECUTED`` is broadcast.
6. The inter-item delay is awaited. The delay is charged after every dequeued
   item, including dropped ones, so a burst of stale items cannot turn into a
   burst of sends.

No item is ever retried or re-queued.
"""

from __future__ import annotations

import asyncio
from collections import deque
import re
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from voicewarden.datatypes.event_datatypes import ActionEvent, CoreEvent
from voicewarden.datatypes.queue_datatypes import ActionQueueItem, ExecuteCondition
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.configuration.app_configuration import AppConfig
    from voicewarden.core.module_registry import ModuleRegistry
    from voicewarden.util.notifications import LocalNotifier

logger = get_logger("action_queue")

SEND_TIMEOUT_SECONDS = 10.0

# Read and claim requests jump the line so ownership information stays fresh.
HIGH_PRIORITY_VERBS = re.compile(r"(?:^|\s)(?:claim|info)(?:\s|$)", re.IGNORECASE)

SendHandler = Callable[[ActionQueueItem], Awaitable[Any]]


def is_high_priority_command(command: str) -> bool:
    return bool(HIGH_PRIORITY_VERBS.search(command or ""))


def _lookup(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def extract_reply_id(result: Any) -> str | None:
    """Return the sent message's ID from a send result.

    Accepts a message object or mapping with ``id``, or one wrapping it under
    ``message`` or ``body``.
    """
    for candidate in (result, _lookup(result, "message"), _lookup(result, "body")):
        value = _lookup(candidate, "id")
        if value is not None:
            return str(value)
    return None


class ActionQueue:
    """Serialized outbound sender with a priority lane.

    Parameters
    ----------
    settings:
        Live settings; ``queue_enabled`` and ``queue_interval`` are read on every cycle.
    registry:
        Receives ``ACTION_QUEUED`` and ``ACTION_EXECUTED`` broadcasts.
    notifier:
        Receives local debug notices about queue activity.
    send_handler:
        Coroutine function performing the actual send.
    """

    def __init__(
        self,
        settings: AppConfig,
        registry: ModuleRegistry | None = None,
        notifier: LocalNotifier | None = None,
        send_handler: SendHandler | None = None,
        send_timeout: float = SEND_TIMEOUT_SECONDS,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.notifier = notifier
        self.send_timeout = send_timeout
        self._send_handler = send_handler
        self._priority: deque[ActionQueueItem] = deque()
        self._normal: deque[ActionQueueItem] = deque()
        self._processing = False
        self._drain_task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ==================== Public API ====================

    def set_send_handler(self, handler: SendHandler | None) -> None:
        self._send_handler = handler

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def priority_items(self) -> tuple[ActionQueueItem, ...]:
        return tuple(self._priority)

    @property
    def normal_items(self) -> tuple[ActionQueueItem, ...]:
        return tuple(self._normal)

    def pending(self) -> list[ActionQueueItem]:
        """Items waiting to be sent, in the order they will be dequeued."""
        return [*self._priority, *self._normal]

    def __len__(self) -> int:
        return len(self._priority) + len(self._normal)

    def enqueue(
        self,
        command: str,
        channel_id: str,
        priority: bool = False,
        execute_condition: ExecuteCondition | None = None,
    ) -> ActionQueueItem:
        """Append a command; claim/info commands are always promoted to priority."""
        if not priority and is_high_priority_command(command):
            priority = True

        item = ActionQueueItem(
            command=command,
            channel_id=channel_id,
            priority=priority,
            execute_condition=execute_condition,
        )
        (self._priority if priority else self._normal).append(item)

        logger.debug("[ACTION QUEUE] Enqueued %r for %s (priority=%s, size=%d)", command, channel_id, priority, len(self))
        self._debug(f"Queued `{command}`{' (priority)' if priority else ''}", channel_id)
        self._broadcast(CoreEvent.ACTION_QUEUED, item)
        self._kick()
        return item

    def unshift(
        self,
        command: str,
        channel_id: str,
        execute_condition: ExecuteCondition | None = None,
    ) -> ActionQueueItem:
        """Insert a command at the very front of the priority sub-queue."""
        item = ActionQueueItem(
            command=command,
            channel_id=channel_id,
            priority=True,
            execute_condition=execute_condition,
        )
        self._priority.appendleft(item)

        logger.debug("[ACTION QUEUE] Unshifted %r for %s", command, channel_id)
        self._broadcast(CoreEvent.ACTION_QUEUED, item)
        self._kick()
        return item

    def clear(self) -> int:
        """Drop every waiting item and return how many were dropped."""
        dropped = len(self)
        self._priority.clear()
        self._normal.clear()
        logger.info("[ACTION QUEUE] Cleared %d pending item(s)", dropped)
        return dropped

    def resume(self) -> None:
        """Restart draining, e.g. after ``queue_enabled`` was switched back on."""
        self._kick()

    async def wait_until_idle(self) -> None:
        """Wait until the drain loop has stopped (queue empty or disabled)."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Cancel the drain loop; pending items are discarded."""
        task = self._drain_task
        self._drain_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._processing = False
        self._idle.set()
        self.clear()

    # ==================== Internal helpers ====================

    def _debug(self, message: str, channel_id: str | None = None) -> None:
        if self.notifier is not None:
            self.notifier.send_debug(message, channel_id)

    def _broadcast(self, event: CoreEvent, item: ActionQueueItem) -> None:
        if self.registry is not None:
            self.registry.dispatch(event, ActionEvent(item=item))

    def _kick(self) -> None:
        if self._processing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Nothing can be sent without a loop; items wait for the next kick.
            return
        self._processing = True
        self._idle.clear()
        self._drain_task = loop.create_task(self._drain())

    def _pop_next(self) -> ActionQueueItem | None:
        if self._priority:
            return self._priority.popleft()
        if self._normal:
            return self._normal.popleft()
        return None

    async def _drain(self) -> None:
        try:
            while True:
                if not self.settings.queue_enabled:
                    logger.debug("[ACTION QUEUE] Queue disabled; %d item(s) waiting", len(self))
                    break

                item = self._pop_next()
                if item is None:
                    break

                try:
                    await self._process_item(item)
                except Exception:
                    logger.exception("[ACTION QUEUE] Unexpected error processing %r", item.command)

                await asyncio.sleep(self.settings.queue_interval)
        finally:
            self._processing = False
            self._idle.set()

    async def _process_item(self, item: ActionQueueItem) -> None:
        if item.execute_condition is not None:
            try:
                allowed = bool(item.execute_condition())
            except Exception:
                logger.exception("[ACTION QUEUE] Condition for %r raised; dropping", item.command)
                allowed = False
            if not allowed:
                logger.debug("[ACTION QUEUE] Pre-flight condition failed for %r; skipping", item.command)
                self._debug(f"Pre-flight condition failed for `{item.command}`, skipping", item.channel_id)
                return

        if self._send_handler is None:
            logger.error("[ACTION QUEUE] No send handler configured; dropping %r", item.command)
            return

        try:
            result = await asyncio.wait_for(self._send_handler(item), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning("[ACTION QUEUE] Sending %r timed out after %.0fs", item.command, self.send_timeout)
            self._debug(f"Sending `{item.command}` timed out", item.channel_id)
            return
        except Exception as exc:
            logger.error("[ACTION QUEUE] Failed to send %r: %s", item.command, exc)
            self._debug(f"Failed to send `{item.command}`: {exc}", item.channel_id)
            return

        item.reply_id = extract_reply_id(result)
        logger.debug("[ACTION QUEUE] Sent %r (message id %s)", item.command, item.reply_id)
        self._broadcast(CoreEvent.ACTION_EXECUTED, item)
