"""Cancellable one-shot and repeating background tasks.

Tasks are keyed by ``(owner, key)``: the owner is usually a module name and
the key a channel ID, so a module can cancel everything it scheduled on
``stop`` and the ownership logic can cancel everything tied to a channel
once that channel is gone. Scheduling under a key that is already in use
replaces (cancels) the previous task.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from voicewarden.util.logger import get_logger

logger = get_logger("task_scheduler")

TaskKey = tuple[str, str]
Callback = Callable[[], Any]
IntervalGetter = Callable[[], float]


class TaskScheduler:
    """Registry of named asyncio tasks with explicit cancellation."""

    def __init__(self) -> None:
        self._tasks: dict[TaskKey, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_once(self, owner: str, key: str, delay: float, callback: Callback) -> asyncio.Task:
        """Run ``callback`` once after ``delay`` seconds."""
        return self._start(owner, key, self._run_once(owner, key, delay, callback))

    def schedule_repeating(
        self,
        owner: str,
        key: str,
        interval: float | IntervalGetter,
        callback: Callback,
    ) -> asyncio.Task:
        """Run ``callback`` every ``interval`` seconds until cancelled.

        ``interval`` may be a callable, re-evaluated before each wait so live
        setting changes apply from the next tick.
        """
        getter: IntervalGetter = interval if callable(interval) else (lambda: float(interval))
        return self._start(owner, key, self._run_repeating(owner, key, getter, callback))

    def _start(self, owner: str, key: str, coro) -> asyncio.Task:
        self.cancel(owner, key)
        task = asyncio.get_running_loop().create_task(coro)
        task_key = (owner, key)
        self._tasks[task_key] = task
        task.add_done_callback(lambda t, k=task_key: self._forget(k, t))
        return task

    def _forget(self, task_key: TaskKey, task: asyncio.Task) -> None:
        if self._tasks.get(task_key) is task:
            del self._tasks[task_key]

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, owner: str, key: str) -> bool:
        task = self._tasks.pop((owner, key), None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_key(self, key: str) -> int:
        """Cancel every task scheduled under ``key`` by any owner."""
        return sum(self.cancel(owner, k) for owner, k in list(self._tasks) if k == key)

    def cancel_owner(self, owner: str) -> int:
        return sum(self.cancel(o, key) for o, key in list(self._tasks) if o == owner)

    def is_scheduled(self, owner: str, key: str) -> bool:
        task = self._tasks.get((owner, key))
        return task is not None and not task.done()

    def scheduled_keys(self, owner: str | None = None) -> list[TaskKey]:
        return [k for k, t in self._tasks.items() if not t.done() and (owner is None or k[0] == owner)]

    async def shutdown(self) -> None:
        """Cancel everything and wait for the tasks to finish unwinding."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Runners
    # ------------------------------------------------------------------

    @staticmethod
    async def _invoke(owner: str, key: str, callback: Callback) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[TASK SCHEDULER] Task %s/%s raised", owner, key)

    async def _run_once(self, owner: str, key: str, delay: float, callback: Callback) -> None:
        await asyncio.sleep(max(0.0, delay))
        await self._invoke(owner, key, callback)

    async def _run_repeating(self, owner: str, key: str, getter: IntervalGetter, callback: Callback) -> None:
        try:
            while True:
                await asyncio.sleep(max(0.0, getter()))
                await self._invoke(owner, key, callback)
        except asyncio.CancelledError:
            logger.debug("[TASK SCHEDULER] Repeating task %s/%s cancelled", owner, key)
            raise
