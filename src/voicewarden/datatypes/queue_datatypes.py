"""
Outbound action queue item.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import itertools
import time
from typing import Callable

ExecuteCondition = Callable[[], bool]

_item_ids = itertools.count(1)


def next_item_id() -> str:
    return f"action-{next(_item_ids)}"


@dataclass(slots=True)
class ActionQueueItem:
    """A command waiting to be sent to the external bot.

    Attributes:
        command: Text to send.
        channel_id: Channel the text is sent to.
        priority: Whether the item sits in the fast lane.
        execute_condition: Re-checked at dequeue; a False result drops the item.
        item_id: Unique queue-local identifier.
        timestamp: Enqueue time (POSIX seconds).
        reply_id: ID of the sent message, filled in after sending.
    """
    command: str
    channel_id: str
    priority: bool = False
    execute_condition: ExecuteCondition | None = None
    item_id: str = field(default_factory=next_item_id)
    timestamp: float = field(default_factory=time.time)
    reply_id: str | None = None
