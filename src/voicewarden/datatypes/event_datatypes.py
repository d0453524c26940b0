"""
Event names, reply types and the payloads carried on the registry's event bus.

The payload set is closed: every event in ``CoreEvent`` has exactly one
payload type below. ``UserJoinedOwnedChannel`` is the only mutable payload;
listeners set ``is_allowed``/``is_handled``/``reason`` on it in registry order
and the first listener to mark it handled wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.datatypes.state_datatypes import ChannelOwnership

if TYPE_CHECKING:
    from voicewarden.datatypes.queue_datatypes import ActionQueueItem


class CoreEvent(Enum):
    """Events broadcast through the module registry."""

    MODULE_INIT = "module_init"
    ACTION_QUEUED = "action_queued"
    ACTION_EXECUTED = "action_executed"
    CHANNEL_OWNERSHIP_CHANGED = "channel_ownership_changed"
    BOT_REPLY_RECEIVED = "bot_reply_received"
    LOCAL_USER_JOINED_MANAGED_CHANNEL = "local_user_joined_managed_channel"
    LOCAL_USER_LEFT_MANAGED_CHANNEL = "local_user_left_managed_channel"
    USER_JOINED_OWNED_CHANNEL = "user_joined_owned_channel"
    USER_LEFT_OWNED_CHANNEL = "user_left_owned_channel"

    def __str__(self) -> str:
        return self.value


class BotResponseType(Enum):
    """Kinds of reply the external voice bot sends back."""

    CREATED = "Channel Created"
    CLAIMED = "Channel Claimed"
    INFO = "Channel Settings"
    BANNED = "Banned"
    UNBANNED = "Unbanned"
    PERMITTED = "Permitted"
    UNPERMITTED = "Unpermitted"
    SIZE_SET = "Size Set"
    LOCKED = "Locked"
    UNLOCKED = "Unlocked"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ModuleInitialized:
    module_name: str


@dataclass(slots=True)
class ActionEvent:
    """Payload of ACTION_QUEUED and ACTION_EXECUTED."""
    item: ActionQueueItem


@dataclass(slots=True)
class OwnershipChanged:
    channel_id: str
    old_ownership: ChannelOwnership | None
    new_ownership: ChannelOwnership | None


@dataclass(slots=True)
class ClassifiedResponse:
    """A reply from the external bot after classification.

    Recomputed for every message and never persisted.
    """
    type: BotResponseType
    channel_id: str
    message_id: str
    timestamp: float
    raw: ChatMessage
    initiator_id: str | None = None
    target_id: str | None = None

    @property
    def raw_description(self) -> str:
        embed = self.raw.embed
        return embed.description if embed else ""


@dataclass(slots=True)
class ManagedChannelEvent:
    """Payload of LOCAL_USER_JOINED/LEFT_MANAGED_CHANNEL."""
    channel_id: str


@dataclass(slots=True)
class UserJoinedOwnedChannel:
    channel_id: str
    user_id: str
    guild_id: str | None
    is_allowed: bool = False
    is_handled: bool = False
    reason: str | None = None

    @property
    def is_settled(self) -> bool:
        return self.is_allowed or self.is_handled


@dataclass(slots=True)
class UserLeftOwnedChannel:
    channel_id: str
    user_id: str
