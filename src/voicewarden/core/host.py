"""
Abstract chat-platform client.

Everything the pipeline needs from the platform (identity, channel lookups,
voice membership, sending and deleting messages) goes through ``HostClient``.
The py-cord implementation lives in ``voicewarden.bot.discord_host``; tests
use an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from voicewarden.datatypes.message_datatypes import ChannelRecord


class HostClient(ABC):
    """Operations the core and the modules perform against the chat platform."""

    @property
    @abstractmethod
    def current_user_id(self) -> str | None:
        """ID of the local actor, None before login."""

    @abstractmethod
    def get_voice_channel_id(self, user_id: str) -> str | None:
        """Voice channel the user is connected to, if any."""

    @abstractmethod
    def get_channel(self, channel_id: str) -> ChannelRecord | None:
        ...

    @abstractmethod
    def get_guild_channels(self, guild_id: str) -> list[ChannelRecord]:
        ...

    @abstractmethod
    def get_voice_members(self, channel_id: str) -> list[str]:
        """IDs of users currently connected to the voice channel."""

    @abstractmethod
    def get_member_roles(self, guild_id: str, user_id: str) -> list[str] | None:
        """Role IDs of a guild member, None if the member is unknown."""

    @abstractmethod
    def get_user_name(self, user_id: str) -> str | None:
        ...

    @abstractmethod
    async def send_message(self, channel_id: str, content: str) -> Any:
        """Send plain text and return the created message object."""

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    async def connect_voice(self, channel_id: str) -> bool:
        """Join (or move to) a voice channel; returns False if it cannot."""

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def my_voice_channel_id(self) -> str | None:
        me = self.current_user_id
        return self.get_voice_channel_id(me) if me else None

    def is_user_in_voice_channel(self, user_id: str, channel_id: str) -> bool:
        return user_id in self.get_voice_members(channel_id)
