"""
Host-agnostic views of chat messages, channels and voice state changes.

The Discord layer converts py-cord objects into these records so that the
classifier, the router and the modules can be exercised without a gateway
connection.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ReplyEmbed:
    """The structured ("rich reply") part of a message.

    Attributes:
        title: Embed title, empty if absent.
        author_name: Embed author name, empty if absent.
        author_icon_url: Embed author icon URL, empty if absent.
        description: Embed description, empty if absent.
    """
    title: str = ""
    author_name: str = ""
    author_icon_url: str = ""
    description: str = ""


@dataclass(slots=True)
class ChatMessage:
    """A received chat message reduced to the fields the pipeline reads.

    Attributes:
        message_id: ID of the message.
        channel_id: ID of the channel the message was posted in.
        author_id: ID of the author.
        content: Plain text content.
        guild_id: ID of the guild, None for direct messages.
        author_name: Display name of the author.
        author_is_bot: Whether the author is a bot account.
        is_direct: Whether the message arrived in a direct-message channel.
        embeds: Rich reply parts in message order.
        mention_ids: IDs of mentioned users, in mention order.
        referenced_author_id: Author of the message this one replies to, if known.
        reference_message_id: ID of the message this one replies to, if any.
        created_at: Creation time as a POSIX timestamp.
    """
    message_id: str
    channel_id: str
    author_id: str
    content: str = ""
    guild_id: str | None = None
    author_name: str = ""
    author_is_bot: bool = False
    is_direct: bool = False
    embeds: list[ReplyEmbed] = field(default_factory=list)
    mention_ids: list[str] = field(default_factory=list)
    referenced_author_id: str | None = None
    reference_message_id: str | None = None
    created_at: float = 0.0

    @property
    def embed(self) -> ReplyEmbed | None:
        """First rich reply part, the one the external bot fills in."""
        return self.embeds[0] if self.embeds else None


@dataclass(slots=True)
class ChannelRecord:
    """Minimal description of a guild channel."""
    channel_id: str
    name: str
    guild_id: str | None = None
    parent_id: str | None = None
    is_voice: bool = False


@dataclass(slots=True)
class VoiceStateChange:
    """A user moved between voice channels (either side may be None)."""
    user_id: str
    old_channel_id: str | None
    new_channel_id: str | None
    guild_id: str | None = None
