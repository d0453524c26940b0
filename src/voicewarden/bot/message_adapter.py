"""Conversion of py-cord messages into ``ChatMessage`` records."""

from __future__ import annotations

import discord

from voicewarden.datatypes.message_datatypes import ChatMessage, ReplyEmbed
from voicewarden.util.logger import get_logger

logger = get_logger("message_adapter")


def to_reply_embed(embed: discord.Embed) -> ReplyEmbed:
    author = embed.author
    return ReplyEmbed(
        title=str(embed.title or ""),
        author_name=str(getattr(author, "name", None) or ""),
        author_icon_url=str(getattr(author, "icon_url", None) or ""),
        description=str(embed.description or ""),
    )


def to_chat_message(message: discord.Message, referenced_author_id: str | None = None) -> ChatMessage:
    reference = message.reference
    return ChatMessage(
        message_id=str(message.id),
        channel_id=str(message.channel.id),
        author_id=str(message.author.id),
        content=message.content or "",
        guild_id=str(message.guild.id) if message.guild is not None else None,
        author_name=getattr(message.author, "global_name", None) or message.author.name,
        author_is_bot=message.author.bot,
        is_direct=isinstance(message.channel, discord.DMChannel),
        embeds=[to_reply_embed(embed) for embed in message.embeds],
        mention_ids=[str(user.id) for user in message.mentions],
        referenced_author_id=referenced_author_id,
        reference_message_id=str(reference.message_id) if reference is not None and reference.message_id else None,
        created_at=message.created_at.timestamp(),
    )


async def resolve_referenced_author(message: discord.Message) -> str | None:
    """Author of the message this one replies to, fetching it when not cached."""
    reference = message.reference
    if reference is None or reference.message_id is None:
        return None

    resolved = reference.resolved
    if isinstance(resolved, discord.Message):
        return str(resolved.author.id)
    if isinstance(resolved, discord.DeletedReferencedMessage):
        return None

    try:
        referenced = await message.channel.fetch_message(reference.message_id)
    except discord.HTTPException as exc:
        logger.debug("[MESSAGE ADAPTER] Could not fetch referenced message %s: %s", reference.message_id, exc)
        return None
    return str(referenced.author.id)


async def adapt_message(message: discord.Message) -> ChatMessage:
    return to_chat_message(message, await resolve_referenced_author(message))
