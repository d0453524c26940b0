"""py-cord implementation of ``HostClient``."""

from __future__ import annotations

import asyncio
from typing import Any

import discord

from voicewarden.core.host import HostClient
from voicewarden.datatypes.message_datatypes import ChannelRecord
from voicewarden.util.logger import get_logger

logger = get_logger("discord_host")

VOICE_CHANNEL_TYPES = (discord.VoiceChannel, discord.StageChannel)


def _as_int(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


def to_channel_record(channel: Any) -> ChannelRecord:
    guild = getattr(channel, "guild", None)
    category_id = getattr(channel, "category_id", None)
    return ChannelRecord(
        channel_id=str(channel.id),
        name=getattr(channel, "name", None) or "",
        guild_id=str(guild.id) if guild is not None else None,
        parent_id=str(category_id) if category_id else None,
        is_voice=isinstance(channel, VOICE_CHANNEL_TYPES),
    )


class DiscordHost(HostClient):
    """Reads from the py-cord cache and performs sends through the bot's HTTP client."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    @property
    def current_user_id(self) -> str | None:
        user = self.bot.user
        return str(user.id) if user is not None else None

    # ==================== Lookups ====================

    def _channel(self, channel_id: str | None) -> Any:
        snowflake = _as_int(channel_id)
        return self.bot.get_channel(snowflake) if snowflake is not None else None

    def get_voice_channel_id(self, user_id: str) -> str | None:
        snowflake = _as_int(user_id)
        if snowflake is None:
            return None
        for guild in self.bot.guilds:
            member = guild.get_member(snowflake)
            voice = member.voice if member is not None else None
            if voice is not None and voice.channel is not None:
                return str(voice.channel.id)
        return None

    def get_channel(self, channel_id: str) -> ChannelRecord | None:
        channel = self._channel(channel_id)
        return to_channel_record(channel) if channel is not None else None

    def get_guild_channels(self, guild_id: str) -> list[ChannelRecord]:
        snowflake = _as_int(guild_id)
        guild = self.bot.get_guild(snowflake) if snowflake is not None else None
        if guild is None:
            return []
        return [to_channel_record(channel) for channel in guild.channels]

    def get_voice_members(self, channel_id: str) -> list[str]:
        channel = self._channel(channel_id)
        if not isinstance(channel, VOICE_CHANNEL_TYPES):
            return []
        return [str(user_id) for user_id in channel.voice_states]

    def get_member_roles(self, guild_id: str, user_id: str) -> list[str] | None:
        guild_snowflake = _as_int(guild_id)
        user_snowflake = _as_int(user_id)
        if guild_snowflake is None or user_snowflake is None:
            return None
        guild = self.bot.get_guild(guild_snowflake)
        member = guild.get_member(user_snowflake) if guild is not None else None
        if member is None:
            return None
        return [str(role.id) for role in member.roles if not role.is_default()]

    def get_user_name(self, user_id: str) -> str | None:
        snowflake = _as_int(user_id)
        user = self.bot.get_user(snowflake) if snowflake is not None else None
        if user is None:
            return None
        return user.global_name or user.name

    # ==================== Actions ====================

    async def _resolve_messageable(self, channel_id: str) -> Any:
        channel = self._channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    async def send_message(self, channel_id: str, content: str) -> discord.Message:
        channel = await self._resolve_messageable(channel_id)
        return await channel.send(content)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        channel = await self._resolve_messageable(channel_id)
        try:
            await channel.get_partial_message(int(message_id)).delete()
        except discord.NotFound:
            logger.debug("[DISCORD HOST] Message %s in %s already deleted", message_id, channel_id)

    async def connect_voice(self, channel_id: str) -> bool:
        channel = self._channel(channel_id)
        if not isinstance(channel, VOICE_CHANNEL_TYPES):
            logger.warning("[DISCORD HOST] %s is not a known voice channel", channel_id)
            return False

        try:
            voice_client = channel.guild.voice_client
            if voice_client is not None and voice_client.is_connected():
                await voice_client.move_to(channel)
            else:
                await channel.connect()
        except (discord.DiscordException, asyncio.TimeoutError) as exc:
            logger.error("[DISCORD HOST] Failed to join voice channel %s: %s", channel_id, exc)
            return False

        logger.info("[DISCORD HOST] Joined voice channel %s (%s)", channel.name, channel_id)
        return True
