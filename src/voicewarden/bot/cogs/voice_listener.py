"""Voice and message listener Cog for VoiceWarden.

Adapts the py-cord gateway events into the host-agnostic pipeline:

- ``on_ready`` loads persisted state and initializes the module registry once.
- ``on_voice_state_update`` is forwarded to every module.
- ``on_message`` runs the module message hooks and reply classification,
  then offers the message to the external command router.
"""

from __future__ import annotations

import discord
from discord.ext import commands

from voicewarden.bot.message_adapter import adapt_message
from voicewarden.core.app_context import AppContext
from voicewarden.datatypes.message_datatypes import VoiceStateChange
from voicewarden.util.logger import get_logger

logger = get_logger("voice_listener_cog")


def _channel_id(state: discord.VoiceState | None) -> str | None:
    if state is None or state.channel is None:
        return None
    return str(state.channel.id)


class VoiceListenerCog(commands.Cog):
    """Cog feeding gateway events into the module registry and the router."""

    def __init__(self, discord_bot_instance: discord.Bot, context: AppContext) -> None:
        self.bot = discord_bot_instance
        self.context = context
        logger.info("Voice listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        """Start the pipeline on the first ready event; reconnects only log."""
        if self.bot.user:
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("Bot partially connected, but user information not yet available.")

        registry = self.context.registry
        if registry.is_initialized:
            logger.info("Reconnected; modules already running")
            return

        await self.context.state.load()
        registry.init(self.context)
        logger.info("--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--")

    @commands.Cog.listener(name="on_voice_state_update")
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if not self.context.registry.is_initialized:
            return
        guild_id = str(member.guild.id)
        configured_guild = self.context.settings.guild_id
        if configured_guild and guild_id != configured_guild:
            return

        change = VoiceStateChange(
            user_id=str(member.id),
            old_channel_id=_channel_id(before),
            new_channel_id=_channel_id(after),
            guild_id=guild_id,
        )
        if change.old_channel_id == change.new_channel_id:
            return
        self.context.registry.dispatch_voice_state_update(change)

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        if not self.context.registry.is_initialized:
            return
        chat_message = await adapt_message(message)
        self.context.registry.dispatch_message_create(chat_message)
        if self.context.router is not None:
            await self.context.router.handle(chat_message)


def setup(discord_bot_instance: discord.Bot, context: AppContext) -> None:
    """Register the VoiceListenerCog with the bot."""
    discord_bot_instance.add_cog(VoiceListenerCog(discord_bot_instance, context))
