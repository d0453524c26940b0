"""Tests for the py-cord adapters: message conversion, host lookups and the listener cog."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import ALICE, BOB, CATEGORY, GUILD, ME, VOICE, start_modules

from voicewarden.bot.cogs.voice_listener import VoiceListenerCog
from voicewarden.bot.discord_host import DiscordHost, to_channel_record
from voicewarden.bot.message_adapter import resolve_referenced_author, to_chat_message, to_reply_embed
from voicewarden.core.module_registry import Module


class RecorderModule(Module):
    name = "RecorderModule"

    def __init__(self):
        super().__init__()
        self.changes = []
        self.messages = []

    def on_voice_state_update(self, change):
        self.changes.append(change)

    def on_message_create(self, message):
        self.messages.append(message)


def fake_message(content="hello", *, channel=None, reference=None, embeds=(), mentions=()):
    return SimpleNamespace(
        id=990000000000000001,
        channel=channel or SimpleNamespace(id=int(VOICE)),
        author=SimpleNamespace(id=int(ALICE), name="alice", global_name="Alice", bot=False),
        content=content,
        guild=SimpleNamespace(id=int(GUILD)),
        embeds=list(embeds),
        mentions=list(mentions),
        reference=reference,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_to_reply_embed():
    embed = discord.Embed(title="Channel Info", description="Locked")
    embed.set_author(name="Owner", icon_url="https://cdn.example/avatar.png")
    reply = to_reply_embed(embed)
    assert (reply.title, reply.author_name, reply.description) == ("Channel Info", "Owner", "Locked")
    assert reply.author_icon_url == "https://cdn.example/avatar.png"


def test_to_reply_embed_without_parts():
    reply = to_reply_embed(discord.Embed())
    assert (reply.title, reply.author_name, reply.author_icon_url, reply.description) == ("", "", "", "")


def test_to_chat_message():
    message = fake_message(
        "!v lock",
        reference=SimpleNamespace(message_id=5),
        embeds=[discord.Embed(title="Done")],
        mentions=[SimpleNamespace(id=int(BOB))],
    )
    chat = to_chat_message(message, referenced_author_id=ME)

    assert chat.message_id == "990000000000000001"
    assert (chat.channel_id, chat.author_id, chat.guild_id) == (VOICE, ALICE, GUILD)
    assert chat.author_name == "Alice"
    assert not chat.is_direct
    assert chat.embed.title == "Done"
    assert chat.mention_ids == [BOB]
    assert (chat.referenced_author_id, chat.reference_message_id) == (ME, "5")
    assert chat.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()


def test_direct_messages_are_flagged():
    channel = MagicMock(spec=discord.DMChannel)
    channel.id = 42
    message = fake_message(channel=channel)
    message.guild = None
    chat = to_chat_message(message)
    assert chat.is_direct
    assert chat.guild_id is None


@pytest.mark.asyncio
async def test_referenced_author_without_reference():
    assert await resolve_referenced_author(fake_message()) is None


@pytest.mark.asyncio
async def test_referenced_author_is_fetched_when_not_cached():
    channel = SimpleNamespace(id=int(VOICE), fetch_message=AsyncMock(return_value=SimpleNamespace(author=SimpleNamespace(id=int(ME)))))
    message = fake_message(channel=channel, reference=SimpleNamespace(message_id=7, resolved=None))
    assert await resolve_referenced_author(message) == ME
    channel.fetch_message.assert_awaited_once_with(7)


@pytest.mark.asyncio
async def test_referenced_author_fetch_failure():
    response = SimpleNamespace(status=404, reason="Not Found")
    channel = SimpleNamespace(id=int(VOICE), fetch_message=AsyncMock(side_effect=discord.NotFound(response, "gone")))
    message = fake_message(channel=channel, reference=SimpleNamespace(message_id=7, resolved=None))
    assert await resolve_referenced_author(message) is None


def test_to_channel_record():
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = int(VOICE)
    channel.name = "Lobby"
    channel.guild = SimpleNamespace(id=int(GUILD))
    channel.category_id = int(CATEGORY)

    record = to_channel_record(channel)
    assert (record.channel_id, record.name, record.guild_id, record.parent_id) == (VOICE, "Lobby", GUILD, CATEGORY)
    assert record.is_voice

    text = to_channel_record(SimpleNamespace(id=1, name="chat", guild=None, category_id=None))
    assert not text.is_voice
    assert text.parent_id is None


def test_member_roles_skip_default_role():
    everyone = SimpleNamespace(id=1, is_default=lambda: True)
    member_role = SimpleNamespace(id=2, is_default=lambda: False)
    guild = SimpleNamespace(get_member=lambda user_id: SimpleNamespace(roles=[everyone, member_role]))
    bot = SimpleNamespace(get_guild=lambda guild_id: guild)

    host = DiscordHost(bot)
    assert host.get_member_roles(GUILD, ALICE) == ["2"]
    assert host.get_member_roles(GUILD, "not-an-id") is None


def test_unknown_member_has_no_roles():
    guild = SimpleNamespace(get_member=lambda user_id: None)
    host = DiscordHost(SimpleNamespace(get_guild=lambda guild_id: guild))
    assert host.get_member_roles(GUILD, ALICE) is None


def test_current_user_id():
    assert DiscordHost(SimpleNamespace(user=None)).current_user_id is None
    assert DiscordHost(SimpleNamespace(user=SimpleNamespace(id=int(ME)))).current_user_id == ME


@pytest.fixture
def cog(context):
    recorder = RecorderModule()
    start_modules(context, recorder)
    return VoiceListenerCog(MagicMock(), context), recorder


def voice_state(channel_id=None):
    return SimpleNamespace(channel=SimpleNamespace(id=int(channel_id)) if channel_id else None)


@pytest.mark.asyncio
async def test_voice_state_update_is_forwarded(cog):
    listener, recorder = cog
    member = SimpleNamespace(id=int(ALICE), guild=SimpleNamespace(id=int(GUILD)))
    await listener.on_voice_state_update(member, voice_state(), voice_state(VOICE))

    [change] = recorder.changes
    assert (change.user_id, change.old_channel_id, change.new_channel_id, change.guild_id) == (ALICE, None, VOICE, GUILD)


@pytest.mark.asyncio
async def test_voice_state_update_ignores_other_guilds_and_no_moves(cog):
    listener, recorder = cog
    member = SimpleNamespace(id=int(ALICE), guild=SimpleNamespace(id=1))
    await listener.on_voice_state_update(member, voice_state(), voice_state(VOICE))

    member = SimpleNamespace(id=int(ALICE), guild=SimpleNamespace(id=int(GUILD)))
    await listener.on_voice_state_update(member, voice_state(VOICE), voice_state(VOICE))
    assert recorder.changes == []


@pytest.mark.asyncio
async def test_message_reaches_modules_and_router(cog, context):
    listener, recorder = cog
    context.router = MagicMock(handle=AsyncMock())
    await listener.on_message(fake_message("@lock"))

    [chat] = recorder.messages
    assert chat.content == "@lock"
    context.router.handle.assert_awaited_once_with(chat)
