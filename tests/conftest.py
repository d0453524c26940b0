"""
Pytest configuration and fixtures for VoiceWarden tests.
"""

import itertools
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from voicewarden.configuration.app_configuration import AppConfig  # noqa: E402
from voicewarden.core.app_context import AppContext, create_context  # noqa: E402
from voicewarden.core.host import HostClient  # noqa: E402
from voicewarden.datatypes.message_datatypes import ChannelRecord, ChatMessage, ReplyEmbed  # noqa: E402

ME = "100000000000000001"
EXTERNAL_BOT = "200000000000000002"
GUILD = "300000000000000003"
CATEGORY = "400000000000000004"
CREATION = "500000000000000005"
VOICE = "600000000000000006"
OTHER_VOICE = "600000000000000007"
ALICE = "800000000000000001"
BOB = "800000000000000002"
CAROL = "800000000000000003"
DAVE = "800000000000000004"

TEST_SETTINGS = {
    "guild_id": GUILD,
    "category_id": CATEGORY,
    "creation_channel_id": CREATION,
    "bot_id": EXTERNAL_BOT,
    "queue_interval": 0.001,
    "channel_name_rotation_names": [],
}


@dataclass
class SentMessage:
    id: str
    channel_id: str
    content: str


class FakeHost(HostClient):
    """In-memory host: channels, voice membership and roles are plain dicts."""

    def __init__(self, me: str | None = ME) -> None:
        self.me = me
        self.channels: dict[str, ChannelRecord] = {}
        self.voice: dict[str, str] = {}
        self.roles: dict[str, list[str]] = {}
        self.names: dict[str, str] = {}
        self.sent: list[SentMessage] = []
        self.deleted: list[tuple[str, str]] = []
        self.connected: list[str] = []
        self._message_ids = itertools.count(900000000000000001)

        self.add_channel(CREATION, "➕ Create", is_voice=True)
        self.add_channel(VOICE, "Lobby", is_voice=True)
        self.add_channel(OTHER_VOICE, "Other", is_voice=True)

    @property
    def current_user_id(self) -> str | None:
        return self.me

    def add_channel(self, channel_id: str, name: str, parent_id: str | None = CATEGORY, is_voice: bool = True) -> ChannelRecord:
        channel = ChannelRecord(channel_id=channel_id, name=name, guild_id=GUILD, parent_id=parent_id, is_voice=is_voice)
        self.channels[channel_id] = channel
        return channel

    def join(self, user_id: str, channel_id: str) -> None:
        self.voice[user_id] = channel_id

    def leave(self, user_id: str) -> None:
        self.voice.pop(user_id, None)

    def get_voice_channel_id(self, user_id: str) -> str | None:
        return self.voice.get(user_id)

    def get_channel(self, channel_id: str) -> ChannelRecord | None:
        return self.channels.get(channel_id)

    def get_guild_channels(self, guild_id: str) -> list[ChannelRecord]:
        return [channel for channel in self.channels.values() if channel.guild_id == guild_id]

    def get_voice_members(self, channel_id: str) -> list[str]:
        return [user_id for user_id, joined in self.voice.items() if joined == channel_id]

    def get_member_roles(self, guild_id: str, user_id: str) -> list[str] | None:
        return self.roles.get(user_id)

    def get_user_name(self, user_id: str) -> str | None:
        return self.names.get(user_id)

    async def send_message(self, channel_id: str, content: str) -> SentMessage:
        message = SentMessage(id=str(next(self._message_ids)), channel_id=channel_id, content=content)
        self.sent.append(message)
        return message

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        self.deleted.append((channel_id, message_id))

    async def connect_voice(self, channel_id: str) -> bool:
        if channel_id not in self.channels:
            return False
        self.connected.append(channel_id)
        self.voice[self.me] = channel_id  # type: ignore[index]
        return True


def make_message(
    content: str = "",
    *,
    author_id: str = ALICE,
    channel_id: str = VOICE,
    message_id: str = "990000000000000001",
    embed: ReplyEmbed | None = None,
    **kwargs,
) -> ChatMessage:
    return ChatMessage(
        message_id=message_id,
        channel_id=channel_id,
        author_id=author_id,
        content=content,
        guild_id=GUILD,
        embeds=[embed] if embed is not None else [],
        **kwargs,
    )


def start_modules(context: AppContext, *modules) -> AppContext:
    """Register modules and run the registry's init."""
    for module in modules:
        context.registry.register(module)
    context.registry.init(context)
    return context


def queued_commands(context: AppContext) -> list[str]:
    return [item.command for item in context.queue.pending()]


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig(None, overrides=TEST_SETTINGS)


@pytest.fixture
def context(settings: AppConfig, host: FakeHost) -> AppContext:
    return create_context(settings, host)
