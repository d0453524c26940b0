"""Voice/text channel correlation helpers."""

from __future__ import annotations

from voicewarden.core.host import HostClient
from voicewarden.datatypes.message_datatypes import ChannelRecord


def is_managed_channel(channel: ChannelRecord | None, category_id: str, creation_channel_id: str = "") -> bool:
    """Return True for voice channels under the tracked category or the creation channel itself."""
    if channel is None:
        return False
    if creation_channel_id and channel.channel_id == creation_channel_id:
        return True
    return bool(category_id) and channel.parent_id == category_id


def find_associated_text_channel(host: HostClient, voice_channel_id: str) -> str | None:
    """Find the text channel paired with a voice channel.

    The pair is a text channel in the same category with the same name. Returns
    None when the voice channel or its pair is missing.
    """
    voice = host.get_channel(voice_channel_id)
    if voice is None:
        return None

    if voice.guild_id:
        for channel in host.get_guild_channels(voice.guild_id):
            if channel.is_voice or channel.channel_id == voice.channel_id:
                continue
            if channel.parent_id == voice.parent_id and channel.name == voice.name:
                return channel.channel_id

    return None
