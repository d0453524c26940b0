"""Tests for reply classification and info parsing."""

from conftest import ALICE, BOB, EXTERNAL_BOT, ME, make_message

from voicewarden.classification.bot_response import classify, classify_type, parse_channel_info
from voicewarden.datatypes.event_datatypes import BotResponseType
from voicewarden.datatypes.message_datatypes import ReplyEmbed


def reply(content="", **embed_fields):
    embed = ReplyEmbed(**embed_fields) if embed_fields else None
    return make_message(content, author_id=EXTERNAL_BOT, embed=embed)


def test_created_initiator_from_mention():
    message = reply(f"<@{ALICE}>", title="Channel Created")
    result = classify(message, EXTERNAL_BOT)
    assert result.type is BotResponseType.CREATED
    assert result.initiator_id == ALICE
    assert result.target_id is None


def test_claimed_initiator_from_avatar_url():
    message = reply(title="Channel Claimed", author_icon_url=f"https://cdn.discordapp.com/avatars/{BOB}/hash.png")
    assert classify(message, EXTERNAL_BOT).initiator_id == BOB


def test_initiator_falls_back_to_referenced_author():
    message = reply(title="Channel Claimed")
    message.referenced_author_id = ME
    assert classify(message, EXTERNAL_BOT).initiator_id == ME


def test_specific_phrases_win_over_broad_ones():
    assert classify_type(reply(title="Unbanned Successfully")) is BotResponseType.UNBANNED
    assert classify_type(reply(title="Banned Successfully")) is BotResponseType.BANNED
    assert classify_type(reply("Channel unlocked")) is BotResponseType.UNLOCKED
    assert classify_type(reply("Channel locked")) is BotResponseType.LOCKED


def test_lock_markers_in_description():
    assert classify_type(reply(description="Your channel is now __unlocked__")) is BotResponseType.UNLOCKED
    assert classify_type(reply(description="Your channel is now __locked__")) is BotResponseType.LOCKED
    assert classify_type(reply(title="Size Set", description="7")) is BotResponseType.SIZE_SET


def test_words_containing_locked_are_unknown():
    blocked = classify(make_message("You are blocked from using this command.", author_id=EXTERNAL_BOT), EXTERNAL_BOT)
    assert blocked.type is BotResponseType.UNKNOWN
    assert classify_type(reply(title="Cooldown", description="Your request was clocked at 5s")) is BotResponseType.UNKNOWN
    assert classify_type(reply(description="Channel unlocked by someone else")) is BotResponseType.UNKNOWN
    assert classify_type(reply(description="max size set by the server")) is BotResponseType.UNKNOWN


def test_error_and_help_replies_are_unknown():
    assert classify_type(reply(title="Error", description="channel claimed")) is BotResponseType.UNKNOWN
    assert classify_type(reply(author_name="Voice Help", description="channel created")) is BotResponseType.UNKNOWN


def test_settings_phrase_only_counts_in_header():
    assert classify_type(reply(title="Channel Settings")) is BotResponseType.INFO
    assert classify_type(reply(description="use !v info to see channel settings")) is BotResponseType.UNKNOWN


def test_target_from_description_mention():
    result = classify(reply(description=f"<@{BOB}> has been __banned__"), EXTERNAL_BOT)
    assert result.type is BotResponseType.BANNED
    assert result.target_id == BOB


def test_target_display_name_fallback():
    result = classify(reply(description="__permitted__ @some.user"), EXTERNAL_BOT)
    assert result.type is BotResponseType.PERMITTED
    assert result.target_id == "@some.user"


def test_messages_from_other_authors_are_unknown():
    message = make_message("Channel Claimed", author_id=ALICE)
    assert classify(message, EXTERNAL_BOT).type is BotResponseType.UNKNOWN


def test_parse_channel_info():
    description = "\n".join([
        "**Name:** Chill Zone",
        "**Limit:** 5",
        "**Status:** 🔒 Locked",
        "**Permitted**",
        f"> <@{ALICE}>",
        f"> <@{BOB}>",
    ])
    info = parse_channel_info(description)
    assert info.name == "Chill Zone"
    assert info.limit == 5
    assert info.is_locked is True
    assert info.permitted == [ALICE, BOB]
    assert info.banned is None


def test_parse_channel_info_unlocked_and_empty():
    assert parse_channel_info("**Status:** Unlocked").is_locked is False
    assert parse_channel_info("**Name:** x").is_locked is None
    assert parse_channel_info("") is None
