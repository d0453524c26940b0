"""
Heuristic classification of the external voice bot's replies.

The external bot has no stable protocol; its replies are recognised by
case-insensitive phrases in the rich reply (title, author name, description)
or the plain text. Phrase rules are checked in a fixed order and the first
matching rule decides the type, so specific phrases must come before the
broader phrases they contain ("unbanned successfully" before "banned
successfully", "channel unlocked" before "channel locked").

Within a rule, fields are searched title, author name, description, plain
content. A rule limited to some fields ignores the others: "channel settings"
only counts in the title or author so that help text listing the command is
not taken for an info reply. Lock and size replies need their full phrase
or the bot's underlined description marker, so "blocked" is not a lock.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
import time

from voicewarden.datatypes.event_datatypes import BotResponseType, ClassifiedResponse
from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.datatypes.state_datatypes import ChannelInfo
from voicewarden.util.logger import get_logger

logger = get_logger("bot_response")

MENTION_PATTERN = re.compile(r"<@!?(\d+)>")
AVATAR_ID_PATTERN = re.compile(r"/avatars/(\d+)/")
RAW_NAME_PATTERN = re.compile(r"@([a-zA-Z0-9_.]+)")

TITLE = "title"
AUTHOR = "author"
DESCRIPTION = "description"
CONTENT = "content"
ALL_FIELDS = (TITLE, AUTHOR, DESCRIPTION, CONTENT)
HEADER_FIELDS = (TITLE, AUTHOR)


@dataclass(frozen=True, slots=True)
class PhraseRule:
    type: BotResponseType
    phrase: str
    fields: tuple[str, ...] = ALL_FIELDS


PHRASE_RULES: tuple[PhraseRule, ...] = (
    PhraseRule(BotResponseType.CREATED, "channel created"),
    PhraseRule(BotResponseType.CLAIMED, "channel claimed"),
    PhraseRule(BotResponseType.INFO, "channel settings", HEADER_FIELDS),
    PhraseRule(BotResponseType.INFO, "channel info updated"),
    PhraseRule(BotResponseType.UNBANNED, "unbanned successfully", HEADER_FIELDS),
    PhraseRule(BotResponseType.UNBANNED, "__unbanned__", (DESCRIPTION,)),
    PhraseRule(BotResponseType.BANNED, "banned successfully", HEADER_FIELDS),
    PhraseRule(BotResponseType.BANNED, "__banned__", (DESCRIPTION,)),
    PhraseRule(BotResponseType.UNPERMITTED, "unpermitted successfully", HEADER_FIELDS),
    PhraseRule(BotResponseType.UNPERMITTED, "__unpermitted", (DESCRIPTION,)),
    PhraseRule(BotResponseType.PERMITTED, "permitted successfully", HEADER_FIELDS),
    PhraseRule(BotResponseType.PERMITTED, "__permitted", (DESCRIPTION,)),
    PhraseRule(BotResponseType.SIZE_SET, "__channel size__", (DESCRIPTION,)),
    PhraseRule(BotResponseType.SIZE_SET, "size set", HEADER_FIELDS),
    PhraseRule(BotResponseType.UNLOCKED, "__unlocked__", (DESCRIPTION,)),
    PhraseRule(BotResponseType.UNLOCKED, "channel unlocked", HEADER_FIELDS + (CONTENT,)),
    PhraseRule(BotResponseType.LOCKED, "__locked__", (DESCRIPTION,)),
    PhraseRule(BotResponseType.LOCKED, "channel locked", HEADER_FIELDS + (CONTENT,)),
)

# Phrases that mark a generic help or error reply.
EXCLUSIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("error", HEADER_FIELDS),
    ("voice help", (AUTHOR,)),
)

# Types for which the reply does not name a target user.
TARGETLESS_TYPES = frozenset({
    BotResponseType.INFO,
    BotResponseType.CREATED,
    BotResponseType.CLAIMED,
    BotResponseType.SIZE_SET,
    BotResponseType.LOCKED,
    BotResponseType.UNLOCKED,
})


def _fields(message: ChatMessage) -> dict[str, str]:
    embed = message.embed
    return {
        TITLE: (embed.title if embed else "").lower(),
        AUTHOR: (embed.author_name if embed else "").lower(),
        DESCRIPTION: (embed.description if embed else "").lower(),
        CONTENT: (message.content or "").lower(),
    }


def _contains(fields: dict[str, str], phrase: str, names: tuple[str, ...]) -> bool:
    return any(phrase in fields[name] for name in names)


def classify_type(message: ChatMessage) -> BotResponseType:
    """Return the reply type alone, without actor extraction."""
    fields = _fields(message)

    for phrase, names in EXCLUSIONS:
        if _contains(fields, phrase, names):
            return BotResponseType.UNKNOWN

    for rule in PHRASE_RULES:
        if _contains(fields, rule.phrase, rule.fields):
            return rule.type

    return BotResponseType.UNKNOWN


def _first_mention(text: str | None) -> str | None:
    if not text:
        return None
    match = MENTION_PATTERN.search(text)
    return match.group(1) if match else None


def _avatar_user_id(icon_url: str | None) -> str | None:
    if not icon_url:
        return None
    match = AVATAR_ID_PATTERN.search(icon_url)
    return match.group(1) if match else None


def _find_initiator(message: ChatMessage, response_type: BotResponseType) -> str | None:
    """Layered initiator lookup.

    Creation replies mention the creator explicitly; other replies are
    attributed through the author icon (the bot sets it to the acting user's
    avatar) and finally through the replied-to command message.
    """
    embed = message.embed
    description = embed.description if embed else ""

    if response_type is BotResponseType.CREATED:
        if message.mention_ids:
            return message.mention_ids[0]
        mentioned = _first_mention(message.content) or _first_mention(description)
        if mentioned:
            return mentioned

    avatar_id = _avatar_user_id(embed.author_icon_url if embed else None)
    if avatar_id:
        return avatar_id

    if response_type is BotResponseType.CREATED and embed:
        mentioned = _first_mention(embed.author_name)
        if mentioned:
            return mentioned

    return message.referenced_author_id


def _find_target(message: ChatMessage, response_type: BotResponseType) -> str | None:
    """Target lookup; the trailing "@name" fallback is a display name, not an ID."""
    if response_type in TARGETLESS_TYPES or response_type is BotResponseType.UNKNOWN:
        return None

    embed = message.embed
    description = embed.description if embed else ""

    mentioned = _first_mention(description) or _first_mention(message.content)
    if mentioned:
        return mentioned

    if message.mention_ids:
        return message.mention_ids[-1]

    for text in (description, message.content):
        if text:
            match = RAW_NAME_PATTERN.search(text)
            if match:
                return f"@{match.group(1)}"

    return None


def classify(message: ChatMessage, bot_id: str | None = None) -> ClassifiedResponse:
    """Classify a reply and extract its initiator and target.

    Parameters
    ----------
    message:
        The received message.
    bot_id:
        ID of the external bot. When given, messages from any other author
        are returned as UNKNOWN without inspection.
    """
    if bot_id and message.author_id != bot_id:
        response_type = BotResponseType.UNKNOWN
    else:
        response_type = classify_type(message)

    initiator_id = None
    target_id = None
    if response_type is not BotResponseType.UNKNOWN:
        initiator_id = _find_initiator(message, response_type)
        target_id = _find_target(message, response_type)

    return ClassifiedResponse(
        type=response_type,
        channel_id=message.channel_id,
        message_id=message.message_id,
        timestamp=message.created_at or time.time(),
        raw=message,
        initiator_id=initiator_id,
        target_id=target_id,
    )


# ==================== Info reply parsing ====================

_NAME_PATTERN = re.compile(r"\*\*Name:\*\* (.*)")
_LIMIT_PATTERN = re.compile(r"\*\*Limit:\*\* (\d+)")
_STATUS_PATTERN = re.compile(r"\*\*Status:\*\* (.*)")


def parse_channel_info(raw_description: str) -> ChannelInfo | None:
    """Read name, limit, status and the permitted/banned lists from an info reply.

    The lists follow ``**Permitted**`` / ``**Banned**`` headers as quoted
    mention lines (``> <@123>``). A list stays None when its header is absent,
    so callers can tell "nobody banned" from "not reported".
    """
    if not raw_description:
        return None

    info = ChannelInfo()

    if match := _NAME_PATTERN.search(raw_description):
        info.name = match.group(1).strip()
    if match := _LIMIT_PATTERN.search(raw_description):
        info.limit = int(match.group(1))
    if match := _STATUS_PATTERN.search(raw_description):
        info.status = match.group(1).strip()

    section: list[str] | None = None
    for line in raw_description.splitlines():
        line = line.strip()
        if "**Permitted**" in line:
            info.permitted = section = []
            continue
        if "**Banned**" in line:
            info.banned = section = []
            continue
        if section is not None and line.startswith("> <@"):
            user_id = _first_mention(line)
            if user_id:
                section.append(user_id)

    logger.debug("[BOT RESPONSE] Parsed channel info: %s", info)
    return info
