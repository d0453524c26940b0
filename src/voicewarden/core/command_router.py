"""
Inbound remote control: chat text addressed to the local actor.

A message is a remote command when it starts with the configured prefix
(outside direct messages) or with a mention of the local actor. The text
after the trigger is matched against every command contributed by the
registered modules, longest name first, so "kick banned" wins over "kick".

Authorization happens in two layers. Senders other than the local actor may
only control the bot while it sits in a voice channel it owns; after that,
each command's own permission check applies. If one implementation of a
command name refuses the sender, other implementations of the same name are
tried before a single rejection notice is emitted.

All diagnostics are local-only notices; nothing is ever posted publicly.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from voicewarden.datatypes.command_datatypes import CommandArgs, ExternalCommand, OptionType
from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.util.channels import find_associated_text_channel
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("command_router")

COMMAND_TIMEOUT_SECONDS = 10.0

# IDs that never belong to a real user (system / placeholder authors).
IGNORED_AUTHOR_IDS = frozenset({"0", "1"})

_ID_PATTERN = re.compile(r"^<(?:@[!&]?|#)(\d+)>$|^(\d+)$")
_TRUE_VALUES = frozenset({"true", "1", "yes"})


@dataclass(slots=True)
class _CommandEntry:
    name: str
    command: ExternalCommand


def extract_id(token: str) -> str | None:
    """Return the bare ID of a user/role/channel mention or a numeric token."""
    match = _ID_PATTERN.match(token.strip())
    if not match:
        return None
    return match.group(1) or match.group(2)


def coerce_number(token: str, integer: bool = False) -> float | int:
    """Numeric coercion; invalid input yields NaN, which callers must check for."""
    try:
        value = float(token)
    except (TypeError, ValueError):
        return math.nan
    if integer and value.is_integer():
        return int(value)
    return value


def is_valid_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def coerce_argument(token: str, option_type: OptionType) -> Any:
    if option_type in (OptionType.USER, OptionType.MENTIONABLE):
        return extract_id(token)
    if option_type is OptionType.INTEGER:
        return coerce_number(token, integer=True)
    if option_type is OptionType.NUMBER:
        return coerce_number(token)
    if option_type is OptionType.BOOLEAN:
        return token.lower() in _TRUE_VALUES
    return token


class MissingArgumentError(ValueError):
    def __init__(self, option_name: str) -> None:
        super().__init__(option_name)
        self.option_name = option_name


def parse_arguments(command: ExternalCommand, arg_text: str) -> CommandArgs:
    """Map whitespace-separated tokens onto the command's options in order.

    A STRING option in last position takes the remainder of the text. Missing
    optional options are left out of the result.

    Raises
    ------
    MissingArgumentError
        When a required option has no token.
    """
    tokens = arg_text.split()
    args: CommandArgs = {}

    for index, option in enumerate(command.options):
        is_last = index == len(command.options) - 1
        if is_last and option.type is OptionType.STRING and index < len(tokens):
            value: Any = " ".join(tokens[index:])
        elif index < len(tokens):
            value = coerce_argument(tokens[index], option.type)
        else:
            value = None

        if value is None or value == "":
            if option.required:
                raise MissingArgumentError(option.name)
            continue
        args[option.name] = value

    return args


class ExternalCommandRouter:
    """Parses, authorizes and runs remote commands."""

    def __init__(self, context: AppContext, timeout: float = COMMAND_TIMEOUT_SECONDS) -> None:
        self.context = context
        self.timeout = timeout

    # ==================== Trigger detection ====================

    def _strip_trigger(self, message: ChatMessage, me: str) -> str | None:
        content = (message.content or "").strip()
        prefix = str(self.context.settings.get("external_command_prefix") or "")

        if prefix and not message.is_direct and content.lower().startswith(prefix.lower()):
            return content[len(prefix):].strip()

        for mention in (f"<@{me}>", f"<@!{me}>"):
            if content.startswith(mention):
                return content[len(mention):].strip()

        return None

    # ==================== Authorization / targeting ====================

    def _reject(self, text: str, channel_id: str) -> None:
        logger.info("[COMMAND ROUTER] %s", text)
        self.context.notifier.send_local(text, channel_id)

    def _authorize_sender(self, message: ChatMessage, me: str) -> bool:
        if message.author_id == me:
            return True

        my_channel_id = self.context.host.my_voice_channel_id()
        if not my_channel_id:
            self._reject("❌ Command rejected: I am not in a voice channel.", message.channel_id)
            return False

        if not self.context.is_me_owner(my_channel_id):
            self._reject(
                "❌ Command rejected: You can only control my voice channel when I am the owner of it.",
                message.channel_id,
            )
            return False

        return True

    def _resolve_target_channel(self, message: ChatMessage) -> str | None:
        """Channel a command acts on; direct messages are re-targeted to my managed channel."""
        if not message.is_direct:
            return message.channel_id

        settings = self.context.settings
        host = self.context.host
        my_channel_id = host.my_voice_channel_id()
        channel = host.get_channel(my_channel_id) if my_channel_id else None

        in_managed_channel = (
            channel is not None
            and (not settings.guild_id or channel.guild_id == settings.guild_id)
            and (not settings.category_id or channel.parent_id == settings.category_id)
        )
        if not in_managed_channel:
            self._reject("❌ Command rejected: I am not in a managed voice channel.", message.channel_id)
            return None

        text_channel_id = find_associated_text_channel(host, my_channel_id)  # type: ignore[arg-type]
        if not text_channel_id:
            self._reject("❌ Command rejected: No text channel found for my voice channel.", message.channel_id)
            return None
        return text_channel_id

    # ==================== Matching ====================

    def _sorted_entries(self) -> list[_CommandEntry]:
        entries = [
            _CommandEntry(name=name.lower(), command=command)
            for command in self.context.registry.collect_external_commands()
            for name in command.names
        ]
        entries.sort(key=lambda entry: len(entry.name), reverse=True)
        return entries

    @staticmethod
    def _matches(text: str, name: str) -> bool:
        lowered = text.lower()
        return lowered == name or lowered.startswith(name + " ")

    # ==================== Entry point ====================

    async def handle(self, message: ChatMessage) -> bool:
        """Process one incoming message; returns True when a command ran."""
        me = self.context.me
        if not me or not self.context.settings.get("enabled", True):
            return False
        if message.author_id in IGNORED_AUTHOR_IDS:
            return False
        if message.author_is_bot and message.author_id != me:
            return False

        command_text = self._strip_trigger(message, me)
        if not command_text:
            return False

        entries = self._sorted_entries()
        if not any(self._matches(command_text, entry.name) for entry in entries):
            return False

        if not self._authorize_sender(message, me):
            return False

        channel_id = self._resolve_target_channel(message)
        if channel_id is None:
            return False

        rejected_name: str | None = None
        for entry in entries:
            if rejected_name is not None and entry.name != rejected_name:
                continue
            if not self._matches(command_text, entry.name):
                continue

            command = entry.command
            if command.check_permission is not None:
                try:
                    permitted = bool(command.check_permission(message))
                except Exception:
                    logger.exception("[COMMAND ROUTER] Permission check for %s raised", entry.name)
                    permitted = False
                if not permitted:
                    rejected_name = entry.name
                    continue

            arg_text = command_text[len(entry.name):].strip()
            try:
                args = parse_arguments(command, arg_text)
            except MissingArgumentError as exc:
                self._reject(
                    f"⚠️ Missing required argument `{exc.option_name}` for command `{entry.name}`",
                    message.channel_id,
                )
                return False

            return await self._execute(entry.name, command, args, message, channel_id)

        if rejected_name is not None:
            self._reject(f"🛑 Rejected command from <@{message.author_id}> (Missing Permissions)", message.channel_id)
        return False

    async def _execute(
        self,
        name: str,
        command: ExternalCommand,
        args: CommandArgs,
        message: ChatMessage,
        channel_id: str,
    ) -> bool:
        logger.info("[COMMAND ROUTER] Running `%s` from %s with %s", name, message.author_id, args)
        self.context.notifier.send_debug(
            f"✅ Forwarding command `{name}` from <@{message.author_id}>", message.channel_id
        )

        async def invoke() -> Any:
            result = command.execute(args, message, channel_id)
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            await asyncio.wait_for(invoke(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[COMMAND ROUTER] Command `%s` timed out", name)
            self._reject(f"⏳ Command `{name}` timed out", message.channel_id)
            return False
        except Exception as exc:
            logger.exception("[COMMAND ROUTER] Command `%s` failed", name)
            self._reject(f"❌ Error: {exc}", message.channel_id)
            return False
        return True
