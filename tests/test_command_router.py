"""Tests for remote command parsing, matching and authorization."""

import math
from unittest.mock import MagicMock

import pytest

from conftest import ALICE, BOB, CATEGORY, EXTERNAL_BOT, ME, VOICE, make_message, start_modules

from voicewarden.core.command_router import (
    MissingArgumentError,
    extract_id,
    is_valid_number,
    parse_arguments,
)
from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import CommandOption, ExternalCommand, OptionType


class CommandModule(Module):
    def __init__(self, name="CommandModule", allow=True, commands=("kick", "kick banned", "say")):
        super().__init__()
        self.name = name
        self.allow = allow
        self.command_names = commands
        self.calls = []

    def _record(self, name):
        def execute(args, message, channel_id):
            self.calls.append((name, args, channel_id))
            return True
        return execute

    def get_external_commands(self):
        options = {
            "kick": [CommandOption("target", OptionType.USER, required=True)],
            "say": [CommandOption("text", OptionType.STRING)],
        }
        return [
            ExternalCommand(
                name=name,
                execute=self._record(name),
                options=options.get(name, []),
                check_permission=lambda message: self.allow,
            )
            for name in self.command_names
        ]


@pytest.fixture
def owned(context, host):
    """Local actor sits in VOICE and owns it."""
    host.join(ME, VOICE)
    context.state.set_ownership(VOICE, {"creator_id": ME})
    context.notifier.send_local = MagicMock()
    return context


def local_notices(context):
    return [call.args[0] for call in context.notifier.send_local.call_args_list]


# ==================== Parsing ====================

def test_extract_id_variants():
    assert extract_id("<@123>") == "123"
    assert extract_id("<@!123>") == "123"
    assert extract_id("<#55>") == "55"
    assert extract_id("42") == "42"
    assert extract_id("someone") is None


def test_parse_arguments_types():
    command = ExternalCommand(
        name="x",
        execute=lambda *args: True,
        options=[
            CommandOption("who", OptionType.USER, required=True),
            CommandOption("count", OptionType.INTEGER),
            CommandOption("note", OptionType.STRING),
        ],
    )
    args = parse_arguments(command, f"<@{ALICE}> 3 rest of the text")
    assert args == {"who": ALICE, "count": 3, "note": "rest of the text"}


def test_parse_arguments_missing_required():
    command = ExternalCommand(
        name="x", execute=lambda *args: True, options=[CommandOption("who", OptionType.USER, required=True)]
    )
    with pytest.raises(MissingArgumentError) as excinfo:
        parse_arguments(command, "")
    assert excinfo.value.option_name == "who"


def test_invalid_numbers_are_nan():
    command = ExternalCommand(name="x", execute=lambda *args: True, options=[CommandOption("n", OptionType.INTEGER)])
    value = parse_arguments(command, "abc")["n"]
    assert math.isnan(value)
    assert not is_valid_number(value)
    assert not is_valid_number(True)
    assert is_valid_number(3)


# ==================== Routing ====================

@pytest.mark.asyncio
async def test_longest_command_name_wins(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert await owned.router.handle(make_message("@kick banned", author_id=ME))
    assert [call[0] for call in module.calls] == ["kick banned"]


@pytest.mark.asyncio
async def test_arguments_are_passed_to_executor(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert await owned.router.handle(make_message(f"@kick <@{BOB}>", author_id=ME))
    assert module.calls == [("kick", {"target": BOB}, VOICE)]


@pytest.mark.asyncio
async def test_mention_trigger(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert await owned.router.handle(make_message(f"<@{ME}> say hello world", author_id=ME))
    assert module.calls == [("say", {"text": "hello world"}, VOICE)]


@pytest.mark.asyncio
async def test_prefix_ignores_case(owned):
    owned.settings.set("external_command_prefix", "!vw")
    module = CommandModule()
    start_modules(owned, module)
    assert await owned.router.handle(make_message("!VW say hi", author_id=ME))
    assert module.calls == [("say", {"text": "hi"}, VOICE)]


@pytest.mark.asyncio
async def test_unknown_text_is_ignored_silently(owned):
    start_modules(owned, CommandModule())
    assert not await owned.router.handle(make_message("@dance", author_id=ALICE))
    assert local_notices(owned) == []


@pytest.mark.asyncio
async def test_other_bots_are_ignored(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert not await owned.router.handle(make_message("@say hi", author_id=EXTERNAL_BOT, author_is_bot=True))
    assert module.calls == []


@pytest.mark.asyncio
async def test_remote_sender_needs_me_in_voice(context, host):
    context.notifier.send_local = MagicMock()
    module = CommandModule()
    start_modules(context, module)
    assert not await context.router.handle(make_message("@say hi", author_id=ALICE))
    assert module.calls == []
    assert "not in a voice channel" in local_notices(context)[0]


@pytest.mark.asyncio
async def test_remote_sender_needs_me_as_owner(context, host):
    context.notifier.send_local = MagicMock()
    host.join(ME, VOICE)
    context.state.set_ownership(VOICE, {"creator_id": ALICE})
    module = CommandModule()
    start_modules(context, module)
    assert not await context.router.handle(make_message("@say hi", author_id=BOB))
    assert module.calls == []


@pytest.mark.asyncio
async def test_remote_sender_allowed_in_my_channel(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert await owned.router.handle(make_message("@say hi", author_id=ALICE))
    assert module.calls == [("say", {"text": "hi"}, VOICE)]


@pytest.mark.asyncio
async def test_permission_falls_through_to_same_name(owned):
    denied = CommandModule("Denied", allow=False, commands=("say",))
    allowed = CommandModule("Allowed", allow=True, commands=("say",))
    start_modules(owned, denied, allowed)
    assert await owned.router.handle(make_message("@say hi", author_id=ALICE))
    assert denied.calls == []
    assert len(allowed.calls) == 1


@pytest.mark.asyncio
async def test_single_rejection_when_every_implementation_refuses(owned):
    start_modules(
        owned,
        CommandModule("First", allow=False, commands=("say",)),
        CommandModule("Second", allow=False, commands=("say",)),
    )
    assert not await owned.router.handle(make_message("@say hi", author_id=ALICE))
    notices = local_notices(owned)
    assert len(notices) == 1
    assert "Missing Permissions" in notices[0]


@pytest.mark.asyncio
async def test_missing_argument_is_reported(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert not await owned.router.handle(make_message("@kick", author_id=ME))
    assert module.calls == []
    assert "Missing required argument `target`" in local_notices(owned)[0]


@pytest.mark.asyncio
async def test_executor_errors_are_reported(owned):
    class Failing(Module):
        name = "Failing"

        def get_external_commands(self):
            async def execute(args, message, channel_id):
                raise RuntimeError("exploded")
            return [ExternalCommand(name="explode", execute=execute)]

    start_modules(owned, Failing())
    assert not await owned.router.handle(make_message("@explode", author_id=ME))
    assert local_notices(owned) == ["❌ Error: exploded"]


@pytest.mark.asyncio
async def test_prefix_does_not_trigger_in_direct_messages(owned):
    module = CommandModule()
    start_modules(owned, module)
    assert not await owned.router.handle(make_message("@say hi", author_id=ME, is_direct=True))
    assert module.calls == []


@pytest.mark.asyncio
async def test_direct_message_targets_paired_text_channel(owned, host):
    text_channel = host.add_channel("610000000000000001", "Lobby", parent_id=CATEGORY, is_voice=False)
    module = CommandModule()
    start_modules(owned, module)
    message = make_message(f"<@{ME}> say hi", author_id=ME, channel_id="620000000000000001", is_direct=True)
    assert await owned.router.handle(message)
    assert module.calls == [("say", {"text": "hi"}, text_channel.channel_id)]


@pytest.mark.asyncio
async def test_direct_message_without_paired_text_channel_is_rejected(owned):
    module = CommandModule()
    start_modules(owned, module)
    message = make_message(f"<@{ME}> say hi", author_id=ME, channel_id="620000000000000001", is_direct=True)
    assert not await owned.router.handle(message)
    assert module.calls == []
    assert local_notices(owned) == ["❌ Command rejected: No text channel found for my voice channel."]
