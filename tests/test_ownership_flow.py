"""End-to-end tests: voice movements and bot replies flowing through every module."""

from unittest.mock import MagicMock

import pytest

from conftest import (
    ALICE,
    BOB,
    CREATION,
    EXTERNAL_BOT,
    GUILD,
    ME,
    VOICE,
    make_message,
    queued_commands,
    start_modules,
)

from voicewarden.datatypes.event_datatypes import CoreEvent
from voicewarden.datatypes.message_datatypes import ReplyEmbed, VoiceStateChange
from voicewarden.modules import build_default_modules


def move(context, host, user_id, old, new):
    if new is None:
        host.leave(user_id)
    else:
        host.join(user_id, new)
    context.registry.dispatch_voice_state_update(VoiceStateChange(user_id, old, new, GUILD))


def claim_reply(initiator, created_at=1000.0):
    message = make_message(
        author_id=EXTERNAL_BOT,
        embed=ReplyEmbed(title="Channel Claimed"),
        created_at=created_at,
    )
    message.referenced_author_id = initiator
    return message


@pytest.fixture
def running(context):
    start_modules(context, *build_default_modules())
    yield context
    context.registry.stop()


def ownership_module(context):
    return context.module("OwnershipModule")


def test_joining_unknown_channel_requests_info(running, host):
    joined = []
    running.registry.on(CoreEvent.LOCAL_USER_JOINED_MANAGED_CHANNEL, lambda p: joined.append(p.channel_id))
    move(running, host, ME, None, VOICE)
    assert joined == [VOICE]
    assert queued_commands(running) == ["!v info"]


def test_joining_creation_channel_requests_nothing(running, host):
    move(running, host, ME, None, CREATION)
    assert queued_commands(running) == []


def test_claim_reply_records_ownership(running, host):
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))
    assert running.is_me_owner(VOICE)


@pytest.mark.asyncio
async def test_created_reply_after_join_starts_rotation(running, host):
    running.settings.set("channel_name_rotation_names", "Lobby\nGarden")
    move(running, host, ME, None, VOICE)
    assert queued_commands(running) == ["!v info"]
    running.notifier.send_local = MagicMock()

    created = make_message(f"<@{ME}>", author_id=EXTERNAL_BOT, embed=ReplyEmbed(title="Channel Created"))
    running.registry.dispatch_message_create(created)

    ownership = running.state.get_ownership(VOICE)
    assert ownership.creator_id == ME
    assert running.is_me_owner(VOICE)
    assert running.module("ChannelNameRotationModule").is_rotating(VOICE)
    running.notifier.send_local.assert_called_once()
    assert f"<@{ME}> is now the owner" in running.notifier.send_local.call_args.args[0]
    await running.queue.shutdown()
    await running.scheduler.shutdown()


@pytest.mark.asyncio
async def test_running_rotation_is_not_restarted(running, host):
    running.settings.set("channel_name_rotation_names", "Lobby\nGarden")
    rotation = running.module("ChannelNameRotationModule")
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))
    assert rotation.is_rotating(VOICE)

    rotation.start_rotation = MagicMock(wraps=rotation.start_rotation)
    running.registry.dispatch_message_create(claim_reply(ME, created_at=2000.0))
    move(running, host, ME, None, VOICE)

    rotation.start_rotation.assert_not_called()
    assert rotation.is_rotating(VOICE)
    await running.queue.shutdown()
    await running.scheduler.shutdown()


def test_blacklisted_user_is_kicked_then_banned(running, host):
    running.settings.set("local_user_blacklist", [ALICE])
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))

    move(running, host, ALICE, None, VOICE)
    assert f"!v kick {ALICE}" in queued_commands(running)

    move(running, host, ALICE, VOICE, None)
    move(running, host, ALICE, None, VOICE)
    assert f"!v ban {ALICE}" in queued_commands(running)
    assert running.state.get_member_config(ME).banned_users == [ALICE]


def test_whitelisted_user_is_never_kicked(running, host):
    running.settings.set("local_user_blacklist", [ALICE])
    running.settings.set("local_user_whitelist", [ALICE])
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))

    payload = ownership_module(running).handle_user_joined(ALICE, VOICE)
    assert payload.is_allowed
    assert payload.reason == "Whitelisted"
    assert f"!v kick {ALICE}" not in queued_commands(running)


def test_join_in_channel_i_am_not_in_is_ignored(running, host):
    running.state.set_ownership(VOICE, {"creator_id": BOB})
    assert ownership_module(running).handle_user_joined(ALICE, VOICE) is None


def test_empty_channel_forgets_ownership(running, host):
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))
    move(running, host, BOB, None, VOICE)

    move(running, host, BOB, VOICE, None)
    assert running.state.get_ownership(VOICE) is not None

    move(running, host, ME, VOICE, None)
    assert running.state.get_ownership(VOICE) is None


def test_user_left_owned_channel_is_broadcast(running, host):
    left = []
    running.registry.on(CoreEvent.USER_LEFT_OWNED_CHANNEL, lambda p: left.append(p.user_id))
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))
    move(running, host, BOB, None, VOICE)
    move(running, host, BOB, VOICE, None)
    assert left == [BOB]


def test_owner_leaving_triggers_auto_claim(running, host):
    running.settings.set("auto_claim_disbanded", True)
    move(running, host, ME, None, VOICE)
    move(running, host, ALICE, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ALICE))

    move(running, host, ALICE, VOICE, None)
    assert running.queue.pending()[0].command == "!v claim"


def test_kick_banned_users(running, host):
    move(running, host, ME, None, VOICE)
    running.registry.dispatch_message_create(claim_reply(ME))
    running.state.update_member_config(ME, banned_users=[BOB])
    host.join(BOB, VOICE)

    actions = ownership_module(running).actions
    assert actions.kick_banned_users(VOICE) == 1
    assert f"!v kick {BOB}" in queued_commands(running)


@pytest.mark.asyncio
async def test_find_or_create_joins_my_existing_channel(context, host):
    start_modules(context, *build_default_modules())
    context.state.set_ownership(VOICE, {"creator_id": ME, "created_at": 10.0})
    joined = await ownership_module(context).actions.find_or_create_channel()
    assert joined == VOICE
    assert host.connected == [VOICE]
    context.registry.stop()
    await context.queue.shutdown()
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_find_or_create_falls_back_to_creation_channel(context, host):
    start_modules(context, *build_default_modules())
    assert await ownership_module(context).actions.find_or_create_channel() is None
    assert host.connected == [CREATION]
    context.registry.stop()
    await context.queue.shutdown()
    await context.scheduler.shutdown()
