"""Tests for remote control commands."""

from unittest.mock import MagicMock

import pytest

from conftest import ALICE, BOB, CAROL, ME, VOICE, make_message, queued_commands, start_modules

from voicewarden.modules import build_default_modules


@pytest.fixture
def remote(context, host):
    context.settings.set("queue_enabled", False)
    context.settings.set("remote_operator_list", f"{ALICE}\n")
    host.join(ME, VOICE)
    context.state.set_ownership(VOICE, {"creator_id": ME})
    start_modules(context, *build_default_modules())
    context.queue.clear()
    context.notifier.send_local = MagicMock()
    yield context.module("RemoteOperatorsModule")
    context.registry.stop()


async def send(context, content, author_id=ALICE):
    return await context.router.handle(make_message(content, author_id=author_id))


def last_notice(context):
    return context.notifier.send_local.call_args.args[0]


@pytest.mark.asyncio
async def test_operator_can_lock(context, remote):
    assert await send(context, "@lock")
    assert queued_commands(context) == ["!v lock"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_non_operator_is_rejected(context, remote):
    assert not await send(context, "@lock", author_id=BOB)
    assert queued_commands(context) == []
    assert last_notice(context) == f"🛑 Rejected command from <@{BOB}> (Missing Permissions)"
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_disabled_operators_are_rejected(context, remote):
    context.settings.set("remote_operators_enabled", False)
    assert not await send(context, "@unlock")
    assert queued_commands(context) == []
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_info_is_open_to_anyone(context, remote):
    assert await send(context, "@info", author_id=BOB)
    assert queued_commands(context) == ["!v info"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_channel_owner_needs_no_operator_entry(context, remote):
    context.state.set_ownership(VOICE, {"claimant_id": BOB})
    assert await send(context, "@reset", author_id=BOB)
    assert queued_commands(context) == ["!v reset"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_size_must_be_a_number(context, remote):
    await send(context, "@size lots")
    assert queued_commands(context) == []
    assert last_notice(context) == "⚠️ Size must be a number"

    assert await send(context, "@size 4")
    assert queued_commands(context) == ["!v limit 4"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_name_takes_the_rest_of_the_text(context, remote):
    assert await send(context, "@name Cozy Corner")
    assert queued_commands(context) == ["!v name Cozy Corner"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_kick_banned_kicks_present_banned_users(context, host, remote):
    host.join(CAROL, VOICE)
    host.join(BOB, VOICE)
    context.state.update_member_config(ME, banned_users=[CAROL])
    assert await send(context, "@kick banned")
    assert queued_commands(context) == [f"!v kick {CAROL}"]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_ban_kicks_first_and_blacklists(context, host, remote):
    host.join(BOB, VOICE)
    assert await send(context, f"@ban <@{BOB}>")
    assert queued_commands(context) == [f"!v kick {BOB}"]
    assert context.module("BlacklistModule").is_blacklisted(BOB)
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_whitelist_by_mention(context, remote):
    assert await send(context, f"@whitelist <@{CAROL}>")
    assert context.module("WhitelistModule").is_whitelisted(CAROL)
    await context.scheduler.shutdown()


def test_permission_follows_message_channel(context, remote):
    assert remote.check_permission(make_message("", author_id=ALICE))
    assert not remote.check_permission(make_message("", author_id=BOB))
    assert remote.check_permission(make_message("", author_id=ME))


def test_command_set(remote):
    names = [command.name for command in remote.get_external_commands()]
    assert len(names) == 17
    assert {"kick banned", "size", "name", "unblacklist"} <= set(names)
