"""Tests for deleting sent command messages."""

import asyncio

import pytest

from conftest import ME, VOICE, make_message, start_modules

from voicewarden.datatypes.event_datatypes import ActionEvent, CoreEvent
from voicewarden.datatypes.queue_datatypes import ActionQueueItem
from voicewarden.modules.command_cleanup import CommandCleanupModule, normalize_command


@pytest.fixture
def cleanup(context):
    context.settings.set("command_cleanup_delay", 0)
    start_modules(context, CommandCleanupModule())
    return context.module("CommandCleanupModule")


def test_normalize_command():
    assert normalize_command("  !V Lock ") == "!v lock"
    assert normalize_command(None) == ""


def test_delay_is_read_in_milliseconds(context, cleanup):
    context.settings.set("command_cleanup_delay", 2500)
    assert cleanup.delay_seconds() == 2.5
    context.settings.set("command_cleanup_delay", "soon")
    assert cleanup.delay_seconds() == 1.0


@pytest.mark.asyncio
async def test_sent_command_is_deleted(context, host, cleanup):
    context.queue.enqueue("!v lock", VOICE)
    await context.queue.wait_until_idle()
    await asyncio.sleep(0.01)
    assert host.deleted == [(VOICE, host.sent[0].id)]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_command_without_reply_id_is_matched_by_text(context, host, cleanup):
    item = ActionQueueItem(command="!v lock", channel_id=VOICE)
    context.registry.dispatch(CoreEvent.ACTION_EXECUTED, ActionEvent(item=item))
    assert cleanup.pending_commands == {VOICE: {"!v lock"}}

    cleanup.on_message_create(make_message("!V Lock", author_id=ME, message_id="990000000000000077"))
    assert cleanup.pending_commands == {}
    await asyncio.sleep(0.01)
    assert host.deleted == [(VOICE, "990000000000000077")]
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_messages_from_others_are_not_deleted(context, host, cleanup):
    item = ActionQueueItem(command="!v lock", channel_id=VOICE)
    context.registry.dispatch(CoreEvent.ACTION_EXECUTED, ActionEvent(item=item))
    cleanup.on_message_create(make_message("!v lock"))
    await asyncio.sleep(0.01)
    assert host.deleted == []
    assert cleanup.pending_commands == {VOICE: {"!v lock"}}
    await context.scheduler.shutdown()


@pytest.mark.asyncio
async def test_disabled_cleanup_tracks_nothing(context, host, cleanup):
    context.settings.set("command_cleanup", False)
    context.queue.enqueue("!v lock", VOICE)
    await context.queue.wait_until_idle()
    await asyncio.sleep(0.01)
    assert host.deleted == []
    assert cleanup.pending_commands == {}
