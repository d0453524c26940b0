"""Tests for claiming disbanded channels."""

import pytest

from conftest import ALICE, BOB, ME, VOICE, queued_commands, start_modules

from voicewarden.datatypes.event_datatypes import CoreEvent, ManagedChannelEvent, UserLeftOwnedChannel
from voicewarden.modules.auto_claim import AutoClaimModule


@pytest.fixture
def auto_claim(context, host):
    context.settings.set("auto_claim_disbanded", True)
    host.join(ME, VOICE)
    host.join(BOB, VOICE)
    context.state.set_ownership(VOICE, {"creator_id": ALICE})
    start_modules(context, AutoClaimModule())
    return context.module("AutoClaimModule")


def test_claims_when_no_owner_is_present(context, auto_claim):
    context.queue.enqueue("!v kick 1", VOICE, priority=True)
    assert auto_claim.check_and_claim_if_disbanded(VOICE)
    assert queued_commands(context)[0] == "!v claim"


def test_no_claim_while_creator_is_present(context, host, auto_claim):
    host.join(ALICE, VOICE)
    assert not auto_claim.check_and_claim_if_disbanded(VOICE)


def test_no_claim_while_claimant_is_present(context, host, auto_claim):
    context.state.set_ownership(VOICE, {"claimant_id": BOB})
    assert not auto_claim.check_and_claim_if_disbanded(VOICE)


def test_no_claim_when_i_am_elsewhere(context, host, auto_claim):
    host.leave(ME)
    assert not auto_claim.check_and_claim_if_disbanded(VOICE)


def test_no_claim_without_ownership(context, auto_claim):
    context.state.set_ownership(VOICE, None)
    assert not auto_claim.check_and_claim_if_disbanded(VOICE)


def test_owner_leaving_triggers_claim(context, auto_claim):
    context.registry.dispatch(CoreEvent.USER_LEFT_OWNED_CHANNEL, UserLeftOwnedChannel(VOICE, ALICE))
    assert queued_commands(context) == ["!v claim"]


def test_non_owner_leaving_is_ignored(context, auto_claim):
    context.registry.dispatch(CoreEvent.USER_LEFT_OWNED_CHANNEL, UserLeftOwnedChannel(VOICE, BOB))
    assert queued_commands(context) == []


def test_disabled_setting_does_nothing(context, auto_claim):
    context.settings.set("auto_claim_disbanded", False)
    context.registry.dispatch(CoreEvent.USER_LEFT_OWNED_CHANNEL, UserLeftOwnedChannel(VOICE, ALICE))
    assert queued_commands(context) == []


def test_local_join_without_loop_checks_immediately(context, auto_claim):
    context.registry.dispatch(CoreEvent.LOCAL_USER_JOINED_MANAGED_CHANNEL, ManagedChannelEvent(VOICE))
    assert queued_commands(context) == ["!v claim"]


@pytest.mark.asyncio
async def test_local_join_schedules_delayed_check(context, auto_claim):
    context.registry.dispatch(CoreEvent.LOCAL_USER_JOINED_MANAGED_CHANNEL, ManagedChannelEvent(VOICE))
    assert context.scheduler.is_scheduled("AutoClaimModule", VOICE)
    auto_claim.stop()
    assert not context.scheduler.is_scheduled("AutoClaimModule", VOICE)
    await context.scheduler.shutdown()


def test_toolbox_toggle(context, auto_claim):
    [item] = context.registry.collect_toolbox_items(VOICE)
    assert item.checked
    item.action()
    assert not context.settings.get("auto_claim_disbanded")
