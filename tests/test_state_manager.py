"""Tests for in-memory state and its persistence."""

import asyncio

import pytest
import pytest_asyncio

from conftest import ALICE, BOB, VOICE

from voicewarden.database.key_value_store import KeyValueStore
from voicewarden.state.state_manager import MEMBERS_KEY, OWNERS_KEY, StateManager


@pytest_asyncio.fixture
async def store(tmp_path):
    kv = KeyValueStore()
    await kv.initialize(tmp_path / "state.db")
    yield kv
    await kv.close()


def test_ownership_merge_and_remove():
    state = StateManager()
    state.set_ownership(VOICE, {"creator_id": ALICE})
    state.set_ownership(VOICE, {"claimant_id": BOB})

    ownership = state.get_ownership(VOICE)
    assert (ownership.creator_id, ownership.claimant_id) == (ALICE, BOB)
    assert ownership.current_owner_id == BOB
    assert state.is_owner(ALICE, VOICE) and state.is_owner(BOB, VOICE)
    assert [o.channel_id for o in state.get_channel_ownerships_for_user(BOB)] == [VOICE]

    assert state.set_ownership(VOICE, None) is None
    assert state.get_ownership(VOICE) is None


def test_unknown_fields_are_rejected():
    state = StateManager()
    with pytest.raises(ValueError):
        state.set_ownership(VOICE, {"owner": ALICE})
    with pytest.raises(ValueError):
        state.update_member_config(ALICE, nickname="x")


def test_update_reports_changes():
    state = StateManager()
    assert not state.has_member_config(ALICE)
    assert state.update_member_config(ALICE, user_limit=4)
    assert not state.update_member_config(ALICE, user_limit=4)
    assert state.get_member_config(ALICE).user_limit == 4


def test_reads_return_copies():
    state = StateManager()
    state.update_member_config(ALICE, banned_users=[BOB])
    state.get_member_config(ALICE).banned_users.append(VOICE)
    assert state.get_member_config(ALICE).banned_users == [BOB]

    state.set_ownership(VOICE, {"creator_id": ALICE})
    state.get_ownership(VOICE).creator_id = BOB
    assert state.get_ownership(VOICE).creator_id == ALICE


def test_reset_state_clears_everything():
    state = StateManager()
    state.set_ownership(VOICE, {"creator_id": ALICE})
    state.update_member_config(ALICE, is_locked=True)
    state.reset_state()
    assert state.get_all_active_ownerships() == {}
    assert not state.has_member_config(ALICE)


@pytest.mark.asyncio
async def test_flush_and_load_round_trip(store):
    state = StateManager(store)
    state.set_ownership(VOICE, {"creator_id": ALICE, "created_at": 1.5})
    state.update_member_config(ALICE, custom_name="Den", permitted_users=[BOB])
    assert await state.flush()

    restored = StateManager(store)
    assert await restored.load()
    assert restored.get_ownership(VOICE).created_at == 1.5
    config = restored.get_member_config(ALICE)
    assert (config.custom_name, config.permitted_users) == ("Den", [BOB])
    await state.shutdown()


@pytest.mark.asyncio
async def test_changes_are_saved_after_debounce(store):
    state = StateManager(store, debounce=0.01)
    state.set_ownership(VOICE, {"creator_id": ALICE})
    await asyncio.sleep(0.1)
    owners = await store.get(OWNERS_KEY)
    assert owners[VOICE]["creator_id"] == ALICE


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped(store):
    await store.set(OWNERS_KEY, {VOICE: {"creator_id": ALICE}, "broken": "not a mapping"})
    await store.set(MEMBERS_KEY, {ALICE: {"banned_users": 5}, BOB: {"user_limit": 2}})

    state = StateManager(store)
    assert await state.load()
    assert list(state.get_all_active_ownerships()) == [VOICE]
    assert not state.has_member_config(ALICE)
    assert state.get_member_config(BOB).user_limit == 2


@pytest.mark.asyncio
async def test_load_without_store():
    assert not await StateManager().load()
    assert not await StateManager().flush()
