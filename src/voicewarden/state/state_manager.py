"""
In-memory ownership and member configuration with debounced persistence.

All reads return copies and all writes go through the setters below, so every
mutation is a single synchronous step with no await in the middle; callbacks
interleaving on the event loop always observe a consistent state.

Writes schedule a save ``SAVE_DEBOUNCE_SECONDS`` later; further writes inside
that window are coalesced into the same save. A failed save is logged and not
retried (the next write schedules a new one).
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from voicewarden.database.key_value_store import KeyValueStore
from voicewarden.datatypes.state_datatypes import ChannelOwnership, MemberConfig
from voicewarden.util.logger import get_logger

logger = get_logger("state_manager")

OWNERS_KEY = "VoiceWarden_Owners_v3"
MEMBERS_KEY = "VoiceWarden_Members_v3"
SAVE_DEBOUNCE_SECONDS = 0.5

_OWNERSHIP_FIELDS = {"creator_id", "claimant_id", "created_at", "claimed_at"}
_MEMBER_FIELDS = {"custom_name", "user_limit", "is_locked", "banned_users", "permitted_users"}


class StateManager:
    """Owner of the channel→ownership and user→member-config maps."""

    def __init__(self, store: KeyValueStore | None = None, debounce: float = SAVE_DEBOUNCE_SECONDS) -> None:
        self.store = store
        self.debounce = debounce
        self._ownerships: dict[str, ChannelOwnership] = {}
        self._members: dict[str, MemberConfig] = {}
        self._save_task: asyncio.Task | None = None
        self._save_lock = asyncio.Lock()

    # ==================== Ownership ====================

    def get_ownership(self, channel_id: str) -> ChannelOwnership | None:
        ownership = self._ownerships.get(channel_id)
        return copy.copy(ownership) if ownership else None

    def set_ownership(self, channel_id: str, changes: dict[str, Any] | None) -> ChannelOwnership | None:
        """Merge ``changes`` into the channel's ownership; None removes the record.

        Returns the resulting ownership (a copy), or None after a removal.
        """
        if changes is None:
            if self._ownerships.pop(channel_id, None) is not None:
                logger.debug("[STATE MANAGER] Removed ownership of %s", channel_id)
                self._schedule_save()
            return None

        unknown = set(changes) - _OWNERSHIP_FIELDS - {"channel_id"}
        if unknown:
            raise ValueError(f"Unknown ownership fields: {sorted(unknown)}")

        ownership = self._ownerships.get(channel_id) or ChannelOwnership(channel_id=channel_id)
        for field_name, value in changes.items():
            if field_name != "channel_id":
                setattr(ownership, field_name, value)
        self._ownerships[channel_id] = ownership
        self._schedule_save()
        return copy.copy(ownership)

    def get_all_active_ownerships(self) -> dict[str, ChannelOwnership]:
        return {channel_id: copy.copy(o) for channel_id, o in self._ownerships.items()}

    def get_channel_ownerships_for_user(self, user_id: str) -> list[ChannelOwnership]:
        return [copy.copy(o) for o in self._ownerships.values() if o.is_owner(user_id)]

    def is_owner(self, user_id: str | None, channel_id: str | None) -> bool:
        if not user_id or not channel_id:
            return False
        ownership = self._ownerships.get(channel_id)
        return ownership is not None and ownership.is_owner(user_id)

    # ==================== Member config ====================

    def has_member_config(self, user_id: str) -> bool:
        return user_id in self._members

    def get_member_config(self, user_id: str) -> MemberConfig:
        """Return the user's config, creating a default one on first access."""
        config = self._members.get(user_id)
        if config is None:
            config = MemberConfig(user_id=user_id)
            self._members[user_id] = config
        return copy.deepcopy(config)

    def update_member_config(self, user_id: str, **changes: Any) -> bool:
        """Apply field changes; returns False (and does not save) when nothing changed."""
        unknown = set(changes) - _MEMBER_FIELDS
        if unknown:
            raise ValueError(f"Unknown member config fields: {sorted(unknown)}")

        config = self._members.get(user_id) or MemberConfig(user_id=user_id)
        self._members[user_id] = config

        changed = False
        for field_name, value in changes.items():
            if isinstance(value, list):
                value = list(value)
            if getattr(config, field_name) != value:
                setattr(config, field_name, value)
                changed = True

        if changed:
            self._schedule_save()
        return changed

    # ==================== Reset / persistence ====================

    def reset_state(self) -> None:
        self._ownerships.clear()
        self._members.clear()
        logger.info("[STATE MANAGER] State reset")
        self._schedule_save()

    def snapshot(self) -> tuple[dict[str, Any], dict[str, Any]]:
        owners = {cid: o.to_dict() for cid, o in self._ownerships.items()}
        members = {uid: m.to_dict() for uid, m in self._members.items()}
        return owners, members

    async def load(self) -> bool:
        """Replace in-memory state with the persisted snapshot."""
        if self.store is None:
            return False
        try:
            owners = await self.store.get(OWNERS_KEY, {}) or {}
            members = await self.store.get(MEMBERS_KEY, {}) or {}
        except Exception as exc:
            logger.error("[STATE MANAGER] Failed to load state: %s", exc)
            return False

        self._ownerships = {}
        for channel_id, data in owners.items():
            try:
                self._ownerships[channel_id] = ChannelOwnership.from_dict({**data, "channel_id": channel_id})
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("[STATE MANAGER] Skipping malformed ownership for %s: %s", channel_id, exc)

        self._members = {}
        for user_id, data in members.items():
            try:
                self._members[user_id] = MemberConfig.from_dict({**data, "user_id": user_id})
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("[STATE MANAGER] Skipping malformed member config for %s: %s", user_id, exc)

        logger.info(
            "[STATE MANAGER] Loaded %d ownership(s) and %d member config(s)",
            len(self._ownerships), len(self._members),
        )
        return True

    def _schedule_save(self) -> None:
        if self.store is None:
            return
        if self._save_task is not None and not self._save_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[STATE MANAGER] Cannot persist state: no running event loop")
            return
        self._save_task = loop.create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self.debounce)
        await self.flush()

    async def flush(self) -> bool:
        """Write the current state immediately."""
        if self.store is None:
            return False
        owners, members = self.snapshot()
        async with self._save_lock:
            try:
                await self.store.set(OWNERS_KEY, owners)
                await self.store.set(MEMBERS_KEY, members)
            except Exception as exc:
                logger.error("[STATE MANAGER] Failed to persist state: %s", exc)
                return False
        logger.debug("[STATE MANAGER] Persisted %d ownership(s), %d member config(s)", len(owners), len(members))
        return True

    async def shutdown(self) -> None:
        """Cancel the pending debounce and write state one last time."""
        task = self._save_task
        self._save_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.flush()
