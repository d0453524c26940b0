"""
Ownership and per-owner channel configuration records.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class ChannelOwnership:
    """Who created and who currently holds a managed voice channel.

    The claimant, when present, is the authoritative current owner; the
    creator is kept for auto-claim decisions and history.
    """
    channel_id: str
    creator_id: str | None = None
    claimant_id: str | None = None
    created_at: float | None = None
    claimed_at: float | None = None

    def is_owner(self, user_id: str | None) -> bool:
        return bool(user_id) and user_id in (self.creator_id, self.claimant_id)

    @property
    def current_owner_id(self) -> str | None:
        return self.claimant_id or self.creator_id

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChannelOwnership:
        return cls(
            channel_id=str(data["channel_id"]),
            creator_id=data.get("creator_id"),
            claimant_id=data.get("claimant_id"),
            created_at=data.get("created_at"),
            claimed_at=data.get("claimed_at"),
        )


@dataclass(slots=True)
class MemberConfig:
    """Personal channel settings of a user, following them across channel re-creation."""
    user_id: str
    custom_name: str | None = None
    user_limit: int | None = None
    is_locked: bool = False
    banned_users: list[str] = field(default_factory=list)
    permitted_users: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemberConfig:
        return cls(
            user_id=str(data["user_id"]),
            custom_name=data.get("custom_name"),
            user_limit=data.get("user_limit"),
            is_locked=bool(data.get("is_locked", False)),
            banned_users=[str(uid) for uid in data.get("banned_users", [])],
            permitted_users=[str(uid) for uid in data.get("permitted_users", [])],
        )


@dataclass(slots=True)
class ChannelInfo:
    """Channel settings read from the external bot's info reply."""
    name: str | None = None
    limit: int | None = None
    status: str | None = None
    permitted: list[str] | None = None
    banned: list[str] | None = None

    @property
    def is_locked(self) -> bool | None:
        if self.status is None:
            return None
        status = self.status.lower()
        return "locked" in status and "unlocked" not in status
