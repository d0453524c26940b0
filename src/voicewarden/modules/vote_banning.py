"""
Channel occupants can vote to ban someone with the remote ``vote ban`` command.

A vote passes once the number of distinct voters reaches
``vote_ban_percentage`` percent of the channel's current occupants (rounded
up, at least one). Votes expire ``vote_ban_window_secs`` after the first one
was cast and expired votes are pruned every minute.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
import time
from typing import TYPE_CHECKING

from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import (
    CommandArgs,
    CommandOption,
    ExternalCommand,
    OptionType,
)
from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext
    from voicewarden.modules.bans import BansModule

logger = get_logger("vote_banning")

CLEANUP_INTERVAL_SECONDS = 60.0
DEFAULT_WINDOW_SECONDS = 300.0
DEFAULT_PERCENTAGE = 50.0


@dataclass(slots=True)
class ActiveVote:
    target_id: str
    channel_id: str
    expires_at: float
    voters: set[str] = field(default_factory=set)


class VoteBanningModule(Module):
    name = "VoteBanningModule"
    description = "Allows users in a voice channel to collectively vote to ban another user."
    required_dependencies = ("BansModule",)

    def __init__(self) -> None:
        super().__init__()
        self.active_votes: dict[tuple[str, str], ActiveVote] = {}
        self._bans: BansModule | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._bans = context.module("BansModule")  # type: ignore[assignment]
        try:
            context.scheduler.schedule_repeating(
                self.name, "cleanup", CLEANUP_INTERVAL_SECONDS, self.cleanup_expired_votes
            )
        except RuntimeError:
            logger.warning("[VOTE BANNING] No running event loop; expired votes are pruned on the next vote")
        logger.info("[VOTE BANNING] Initializing")

    def stop(self) -> None:
        self.active_votes.clear()
        if self.is_initialized:
            self.context.scheduler.cancel_owner(self.name)
        logger.info("[VOTE BANNING] Stopping")

    # ==================== Votes ====================

    def _setting(self, key: str, default: float) -> float:
        try:
            return float(self.context.settings.get(key, default))
        except (TypeError, ValueError):
            return default

    def required_votes(self, channel_id: str) -> int:
        occupants = len(self.context.host.get_voice_members(channel_id))
        percentage = self._setting("vote_ban_percentage", DEFAULT_PERCENTAGE)
        return max(1, math.ceil(occupants * percentage / 100))

    def register_vote(self, target_id: str, voter_id: str, channel_id: str, reason: str | None = None) -> bool:
        """Count a vote; returns True when it completed the vote and the ban was issued."""
        if self.context.state.get_ownership(channel_id) is None:
            logger.debug("[VOTE BANNING] Ignoring vote in unowned channel %s", channel_id)
            return False

        self.cleanup_expired_votes()
        key = (channel_id, target_id)
        vote = self.active_votes.get(key)
        if vote is None:
            window = self._setting("vote_ban_window_secs", DEFAULT_WINDOW_SECONDS)
            vote = ActiveVote(target_id=target_id, channel_id=channel_id, expires_at=time.time() + window)
            self.active_votes[key] = vote
        vote.voters.add(voter_id)

        required = self.required_votes(channel_id)
        self.context.notifier.send_debug(
            f"Vote registered against <@{target_id}> by <@{voter_id}>. ({len(vote.voters)}/{required})", channel_id
        )
        if len(vote.voters) < required:
            return False

        del self.active_votes[key]
        logger.info("[VOTE BANNING] Vote against %s in %s passed", target_id, channel_id)
        if self._bans is not None:
            self._bans.enforce_ban_policy(target_id, channel_id, kick_first=False, reason=reason or "Vote Ban")
        return True

    def cleanup_expired_votes(self) -> int:
        now = time.time()
        expired = [key for key, vote in self.active_votes.items() if vote.expires_at < now]
        for key in expired:
            del self.active_votes[key]
        if expired:
            logger.debug("[VOTE BANNING] Pruned %d expired vote(s)", len(expired))
        return len(expired)

    # ==================== Remote command ====================

    def _voter_in_voice(self, message: ChatMessage) -> bool:
        return self.context.host.get_voice_channel_id(message.author_id) is not None

    def _execute_vote_ban(self, args: CommandArgs, message: ChatMessage, channel_id: str) -> bool:
        target_id = args.get("target")
        voice_channel_id = self.context.host.get_voice_channel_id(message.author_id)
        if not target_id or not voice_channel_id:
            return False
        self.register_vote(target_id, message.author_id, voice_channel_id, args.get("reason"))
        return True

    def get_external_commands(self) -> list[ExternalCommand]:
        return [
            ExternalCommand(
                name="vote ban",
                description="Initiate a vote ban against a user",
                options=[
                    CommandOption("target", OptionType.USER, required=True, description="The user to vote ban"),
                    CommandOption("reason", OptionType.STRING, description="The reason for the vote ban"),
                ],
                check_permission=self._voter_in_voice,
                execute=self._execute_vote_ban,
            )
        ]
