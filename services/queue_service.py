"""
QueueService: joining, leaving and sweeping the ranked queue.
"""

import logging
import time
from typing import Callable

from domain.models.player import PlayerProfile
from domain.models.queue_entry import QueueEntry
from domain.services.rank_tiers import get_rank_tier
from repositories.interfaces import IPlayerRepository, IQueueRepository
from services import error_codes
from services.errors import RankedError
from services.interfaces import IQueueService
from services.result import Result

logger = logging.getLogger("ranked_engine.services.queue")


class QueueService(IQueueService):
    """
    Owns queue membership.

    A player may hold at most one queue entry and may not queue while in a
    non-terminal match. Both rules are enforced by the repository inside one
    write transaction; this service adds the profile and inactivity checks.
    """

    def __init__(
        self,
        player_repo: IPlayerRepository,
        queue_repo: IQueueRepository,
        inactivity_seconds: int = 604800,
        max_queue_age_seconds: int = 3600,
        max_matchmaking_attempts: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        self.player_repo = player_repo
        self.queue_repo = queue_repo
        self.inactivity_seconds = inactivity_seconds
        self.max_queue_age_seconds = max_queue_age_seconds
        self.max_matchmaking_attempts = max_matchmaking_attempts
        self.clock = clock

    def join_queue(self, player_id: int, region: str | None = None) -> Result[QueueEntry]:
        """
        Add a player to the ranked queue.

        Args:
            player_id: Player joining
            region: Queue region; defaults to the profile's region

        Returns:
            Result with the stored QueueEntry, or a failure coded
            PLAYER_NOT_FOUND, INACTIVE, ALREADY_QUEUED or ALREADY_IN_MATCH
        """
        profile = self.player_repo.get_by_id(player_id)
        if profile is None:
            return Result.fail(f"No ranked profile for player {player_id}", code=error_codes.PLAYER_NOT_FOUND)

        now = self.clock()
        if self._is_inactive(profile, now):
            return Result.fail(
                "Your last ranked match was too long ago. Play a casual match first.",
                code=error_codes.INACTIVE,
            )

        try:
            entry = self._enqueue(profile, region or profile.region, now)
        except RankedError as exc:
            return Result.from_error(exc)

        logger.info(f"Player {player_id} joined queue ({entry.region}, {entry.rep} rep, {entry.rank_tier})")
        return Result.ok(entry)

    def leave_queue(self, player_id: int) -> Result[None]:
        if not self.queue_repo.remove(player_id):
            return Result.fail("You are not in the queue", code=error_codes.NOT_QUEUED)
        logger.info(f"Player {player_id} left queue")
        return Result.ok()

    def requeue_players(self, player_ids: list[int]) -> list[int]:
        """
        Put players back in the queue with a fresh join time.

        Used after a cancellation when requeueing is enabled. Players who
        cannot be queued (missing profile, already queued) are skipped.

        Returns:
            Ids that were queued
        """
        now = self.clock()
        queued = []
        for profile in self.player_repo.get_by_ids(player_ids):
            try:
                self._enqueue(profile, profile.region, now)
            except RankedError as exc:
                logger.info(f"Requeue skipped for {profile.player_id}: {exc}")
                continue
            queued.append(profile.player_id)
        return queued

    def sweep_queue(self) -> list[int]:
        """
        Remove entries that waited longer than the maximum queue age or used up
        their matchmaking attempts.

        Returns:
            Removed player ids
        """
        cutoff = self.clock() - self.max_queue_age_seconds
        removed = self.queue_repo.delete_stale(cutoff, self.max_matchmaking_attempts)
        for entry in removed:
            logger.info(
                f"Queue sweep removed {entry.player_id} (joined_at={entry.joined_at}, attempts={entry.match_attempts})"
            )
        return [entry.player_id for entry in removed]

    def get_queue_status(self) -> list[dict]:
        """Entries in join order with their current wait time."""
        now = self.clock()
        return [
            {
                "player_id": entry.player_id,
                "region": entry.region,
                "rep": entry.rep,
                "rank_tier": entry.rank_tier,
                "wait_seconds": entry.wait_seconds(now),
                "match_attempts": entry.match_attempts,
            }
            for entry in self.queue_repo.get_all()
        ]

    def _is_inactive(self, profile: PlayerProfile, now: float) -> bool:
        # Players without a completed ranked match are not held back
        if profile.last_match_at is None:
            return False
        return now - profile.last_match_at > self.inactivity_seconds

    def _enqueue(self, profile: PlayerProfile, region: str, now: float) -> QueueEntry:
        entry = QueueEntry(
            player_id=profile.player_id,
            region=region,
            rep=profile.rep,
            rank_tier=get_rank_tier(profile.rep).name,
            win_streak=profile.win_streak,
            joined_at=now,
            win_rate=profile.win_rate,
        )
        self.queue_repo.enqueue(entry)
        return entry
