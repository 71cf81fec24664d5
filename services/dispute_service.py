"""
DisputeService: adjudication of matches whose score reports disagreed.

A disputed match is terminal for the engine. It leaves DISPUTED only through
an administrator resolving it with the real scores, voiding it, or the
scheduler voiding it once it has been open too long.
"""

import logging
import time
from typing import Callable

from domain.models.match import Match, MatchPhase
from domain.models.notification import DISPUTE_RESOLVED
from domain.models.score_report import Dispute
from repositories.interfaces import IDisputeRepository, IMatchRepository
from services import error_codes
from services.errors import NotFoundError, RankedError, ValidationError
from services.interfaces import IDisputeService
from services.match_phase_service import MatchPhaseService
from services.notification_service import NotificationService
from services.outcome_service import OutcomeService, validate_scores
from services.result import Result

logger = logging.getLogger("ranked_engine.services.dispute")

REASON_DISPUTE_RESOLVED = "dispute_resolved"
REASON_DISPUTE_EXPIRED = "dispute_expired"


class DisputeService(IDisputeService):
    """Lists, resolves and voids score disputes."""

    def __init__(
        self,
        match_repo: IMatchRepository,
        dispute_repo: IDisputeRepository,
        outcome_service: OutcomeService,
        phase_service: MatchPhaseService,
        notification_service: NotificationService,
        dispute_timeout_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ):
        self.match_repo = match_repo
        self.dispute_repo = dispute_repo
        self.outcome_service = outcome_service
        self.phase_service = phase_service
        self.notifications = notification_service
        self.dispute_timeout_seconds = dispute_timeout_seconds
        self.clock = clock

    def list_open_disputes(self) -> list[Dispute]:
        return self.dispute_repo.get_open()

    def resolve_dispute(self, match_id: int, score_p0: int, score_p1: int) -> Result[Match]:
        """
        Complete a disputed match with adjudicated scores.

        Args:
            match_id: Disputed match
            score_p0: Final score of the first participant
            score_p1: Final score of the second participant

        Returns:
            Result with the completed match
        """
        try:
            validate_scores(score_p0, score_p1)
            match = self._load_disputed(match_id)
            first_id, second_id = match.player_ids
            saved = self.outcome_service.apply_outcome(
                match,
                {first_id: score_p0, second_id: score_p1},
                MatchPhase.DISPUTED,
                REASON_DISPUTE_RESOLVED,
            )
        except RankedError as exc:
            return Result.from_error(exc)

        self.notifications.notify_many(
            saved.player_ids,
            DISPUTE_RESOLVED,
            match_id=match_id,
            outcome="completed",
            winner_id=saved.winner_id,
            scores=dict(saved.final_scores),
        )
        logger.info(f"Dispute for match {match_id} resolved: {score_p0}-{score_p1}")
        return Result.ok(saved)

    def void_dispute(self, match_id: int, reason: str) -> Result[Match]:
        """Cancel a disputed match. No rep changes hands."""
        try:
            match = self._load_disputed(match_id)
            now = self.clock()
            updated = self.phase_service.prepare_transition(
                match, MatchPhase.CANCELLED, now, terminal_reason=reason
            )
            try:
                saved = self.dispute_repo.void_dispute(updated, reason, now)
            finally:
                self.phase_service.match_cache.invalidate(match_id)
        except RankedError as exc:
            return Result.from_error(exc)

        self.notifications.notify_many(
            saved.player_ids, DISPUTE_RESOLVED, match_id=match_id, outcome="voided", reason=reason
        )
        return Result.ok(saved)

    def expire_disputes(self) -> int:
        """
        Void disputes that have been open longer than the dispute timeout.

        Returns:
            Number of disputes voided
        """
        cutoff = self.clock() - self.dispute_timeout_seconds
        voided = 0
        for dispute in self.dispute_repo.get_open_older_than(cutoff):
            result = self.void_dispute(dispute.match_id, REASON_DISPUTE_EXPIRED)
            if result:
                voided += 1
            elif result.error_code != error_codes.STATE_CONFLICT:
                logger.warning(f"Could not expire dispute for match {dispute.match_id}: {result.error}")
        return voided

    def _load_disputed(self, match_id: int) -> Match:
        match = self.match_repo.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found", code=error_codes.MATCH_NOT_FOUND)
        dispute = self.dispute_repo.get_by_match(match_id)
        if dispute is None:
            raise NotFoundError(f"No dispute for match {match_id}", code=error_codes.DISPUTE_NOT_FOUND)
        if match.phase != MatchPhase.DISPUTED or not dispute.is_open:
            raise ValidationError(
                f"Dispute for match {match_id} is already {dispute.status}", code=error_codes.DISPUTE_CLOSED
            )
        return match
