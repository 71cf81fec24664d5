"""
OutcomeService: score reports, cross-validation and rep application.
"""

import copy
import logging
import time
from typing import Callable

from domain.models.match import Match, MatchPhase
from domain.models.notification import (
    AWAITING_OPPONENT,
    DISPUTE_OPENED,
    MATCH_COMPLETE,
    RANK_DOWN,
    RANK_UP,
    REMINDER,
)
from domain.models.player import PlayerProfile
from domain.models.score_report import ScoreReport
from domain.services.rank_tiers import format_rank, get_rank_tier, tier_changed
from domain.services.rep_calculator import RepCalculator, RepChange, apply_rep_delta
from repositories.interfaces import (
    IDisputeRepository,
    IMatchRepository,
    IScoreReportRepository,
)
from services import error_codes
from services.club_league_service import ClubLeagueService
from services.errors import RankedError, ValidationError
from services.interfaces import IOutcomeService
from services.match_phase_service import MatchPhaseService
from services.notification_service import NotificationService
from services.result import Result

logger = logging.getLogger("ranked_engine.services.outcome")

REASON_REPORTED = "reported"
REASON_SCORE_MISMATCH = "score_mismatch"


def validate_scores(first, second) -> None:
    """
    Raises:
        ValidationError: Scores are not non-negative integers, or are tied
    """
    for score in (first, second):
        if isinstance(score, bool) or not isinstance(score, int):
            raise ValidationError("Scores must be whole numbers")
        if score < 0:
            raise ValidationError("Scores cannot be negative")
    if first == second:
        raise ValidationError("A ranked match cannot end in a tie")


class OutcomeService(IOutcomeService):
    """
    Collects both participants' score reports and resolves the match.

    Agreeing reports complete the match and apply rep; disagreeing reports
    open a dispute. Rep math uses only the participant snapshots stored on
    the match at creation time.
    """

    def __init__(
        self,
        match_repo: IMatchRepository,
        report_repo: IScoreReportRepository,
        dispute_repo: IDisputeRepository,
        phase_service: MatchPhaseService,
        notification_service: NotificationService,
        rep_calculator: RepCalculator | None = None,
        club_league_service: ClubLeagueService | None = None,
        reminder_seconds: int = 600,
        loser_captain_mastery: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        self.match_repo = match_repo
        self.report_repo = report_repo
        self.dispute_repo = dispute_repo
        self.phase_service = phase_service
        self.notifications = notification_service
        self.rep_calculator = rep_calculator or RepCalculator()
        self.club_league_service = club_league_service
        self.reminder_seconds = reminder_seconds
        self.loser_captain_mastery = loser_captain_mastery
        self.clock = clock

    def report_score(
        self, match_id: int, reporter_id: int, self_score: int, opponent_score: int
    ) -> Result[Match]:
        """
        Record a participant's score report and resolve the match once both are in.

        Args:
            match_id: Match being reported
            reporter_id: Reporting participant
            self_score: Reporter's own score
            opponent_score: Reporter's opponent's score

        Returns:
            Result with the match as it stands after this report (ACTIVE while
            waiting, COMPLETED or DISPUTED once resolved)
        """
        try:
            validate_scores(self_score, opponent_score)
        except ValidationError as exc:
            return Result.from_error(exc)

        match = self.match_repo.get(match_id)
        if match is None:
            return Result.fail(f"Match {match_id} not found", code=error_codes.MATCH_NOT_FOUND)
        if match.phase != MatchPhase.ACTIVE or not match.contains_player(reporter_id):
            return Result.fail("You have no active match to report", code=error_codes.NO_ACTIVE_MATCH)

        now = self.clock()
        self.report_repo.upsert(
            ScoreReport(
                match_id=match_id,
                reporter_id=reporter_id,
                claimed_self_score=self_score,
                claimed_opponent_score=opponent_score,
                reported_at=now,
                reminder_due_at=now + self.reminder_seconds,
            )
        )
        logger.info(f"Match {match_id}: {reporter_id} reported {self_score}-{opponent_score}")

        try:
            resolved = self.phase_service.with_retries(match_id, self._resolve_reports)
        except RankedError as exc:
            return Result.from_error(exc)

        if resolved.phase == MatchPhase.ACTIVE:
            opponent = resolved.get_opponent(reporter_id)
            self.notifications.notify(
                opponent.player_id,
                AWAITING_OPPONENT,
                match_id=match_id,
                reporter_id=reporter_id,
                claimed_self_score=self_score,
                claimed_opponent_score=opponent_score,
            )
        return Result.ok(resolved)

    def _resolve_reports(self, match: Match) -> Match:
        if match.phase != MatchPhase.ACTIVE:
            # The other report already resolved it
            return match

        reports = {
            r.reporter_id: r for r in self.report_repo.get_for_match(match.match_id) if match.contains_player(r.reporter_id)
        }
        if len(reports) < 2:
            return match

        first_id, second_id = match.player_ids
        first, second = reports[first_id], reports[second_id]
        if not first.agrees_with(second):
            return self._open_dispute(match, first, second)

        scores = {first_id: first.claimed_self_score, second_id: first.claimed_opponent_score}
        return self.apply_outcome(match, scores, MatchPhase.ACTIVE, REASON_REPORTED)

    def _open_dispute(self, match: Match, first: ScoreReport, second: ScoreReport) -> Match:
        now = self.clock()
        updated = self.phase_service.prepare_transition(
            match, MatchPhase.DISPUTED, now, terminal_reason=REASON_SCORE_MISMATCH
        )
        try:
            dispute = self.dispute_repo.open_dispute(updated, first, second, now)
        finally:
            self.phase_service.match_cache.invalidate(match.match_id)

        for report in (first, second):
            self.notifications.notify(
                report.reporter_id,
                DISPUTE_OPENED,
                match_id=match.match_id,
                dispute_id=dispute.dispute_id,
                your_claim=[report.claimed_self_score, report.claimed_opponent_score],
            )
        logger.info(f"Match {match.match_id}: reports disagree, dispute {dispute.dispute_id} opened")
        updated.version += 1
        return updated

    def apply_outcome(
        self, match: Match, scores: dict[int, int], expected_phase: MatchPhase, reason: str
    ) -> Match:
        """
        Complete a match with final scores and apply rep, streak, record and mastery.

        Everything is written in one transaction guarded by expected_phase.
        Notifications and club rep are sent only after the commit.

        Raises:
            NotFoundError: A participant profile is missing
            StateConflictError: The match left expected_phase
        """
        now = self.clock()
        winner_id = max(scores, key=scores.get)
        winner_slot = match.get_participant(winner_id)
        loser_slot = match.get_opponent(winner_id)
        winner_score, loser_score = scores[winner_id], scores[loser_slot.player_id]

        change = self.rep_calculator.calculate(
            winner_rep=winner_slot.rep,
            loser_rep=loser_slot.rep,
            winner_score=winner_score,
            loser_score=loser_score,
            winner_streak=winner_slot.win_streak,
            is_hypercharged=match.is_hypercharged,
        )

        loser_id = loser_slot.player_id
        updated = self.phase_service.prepare_transition(
            match,
            MatchPhase.COMPLETED,
            now,
            winner_id=winner_id,
            final_scores=dict(scores),
            rep_changes={winner_id: change.winner_gain, loser_id: change.loser_delta},
            terminal_reason=reason,
        )
        for slot in updated.participants:
            slot.reported_score = scores[slot.player_id]

        # Applied to the profiles as they stand inside the completion transaction
        player_updates = {
            winner_id: lambda p: self._updated_profile(p, change.winner_gain, True, match, now),
            loser_id: lambda p: self._updated_profile(p, change.loser_delta, False, match, now),
        }
        try:
            saved, changed = self.match_repo.complete_match(updated, expected_phase, player_updates)
        finally:
            self.phase_service.match_cache.invalidate(match.match_id)

        (old_winner, new_winner), (old_loser, new_loser) = changed
        self._notify_completion(saved, change, (old_winner, new_winner), (old_loser, new_loser))
        self._forward_club_rep(new_winner, new_loser, winner_score, loser_score, now)
        return saved

    def _updated_profile(
        self, profile: PlayerProfile, delta: int, won: bool, match: Match, now: float
    ) -> PlayerProfile:
        updated = copy.deepcopy(profile)
        updated.rep = apply_rep_delta(profile.rep, delta)
        updated.last_match_at = now
        if won:
            updated.win_streak = profile.win_streak + 1
            updated.wins = profile.wins + 1
            mastery_gain = delta
        else:
            updated.win_streak = 0
            updated.losses = profile.losses + 1
            mastery_gain = self.loser_captain_mastery

        captain = match.captain_picks.get(profile.player_id)
        if captain:
            updated.captain_mastery[captain] = updated.captain_mastery.get(captain, 0) + mastery_gain
        return updated

    def _notify_completion(self, match: Match, change: RepChange, winner, loser) -> None:
        for old, new in (winner, loser):
            self.notifications.notify(
                new.player_id,
                MATCH_COMPLETE,
                match_id=match.match_id,
                winner_id=match.winner_id,
                scores=dict(match.final_scores),
                rep_change=match.rep_changes[new.player_id],
                new_rep=new.rep,
                rank=format_rank(new.rep),
                is_hypercharged=change.hypercharged,
                breakdown={
                    "base": change.base,
                    "rep_diff": change.rep_diff_bonus,
                    "run_diff": change.run_diff_bonus,
                    "win_streak": change.win_streak_bonus,
                },
            )
            direction = tier_changed(old.rep, new.rep)
            if direction:
                self.notifications.notify(
                    new.player_id,
                    RANK_UP if direction > 0 else RANK_DOWN,
                    match_id=match.match_id,
                    old_tier=get_rank_tier(old.rep).name,
                    new_tier=get_rank_tier(new.rep).name,
                    rank_down=direction < 0,
                    new_rep=new.rep,
                )

    def _forward_club_rep(
        self, winner: PlayerProfile, loser: PlayerProfile, winner_score: int, loser_score: int, now: float
    ) -> None:
        if self.club_league_service is None:
            return
        try:
            self.club_league_service.apply_match(winner, loser, winner_score, loser_score, now)
        except Exception:
            # The match is already committed; the club layer can be reconciled later
            logger.exception(f"Club rep forwarding failed for {winner.player_id} vs {loser.player_id}")

    def send_due_reminders(self) -> int:
        """
        Remind players whose opponent reported a score a while ago.

        Each report triggers at most one reminder. Reports left over from a
        match that is no longer ACTIVE are discarded.

        Returns:
            Number of reminders sent
        """
        sent = 0
        for report in self.report_repo.get_due_reminders(self.clock()):
            match = self.match_repo.get(report.match_id)
            if match is None or match.phase != MatchPhase.ACTIVE:
                self.report_repo.delete_for_match(report.match_id)
                continue
            missing = match.get_opponent(report.reporter_id)
            if missing is None:
                continue
            if not self.report_repo.mark_reminder_sent(report.match_id, report.reporter_id):
                continue
            self.notifications.notify(
                missing.player_id,
                REMINDER,
                match_id=match.match_id,
                opponent_id=report.reporter_id,
                deadline=match.phase_deadline,
            )
            sent += 1
        if sent:
            logger.info(f"Sent {sent} score report reminders")
        return sent
