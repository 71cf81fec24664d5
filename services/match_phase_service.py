"""
MatchPhaseService: the ranked match state machine.

Drives a match from PREGAME to a terminal phase. Every write is a
compare-and-swap on the stored phase and version; a lost race is retried by
re-reading the match and deciding again. Player submissions return Result;
the deadline sweep applies timeout resolutions and never raises.
"""

import copy
import logging
import random
import re
import time
from typing import Any, Callable

from domain.models.match import (
    CANCELLABLE_PHASES,
    Match,
    MatchPhase,
    can_transition,
)
from domain.models.notification import MATCH_CANCELLED, MATCH_FAILED, PHASE_ADVANCED
from repositories.interfaces import IMatchRepository
from services import error_codes
from services.errors import NotFoundError, RankedError, StateConflictError, ValidationError
from services.interfaces import IMatchPhaseService
from services.match_cache import MatchCache
from services.notification_service import NotificationService
from services.result import Result

logger = logging.getLogger("ranked_engine.services.match_phase")

ROOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{4,6}$")

# Reasons recorded on terminal matches
REASON_PREGAME_TIMEOUT = "pregame_timeout"
REASON_ROOM_CODE_TIMEOUT = "room_code_timeout"
REASON_ACTIVE_TIMEOUT = "active_timeout"
REASON_RETRIES_EXHAUSTED = "transition_retries_exhausted"

# Fields a caller may set through transition_to
TRANSITION_FIELDS = frozenset({"current_turn", "selected_stage", "host_id", "room_code", "terminal_reason"})

DEFAULT_PHASE_TIMEOUTS: dict[MatchPhase, float] = {
    MatchPhase.PREGAME: 600,
    MatchPhase.STAGE_SELECT: 60,
    MatchPhase.CAPTAIN_SELECT: 60,
    MatchPhase.HOST_SELECT: 30,
    MatchPhase.ROOM_CODE: 120,
    MatchPhase.ACTIVE: 5400,
}


class MatchPhaseService(IMatchPhaseService):
    """
    Phase transitions, pre-game submissions and deadline auto-resolution.

    Phase deadlines are absolute timestamps stored on the match, so the sweep
    holds no timers of its own and survives restarts.
    """

    def __init__(
        self,
        match_repo: IMatchRepository,
        notification_service: NotificationService,
        match_cache: MatchCache | None = None,
        stages: list[str] | None = None,
        captains: list[str] | None = None,
        phase_timeouts: dict[MatchPhase, float] | None = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 0.05,
        requeue_on_cancel: bool = False,
        requeue: Callable[[list[int]], Any] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.match_repo = match_repo
        self.notifications = notification_service
        self.match_cache = match_cache or MatchCache(match_repo)
        self.stages = list(stages or [])
        self.captains = list(captains or [])
        self.phase_timeouts = {**DEFAULT_PHASE_TIMEOUTS, **(phase_timeouts or {})}
        self.max_retries = max(1, max_retries)
        self.retry_delay_seconds = retry_delay_seconds
        self.requeue_on_cancel = requeue_on_cancel
        self.requeue = requeue
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition_to(
        self,
        match_id: int,
        expected_phase: MatchPhase,
        new_phase: MatchPhase,
        data: dict | None = None,
    ) -> Match:
        """
        Move a match from expected_phase to new_phase.

        Args:
            match_id: Match to move
            expected_phase: Phase the caller believes the match is in
            new_phase: Target phase; must be an edge of the phase graph
            data: Match fields to set together with the phase change (only TRANSITION_FIELDS)

        Returns:
            The stored match after the transition

        Raises:
            NotFoundError: Unknown match
            ValidationError: new_phase is not reachable from expected_phase, or data names a field
                outside TRANSITION_FIELDS
            StateConflictError: The stored match is no longer in expected_phase
        """
        if not can_transition(expected_phase, new_phase):
            raise ValidationError(
                f"Illegal transition {expected_phase.value} -> {new_phase.value}",
                code=error_codes.INVALID_TRANSITION,
            )
        protected = sorted(set(data or {}) - TRANSITION_FIELDS)
        if protected:
            raise ValidationError(f"Match fields cannot be set by a transition: {', '.join(protected)}")
        match = self._load(match_id)
        if match.phase != expected_phase:
            raise StateConflictError(
                f"Match {match_id} is in {match.phase.value}, expected {expected_phase.value}"
            )
        updated = self.prepare_transition(match, new_phase, self.clock(), **(data or {}))
        return self._save(updated, expected_phase)

    def get_match(self, match_id: int) -> Match | None:
        """Cached read for display; never used to decide a write."""
        return self.match_cache.get(match_id)

    def get_match_for_player(self, player_id: int) -> Match | None:
        return self.match_cache.get_for_player(player_id)

    # ------------------------------------------------------------------
    # Player submissions
    # ------------------------------------------------------------------

    def submit_stage_ban(self, match_id: int, player_id: int, stage: str) -> Result[Match]:
        def decide(match: Match) -> Match:
            self._require_submission(match, player_id, MatchPhase.STAGE_SELECT)
            if match.current_turn != player_id:
                raise ValidationError("It is not your turn to ban", code=error_codes.NOT_YOUR_TURN)
            if stage not in match.remaining_stages:
                raise ValidationError(f"{stage} is not an available stage", code=error_codes.INVALID_STAGE)
            return self._ban_stage(match, player_id, stage, self.clock(), auto=False)

        return self._submit(match_id, decide)

    def submit_captain_pick(self, match_id: int, player_id: int, captain: str) -> Result[Match]:
        def decide(match: Match) -> Match:
            self._require_submission(match, player_id, MatchPhase.CAPTAIN_SELECT)
            if captain not in self.captains:
                raise ValidationError(f"{captain} is not on the captain roster", code=error_codes.INVALID_CAPTAIN)
            if player_id in match.captain_picks:
                raise ValidationError("You already picked a captain", code=error_codes.ALREADY_PICKED)
            return self._pick_captains(match, {player_id: captain}, self.clock(), auto=False)

        return self._submit(match_id, decide)

    def submit_host_choice(self, match_id: int, player_id: int, host_id: int | None = None) -> Result[Match]:
        def decide(match: Match) -> Match:
            self._require_submission(match, player_id, MatchPhase.HOST_SELECT)
            chosen = player_id if host_id is None else host_id
            if not match.contains_player(chosen):
                raise ValidationError("The host must be one of the two players", code=error_codes.VALIDATION_ERROR)
            return self._set_host(match, chosen, self.clock(), chosen_by=player_id)

        return self._submit(match_id, decide)

    def submit_room_code(self, match_id: int, player_id: int, room_code: str) -> Result[Match]:
        code = (room_code or "").strip()

        def decide(match: Match) -> Match:
            self._require_submission(match, player_id, MatchPhase.ROOM_CODE)
            if match.host_id != player_id:
                raise ValidationError("Only the host can submit the room code", code=error_codes.NOT_HOST)
            if not ROOM_CODE_PATTERN.match(code):
                raise ValidationError(
                    "Room code must be 4 to 6 letters or digits", code=error_codes.INVALID_ROOM_CODE
                )
            now = self.clock()
            updated = self.prepare_transition(match, MatchPhase.ACTIVE, now, room_code=code)
            updated.add_history("room_code", now, player_id=player_id)
            saved = self._save(updated, MatchPhase.ROOM_CODE)
            self._notify_phase(saved, room_code=code)
            return saved

        return self._submit(match_id, decide)

    def cancel_match(self, match_id: int, reason: str) -> Result[Match]:
        """External cancellation; only allowed from ROOM_CODE or ACTIVE."""

        def decide(match: Match) -> Match:
            if match.phase not in CANCELLABLE_PHASES:
                raise ValidationError(
                    f"Cannot cancel a match in {match.phase.value}", code=error_codes.CANCEL_NOT_ALLOWED
                )
            expected = match.phase
            updated = self.prepare_transition(match, MatchPhase.CANCELLED, self.clock(), terminal_reason=reason)
            saved = self._save(updated, expected)
            self.notifications.notify_many(
                saved.player_ids, MATCH_CANCELLED, match_id=saved.match_id, reason=reason
            )
            logger.info(f"Match {match_id} cancelled: {reason}")
            return saved

        return self._submit(match_id, decide)

    # ------------------------------------------------------------------
    # Deadline sweep
    # ------------------------------------------------------------------

    def sweep_deadlines(self) -> int:
        """
        Apply the timeout resolution to every match past its phase deadline.

        Each match is re-read and re-checked before acting, so a submission
        that landed first wins and the sweep skips that match.

        Returns:
            Number of matches a timeout resolution was applied to
        """
        now = self.clock()
        resolved = 0
        for expired in self.match_repo.get_expired(now):
            if self._resolve_timeout(expired.match_id, now):
                resolved += 1
        return resolved

    def _resolve_timeout(self, match_id: int, now: float) -> bool:
        try:
            return self.with_retries(match_id, lambda m: self._apply_timeout(m, now)) is not None
        except StateConflictError:
            logger.warning(f"Match {match_id}: timeout retries exhausted, failing match")
            self.fail_match(match_id, REASON_RETRIES_EXHAUSTED)
        except NotFoundError:
            logger.warning(f"Match {match_id} vanished during deadline sweep")
        except Exception as exc:
            logger.exception(f"Match {match_id}: timeout resolution failed")
            self.fail_match(match_id, f"timeout_error: {exc}")
        return False

    def _apply_timeout(self, match: Match, now: float) -> Match | None:
        if match.is_terminal or match.phase_deadline > now:
            # Another path advanced the match since it was listed
            return None

        phase = match.phase
        logger.info(f"Match {match.match_id}: {phase.value} deadline passed")

        if phase == MatchPhase.PREGAME:
            return self._terminate(match, MatchPhase.FAILED, REASON_PREGAME_TIMEOUT, now)

        if phase == MatchPhase.STAGE_SELECT:
            remaining = match.remaining_stages
            stage = self.rng.choice(remaining)
            return self._ban_stage(match, match.current_turn, stage, now, auto=True)

        if phase == MatchPhase.CAPTAIN_SELECT:
            picks = {
                pid: self.rng.choice(self.captains)
                for pid in match.player_ids
                if pid not in match.captain_picks
            }
            return self._pick_captains(match, picks, now, auto=True)

        if phase == MatchPhase.HOST_SELECT:
            host = sorted(match.participants, key=lambda p: (-p.rep, p.joined_at))[0]
            return self._set_host(match, host.player_id, now, chosen_by=None)

        if phase == MatchPhase.ROOM_CODE:
            saved = self._terminate(match, MatchPhase.CANCELLED, REASON_ROOM_CODE_TIMEOUT, now)
            if self.requeue_on_cancel and self.requeue is not None:
                requeued = self.requeue(saved.player_ids)
                logger.info(f"Match {saved.match_id}: requeued {requeued} after room code timeout")
            return saved

        if phase == MatchPhase.ACTIVE:
            return self._terminate(match, MatchPhase.CANCELLED, REASON_ACTIVE_TIMEOUT, now)

        return None

    def fail_match(self, match_id: int, reason: str) -> Match | None:
        """
        Move a non-terminal match to FAILED. Single attempt; a conflict means
        something else already moved it.
        """
        match = self.match_repo.get(match_id)
        if match is None or match.is_terminal:
            return None
        try:
            return self._terminate(match, MatchPhase.FAILED, reason, self.clock())
        except StateConflictError:
            logger.warning(f"Match {match_id}: could not mark FAILED, phase changed concurrently")
            return None

    # ------------------------------------------------------------------
    # Phase actions (shared by submissions and timeouts)
    # ------------------------------------------------------------------

    def _ban_stage(self, match: Match, player_id: int, stage: str, now: float, auto: bool) -> Match:
        updated = copy.deepcopy(match)
        updated.stage_bans.append(stage)
        updated.add_history("stage_ban", now, player_id=player_id, stage=stage, auto=auto)

        remaining = updated.remaining_stages
        if len(remaining) <= 1:
            updated = self.prepare_transition(updated, MatchPhase.CAPTAIN_SELECT, now, selected_stage=remaining[0], current_turn=None)
            saved = self._save(updated, MatchPhase.STAGE_SELECT)
            self._notify_phase(saved, selected_stage=saved.selected_stage)
            return saved

        # Turn passes and the ban clock restarts
        updated.current_turn = updated.get_opponent(player_id).player_id
        updated.phase_deadline = now + self.phase_timeouts[MatchPhase.STAGE_SELECT]
        return self._save(updated, MatchPhase.STAGE_SELECT)

    def _pick_captains(self, match: Match, picks: dict[int, str], now: float, auto: bool) -> Match:
        updated = copy.deepcopy(match)
        for player_id, captain in picks.items():
            updated.captain_picks[player_id] = captain
            updated.add_history("captain_pick", now, player_id=player_id, captain=captain, auto=auto)

        if all(pid in updated.captain_picks for pid in updated.player_ids):
            updated = self.prepare_transition(updated, MatchPhase.HOST_SELECT, now)
            saved = self._save(updated, MatchPhase.CAPTAIN_SELECT)
            self._notify_phase(saved, captains=dict(saved.captain_picks))
            return saved
        return self._save(updated, MatchPhase.CAPTAIN_SELECT)

    def _set_host(self, match: Match, host_id: int, now: float, chosen_by: int | None) -> Match:
        updated = self.prepare_transition(match, MatchPhase.ROOM_CODE, now, host_id=host_id)
        updated.add_history("host", now, player_id=chosen_by, host_id=host_id, auto=chosen_by is None)
        saved = self._save(updated, MatchPhase.HOST_SELECT)
        self._notify_phase(saved, host_id=host_id)
        return saved

    def _terminate(self, match: Match, phase: MatchPhase, reason: str, now: float) -> Match:
        expected = match.phase
        updated = self.prepare_transition(match, phase, now, terminal_reason=reason)
        saved = self._save(updated, expected)
        kind = MATCH_FAILED if phase == MatchPhase.FAILED else MATCH_CANCELLED
        self.notifications.notify_many(saved.player_ids, kind, match_id=saved.match_id, reason=reason)
        logger.info(f"Match {saved.match_id} -> {phase.value} ({reason})")
        return saved

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def prepare_transition(self, match: Match, new_phase: MatchPhase, now: float, **fields: Any) -> Match:
        """Return a copy of the match moved to new_phase. Nothing is persisted."""
        if not can_transition(match.phase, new_phase):
            raise ValidationError(
                f"Illegal transition {match.phase.value} -> {new_phase.value}",
                code=error_codes.INVALID_TRANSITION,
            )
        updated = copy.deepcopy(match)
        for name, value in fields.items():
            if not hasattr(updated, name):
                raise ValidationError(f"Unknown match field: {name}")
            setattr(updated, name, value)

        previous = updated.phase
        updated.phase = new_phase
        updated.phase_started_at = now
        if updated.is_terminal:
            updated.phase_deadline = now
            updated.ended_at = now
        else:
            updated.phase_deadline = now + self.phase_timeouts[new_phase]
        updated.add_history("phase", now, from_phase=previous.value, to_phase=new_phase.value)
        return updated

    def _save(self, match: Match, expected_phase: MatchPhase) -> Match:
        try:
            return self.match_repo.compare_and_set(match, expected_phase)
        finally:
            self.match_cache.invalidate(match.match_id)

    def _load(self, match_id: int) -> Match:
        match = self.match_repo.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found", code=error_codes.MATCH_NOT_FOUND)
        return match

    def _require_submission(self, match: Match, player_id: int, phase: MatchPhase) -> None:
        if not match.contains_player(player_id):
            raise ValidationError("You are not in this match", code=error_codes.NOT_A_PARTICIPANT)
        if match.phase != phase:
            raise ValidationError(
                f"Match is in {match.phase.value}, not {phase.value}", code=error_codes.WRONG_PHASE
            )

    def with_retries(self, match_id: int, decide: Callable[[Match], Match | None]) -> Match | None:
        """
        Run decide against a fresh read of the match, retrying lost races.

        Raises:
            StateConflictError: Every attempt lost the compare-and-swap
        """
        delay = self.retry_delay_seconds
        for attempt in range(1, self.max_retries + 1):
            match = self._load(match_id)
            try:
                return decide(match)
            except StateConflictError:
                if attempt == self.max_retries:
                    raise
                logger.debug(f"Match {match_id}: write conflict, retry {attempt} in {delay:.3f}s")
                self.sleep(delay)
                delay *= 2
        return None

    def _submit(self, match_id: int, decide: Callable[[Match], Match]) -> Result[Match]:
        try:
            return Result.ok(self.with_retries(match_id, decide))
        except RankedError as exc:
            return Result.from_error(exc)

    def _notify_phase(self, match: Match, **payload: Any) -> None:
        self.notifications.notify_many(
            match.player_ids,
            PHASE_ADVANCED,
            match_id=match.match_id,
            phase=match.phase.value,
            deadline=match.phase_deadline,
            **payload,
        )
