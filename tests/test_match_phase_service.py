"""
Tests for MatchPhaseService: the pre-game state machine, submissions,
deadline auto-resolution and compare-and-swap retries.
"""

import pytest

from domain.models.match import MatchPhase
from domain.models.notification import MATCH_CANCELLED, MATCH_FAILED, PHASE_ADVANCED
from services import error_codes
from services.errors import StateConflictError, ValidationError
from services.match_phase_service import (
    REASON_ACTIVE_TIMEOUT,
    REASON_PREGAME_TIMEOUT,
    REASON_RETRIES_EXHAUSTED,
    REASON_ROOM_CODE_TIMEOUT,
    MatchPhaseService,
)
from tests.conftest import TEST_CAPTAINS, TEST_STAGES


class ConflictingMatchRepository:
    """Delegates to a real repository but loses the first N compare-and-swaps."""

    def __init__(self, inner, conflicts):
        self.inner = inner
        self.conflicts = conflicts
        self.attempts = 0

    def compare_and_set(self, match, expected_phase):
        self.attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            raise StateConflictError(f"Match {match.match_id} changed concurrently")
        return self.inner.compare_and_set(match, expected_phase)

    def __getattr__(self, name):
        return getattr(self.inner, name)


@pytest.fixture
def conflicting_service(match_repository, notification_service, rng, clock, sleeps):
    def _build(conflicts):
        repo = ConflictingMatchRepository(match_repository, conflicts)
        service = MatchPhaseService(
            match_repo=repo,
            notification_service=notification_service,
            stages=TEST_STAGES,
            captains=TEST_CAPTAINS,
            rng=rng,
            clock=clock,
            sleep=sleeps.append,
        )
        return service, repo

    return _build


class TestHappyPath:
    """A match walked through every pre-game phase by player submissions."""

    def test_full_pregame_flow(self, phase_service, make_match, match_repository, clock):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        mid = match.match_id

        for i, stage in enumerate(TEST_STAGES[:9]):
            banner = 1 if i % 2 == 0 else 2
            result = phase_service.submit_stage_ban(mid, banner, stage)
            assert result.success, result.error

        match = match_repository.get(mid)
        assert match.phase == MatchPhase.CAPTAIN_SELECT
        assert match.selected_stage == TEST_STAGES[9]
        assert match.current_turn is None

        assert phase_service.submit_captain_pick(mid, 1, "Mario").success
        assert match_repository.get(mid).phase == MatchPhase.CAPTAIN_SELECT
        assert phase_service.submit_captain_pick(mid, 2, "Luigi").success

        match = match_repository.get(mid)
        assert match.phase == MatchPhase.HOST_SELECT
        assert match.captain_picks == {1: "Mario", 2: "Luigi"}

        assert phase_service.submit_host_choice(mid, 2).success
        match = match_repository.get(mid)
        assert match.phase == MatchPhase.ROOM_CODE
        assert match.host_id == 2

        result = phase_service.submit_room_code(mid, 2, "AB12")
        assert result.success
        match = match_repository.get(mid)
        assert match.phase == MatchPhase.ACTIVE
        assert match.room_code == "AB12"
        assert match.phase_deadline == clock() + 5400

    def test_history_records_actions(self, phase_service, make_match, match_repository):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        phase_service.submit_stage_ban(match.match_id, 1, TEST_STAGES[0])

        history = match_repository.get(match.match_id).history
        assert history[-1]["action"] == "stage_ban"
        assert history[-1]["player_id"] == 1
        assert history[-1]["details"] == {"stage": TEST_STAGES[0], "auto": False}

    def test_phase_advanced_notification(self, phase_service, make_match, notification_service):
        match = make_match(phase=MatchPhase.HOST_SELECT)
        phase_service.submit_host_choice(match.match_id, 1)

        advanced = notification_service.peek(kind=PHASE_ADVANCED)
        assert sorted(n.recipient_id for n in advanced) == [1, 2]
        assert advanced[0].payload["phase"] == "ROOM_CODE"
        assert advanced[0].payload["host_id"] == 1


class TestStageBans:
    """Tests for stage ban submissions."""

    def test_turn_passes(self, phase_service, make_match, clock):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        clock.advance(30)
        updated = phase_service.submit_stage_ban(match.match_id, 1, TEST_STAGES[3]).value

        assert updated.current_turn == 2
        assert updated.stage_bans == [TEST_STAGES[3]]
        assert updated.phase_deadline == clock() + 60

    def test_not_your_turn(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        result = phase_service.submit_stage_ban(match.match_id, 2, TEST_STAGES[0])
        assert result.error_code == error_codes.NOT_YOUR_TURN

    def test_unknown_stage(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        result = phase_service.submit_stage_ban(match.match_id, 1, "Rainbow Road")
        assert result.error_code == error_codes.INVALID_STAGE

    def test_already_banned_stage(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=2, stage_bans=[TEST_STAGES[0]])
        result = phase_service.submit_stage_ban(match.match_id, 2, TEST_STAGES[0])
        assert result.error_code == error_codes.INVALID_STAGE

    def test_non_participant(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        result = phase_service.submit_stage_ban(match.match_id, 99, TEST_STAGES[0])
        assert result.error_code == error_codes.NOT_A_PARTICIPANT

    def test_wrong_phase(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        result = phase_service.submit_captain_pick(match.match_id, 1, "Mario")
        assert result.error_code == error_codes.WRONG_PHASE

    def test_unknown_match(self, phase_service):
        result = phase_service.submit_stage_ban(12345, 1, TEST_STAGES[0])
        assert result.error_code == error_codes.MATCH_NOT_FOUND


class TestCaptainAndHost:
    """Tests for captain picks and host choice."""

    def test_invalid_captain(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)
        result = phase_service.submit_captain_pick(match.match_id, 1, "Toad")
        assert result.error_code == error_codes.INVALID_CAPTAIN

    def test_pick_twice(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)
        phase_service.submit_captain_pick(match.match_id, 1, "Mario")
        result = phase_service.submit_captain_pick(match.match_id, 1, "Peach")
        assert result.error_code == error_codes.ALREADY_PICKED

    def test_both_may_pick_same_captain(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)
        phase_service.submit_captain_pick(match.match_id, 1, "Mario")
        result = phase_service.submit_captain_pick(match.match_id, 2, "Mario")
        assert result.value.phase == MatchPhase.HOST_SELECT

    def test_host_choice_names_opponent(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.HOST_SELECT)
        result = phase_service.submit_host_choice(match.match_id, 1, host_id=2)
        assert result.value.host_id == 2

    def test_host_must_be_participant(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.HOST_SELECT)
        result = phase_service.submit_host_choice(match.match_id, 1, host_id=7)
        assert result.error_code == error_codes.VALIDATION_ERROR


class TestRoomCode:
    """Tests for room code submission."""

    @pytest.mark.parametrize("code", ["abc", "ABCDEFG", "AB-12", "", "    "])
    def test_invalid_codes(self, phase_service, make_match, code):
        match = make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        result = phase_service.submit_room_code(match.match_id, 1, code)
        assert result.error_code == error_codes.INVALID_ROOM_CODE

    def test_code_is_trimmed(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        result = phase_service.submit_room_code(match.match_id, 1, "  ab12 ")
        assert result.value.room_code == "ab12"
        assert result.value.phase == MatchPhase.ACTIVE

    def test_only_host_submits(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        result = phase_service.submit_room_code(match.match_id, 2, "ABCD")
        assert result.error_code == error_codes.NOT_HOST


class TestDeadlineSweep:
    """Tests for auto-resolution of expired phases."""

    def test_nothing_expired(self, phase_service, make_match):
        make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        assert phase_service.sweep_deadlines() == 0

    def test_stage_timeout_bans_for_current_player(self, phase_service, make_match, match_repository, clock):
        """With 3 stages left, one random ban is made and the turn passes."""
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1, stage_bans=list(TEST_STAGES[:7]))
        clock.advance(61)

        assert phase_service.sweep_deadlines() == 1

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.STAGE_SELECT
        assert len(updated.stage_bans) == 8
        assert updated.stage_bans[-1] in TEST_STAGES[7:]
        assert updated.current_turn == 2
        assert updated.phase_deadline == clock() + 60
        assert updated.history[-1]["details"]["auto"] is True
        assert updated.history[-1]["player_id"] == 1

    def test_stage_timeout_cascades_to_captain_select(self, phase_service, make_match, match_repository, clock):
        """With 2 stages left, the auto-ban leaves one stage and selects it."""
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1, stage_bans=list(TEST_STAGES[:8]))
        clock.advance(61)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.CAPTAIN_SELECT
        assert updated.selected_stage in TEST_STAGES[8:]
        assert updated.selected_stage not in updated.stage_bans
        assert updated.remaining_stages == [updated.selected_stage]

    def test_captain_timeout_fills_missing_picks(self, phase_service, make_match, match_repository, clock):
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT, captain_picks={1: "Mario"})
        clock.advance(61)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.HOST_SELECT
        assert updated.captain_picks[1] == "Mario"
        assert updated.captain_picks[2] in TEST_CAPTAINS

    def test_host_timeout_picks_higher_rep(self, phase_service, make_match, match_repository, clock):
        match = make_match(rep1=1000, rep2=1200, phase=MatchPhase.HOST_SELECT)
        clock.advance(61)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.ROOM_CODE
        assert updated.host_id == 2

    def test_host_timeout_tie_goes_to_earlier_joiner(self, phase_service, make_match, match_repository, clock):
        match = make_match(rep1=1500, rep2=1500, phase=MatchPhase.HOST_SELECT)
        clock.advance(61)

        phase_service.sweep_deadlines()

        assert match_repository.get(match.match_id).host_id == 1

    def test_room_code_timeout_cancels(
        self, phase_service, make_match, match_repository, player_repository, notification_service, clock
    ):
        """No room code: the match is cancelled and no rep moves."""
        match = make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        clock.advance(61)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.CANCELLED
        assert updated.terminal_reason == REASON_ROOM_CODE_TIMEOUT
        assert updated.ended_at == clock()
        assert updated.rep_changes == {}
        assert player_repository.get_by_id(1).rep == 1000
        assert player_repository.get_by_id(2).rep == 1000
        assert match_repository.get_active_for_player(1) is None
        assert len(notification_service.peek(kind=MATCH_CANCELLED)) == 2

    def test_room_code_timeout_requeues_when_enabled(
        self, match_repository, notification_service, queue_service, queue_repository, make_match, rng, clock
    ):
        service = MatchPhaseService(
            match_repo=match_repository,
            notification_service=notification_service,
            stages=TEST_STAGES,
            captains=TEST_CAPTAINS,
            requeue_on_cancel=True,
            requeue=queue_service.requeue_players,
            rng=rng,
            clock=clock,
        )
        make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        clock.advance(61)

        service.sweep_deadlines()

        assert sorted(e.player_id for e in queue_repository.get_all()) == [1, 2]
        assert queue_repository.get(1).joined_at == clock()

    def test_room_code_timeout_no_requeue_by_default(self, phase_service, make_match, queue_repository, clock):
        make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        clock.advance(61)

        phase_service.sweep_deadlines()

        assert queue_repository.count() == 0

    def test_pregame_timeout_fails(self, phase_service, make_match, match_repository, notification_service, clock):
        match = make_match(phase=MatchPhase.PREGAME, deadline_in=600)
        clock.advance(601)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.FAILED
        assert updated.terminal_reason == REASON_PREGAME_TIMEOUT
        assert len(notification_service.peek(kind=MATCH_FAILED)) == 2

    def test_active_timeout_cancels(self, phase_service, make_match, match_repository, clock):
        match = make_match(phase=MatchPhase.ACTIVE, deadline_in=5400)
        clock.advance(5401)

        phase_service.sweep_deadlines()

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.CANCELLED
        assert updated.terminal_reason == REASON_ACTIVE_TIMEOUT

    def test_multiple_expired_matches(self, phase_service, make_match, clock):
        make_match(1, 2, phase=MatchPhase.HOST_SELECT, deadline_in=10)
        make_match(3, 4, phase=MatchPhase.ACTIVE, deadline_in=20)
        make_match(5, 6, phase=MatchPhase.ACTIVE, deadline_in=500)
        clock.advance(30)

        assert phase_service.sweep_deadlines() == 2


class TestTransitions:
    """Tests for the phase graph and compare-and-swap guard."""

    def test_transition_along_graph(self, phase_service, make_match, clock):
        match = make_match(phase=MatchPhase.PREGAME)
        updated = phase_service.transition_to(
            match.match_id, MatchPhase.PREGAME, MatchPhase.STAGE_SELECT, {"current_turn": 2}
        )
        assert updated.phase == MatchPhase.STAGE_SELECT
        assert updated.current_turn == 2
        assert updated.phase_started_at == clock()

    def test_illegal_edge_rejected(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.STAGE_SELECT, current_turn=1)
        with pytest.raises(ValidationError) as exc_info:
            phase_service.transition_to(match.match_id, MatchPhase.STAGE_SELECT, MatchPhase.ACTIVE)
        assert exc_info.value.code == error_codes.INVALID_TRANSITION

    def test_terminal_phase_has_no_exit(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ACTIVE)
        phase_service.cancel_match(match.match_id, "admin")
        with pytest.raises(ValidationError):
            phase_service.transition_to(match.match_id, MatchPhase.CANCELLED, MatchPhase.ACTIVE)

    def test_stale_expected_phase(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.HOST_SELECT)
        with pytest.raises(StateConflictError):
            phase_service.transition_to(match.match_id, MatchPhase.CAPTAIN_SELECT, MatchPhase.HOST_SELECT)

    def test_transition_rejects_engine_owned_fields(self, phase_service, make_match, match_repository):
        """Participants, scores and version cannot be written through a transition."""
        match = make_match(phase=MatchPhase.ACTIVE)

        with pytest.raises(ValidationError, match="participants, winner_id"):
            phase_service.transition_to(
                match.match_id,
                MatchPhase.ACTIVE,
                MatchPhase.CANCELLED,
                {"winner_id": 1, "participants": [], "terminal_reason": "admin"},
            )

        stored = match_repository.get(match.match_id)
        assert stored.phase == MatchPhase.ACTIVE
        assert stored.player_ids == [1, 2]
        assert stored.version == match.version

    def test_transition_allows_terminal_reason(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ACTIVE)
        updated = phase_service.transition_to(
            match.match_id, MatchPhase.ACTIVE, MatchPhase.CANCELLED, {"terminal_reason": "admin"}
        )
        assert updated.terminal_reason == "admin"

    def test_submission_retries_after_conflict(self, conflicting_service, make_match, sleeps):
        service, repo = conflicting_service(conflicts=1)
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)

        result = service.submit_captain_pick(match.match_id, 1, "Peach")

        assert result.success
        assert repo.attempts == 2
        assert sleeps == [0.05]

    def test_retries_exhausted(self, conflicting_service, make_match, match_repository, sleeps):
        """Three lost races return STATE_CONFLICT with doubling backoff."""
        service, repo = conflicting_service(conflicts=10)
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)

        result = service.submit_captain_pick(match.match_id, 1, "Peach")

        assert result.error_code == error_codes.STATE_CONFLICT
        assert repo.attempts == 3
        assert sleeps == [0.05, 0.1]
        assert match_repository.get(match.match_id).captain_picks == {}

    def test_sweep_fails_match_after_exhausted_retries(self, conflicting_service, make_match, match_repository, clock):
        service, _ = conflicting_service(conflicts=3)
        match = make_match(phase=MatchPhase.HOST_SELECT)
        clock.advance(61)

        assert service.sweep_deadlines() == 0

        updated = match_repository.get(match.match_id)
        assert updated.phase == MatchPhase.FAILED
        assert updated.terminal_reason == REASON_RETRIES_EXHAUSTED

    def test_submission_after_timeout_resolution_rejected(self, phase_service, make_match, clock):
        """Once the sweep has moved the match on, the late submission sees the new phase."""
        match = make_match(phase=MatchPhase.HOST_SELECT)
        clock.advance(61)
        phase_service.sweep_deadlines()

        result = phase_service.submit_host_choice(match.match_id, 2)
        assert result.error_code == error_codes.WRONG_PHASE


class TestCancelMatch:
    """Tests for external cancellation."""

    def test_cancel_active(self, phase_service, make_match, notification_service):
        match = make_match(phase=MatchPhase.ACTIVE)
        result = phase_service.cancel_match(match.match_id, "player left")

        assert result.value.phase == MatchPhase.CANCELLED
        assert result.value.terminal_reason == "player left"
        cancelled = notification_service.peek(kind=MATCH_CANCELLED)
        assert cancelled[0].payload["reason"] == "player left"

    def test_cancel_room_code(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ROOM_CODE, host_id=1)
        assert phase_service.cancel_match(match.match_id, "host offline").success

    @pytest.mark.parametrize("phase", [MatchPhase.STAGE_SELECT, MatchPhase.CAPTAIN_SELECT, MatchPhase.HOST_SELECT])
    def test_cancel_not_allowed_in_pregame(self, phase_service, make_match, phase):
        match = make_match(phase=phase, current_turn=1)
        result = phase_service.cancel_match(match.match_id, "nope")
        assert result.error_code == error_codes.CANCEL_NOT_ALLOWED

    def test_cancel_terminal_not_allowed(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ACTIVE)
        phase_service.cancel_match(match.match_id, "first")
        result = phase_service.cancel_match(match.match_id, "second")
        assert result.error_code == error_codes.CANCEL_NOT_ALLOWED


class TestReads:
    """Tests for cached reads."""

    def test_get_match_reflects_submissions(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.CAPTAIN_SELECT)
        assert phase_service.get_match(match.match_id).captain_picks == {}

        phase_service.submit_captain_pick(match.match_id, 1, "Daisy")

        assert phase_service.get_match(match.match_id).captain_picks == {1: "Daisy"}

    def test_get_match_for_player(self, phase_service, make_match):
        match = make_match(phase=MatchPhase.ACTIVE)
        assert phase_service.get_match_for_player(2).match_id == match.match_id
        assert phase_service.get_match_for_player(3) is None
