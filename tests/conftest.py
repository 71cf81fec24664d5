"""
Pytest fixtures for tests.

Performance optimization: uses a session-scoped schema template so the
migrations run once per session. Each test copies the template file instead
of re-initializing the schema.

Services are built with a fake clock, a seeded random source and a no-op
sleep so timeouts and retries are deterministic.
"""

import random
import shutil

import pytest

from domain.models.match import Match, MatchPhase, ParticipantSlot
from domain.models.player import PlayerProfile
from domain.models.queue_entry import QueueEntry
from domain.services.rank_tiers import get_rank_tier
from infrastructure.schema_manager import SchemaManager
from repositories.dispute_repository import DisputeRepository
from repositories.match_repository import MatchRepository
from repositories.player_repository import PlayerRepository
from repositories.queue_repository import QueueRepository
from repositories.score_report_repository import ScoreReportRepository
from services.club_league_service import ClubLeagueService
from services.dispute_service import DisputeService
from services.match_cache import MatchCache
from services.match_phase_service import MatchPhaseService
from services.matchmaking_service import MatchmakingService
from services.notification_service import NotificationService
from services.outcome_service import OutcomeService
from services.queue_service import QueueService

# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

TEST_START_TIME = 1_700_000_000.0
"""2023-11-14 22:13 UTC: outside the club league season window."""

TEST_SEASON_TIME = 1_709_467_200.0
"""2024-03-03 12:00 UTC: inside the club league season window."""

TEST_STAGES = [
    "Mario Stadium",
    "Luigi's Mansion",
    "Peach Ice Garden",
    "Daisy Cruiser",
    "Daisy Cruiser (Night)",
    "Yoshi Park",
    "Yoshi Park (Night)",
    "Wario City",
    "Bowser Jr. Playroom",
    "Bowser Castle",
]

TEST_CAPTAINS = ["Mario", "Luigi", "Peach", "Daisy", "Yoshi", "Birdo", "Wario", "Waluigi"]


class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: float = TEST_START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingClubGateway:
    """Club league gateway that records every delta it receives."""

    def __init__(self):
        self.deltas: list[tuple[str, int]] = []

    def club_rep_delta(self, club_id: str, delta: int) -> None:
        self.deltas.append((club_id, delta))


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    Tests copy from this template instead of running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    SchemaManager(template_path).initialize()
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    yield str(tmp_path / "temp.db")


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """
    Create a temporary database with initialized schema for repository tests.

    Fast: file copy instead of schema initialization.
    """
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def player_repository(repo_db_path):
    return PlayerRepository(repo_db_path)


@pytest.fixture
def queue_repository(repo_db_path):
    return QueueRepository(repo_db_path)


@pytest.fixture
def match_repository(repo_db_path):
    return MatchRepository(repo_db_path)


@pytest.fixture
def score_report_repository(repo_db_path):
    return ScoreReportRepository(repo_db_path)


@pytest.fixture
def dispute_repository(repo_db_path):
    return DisputeRepository(repo_db_path)


# =============================================================================
# DETERMINISM FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def club_gateway():
    return RecordingClubGateway()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def notification_service():
    return NotificationService()


@pytest.fixture
def match_cache(match_repository):
    return MatchCache(match_repository)


@pytest.fixture
def queue_service(player_repository, queue_repository, clock):
    return QueueService(player_repository, queue_repository, clock=clock)


@pytest.fixture
def phase_service(match_repository, notification_service, match_cache, queue_service, rng, clock, sleeps):
    return MatchPhaseService(
        match_repo=match_repository,
        notification_service=notification_service,
        match_cache=match_cache,
        stages=TEST_STAGES,
        captains=TEST_CAPTAINS,
        requeue=queue_service.requeue_players,
        rng=rng,
        clock=clock,
        sleep=sleeps.append,
    )


@pytest.fixture
def matchmaking_service(queue_repository, match_repository, phase_service, notification_service, rng, clock):
    return MatchmakingService(
        queue_repo=queue_repository,
        match_repo=match_repository,
        phase_service=phase_service,
        notification_service=notification_service,
        stages=TEST_STAGES,
        hypercharge_chance=0.0,
        rng=rng,
        clock=clock,
    )


@pytest.fixture
def club_league_service(club_gateway, clock):
    return ClubLeagueService(gateway=club_gateway, clock=clock)


@pytest.fixture
def outcome_service(
    match_repository,
    score_report_repository,
    dispute_repository,
    phase_service,
    notification_service,
    club_league_service,
    clock,
):
    return OutcomeService(
        match_repo=match_repository,
        report_repo=score_report_repository,
        dispute_repo=dispute_repository,
        phase_service=phase_service,
        notification_service=notification_service,
        club_league_service=club_league_service,
        clock=clock,
    )


@pytest.fixture
def dispute_service(
    match_repository, dispute_repository, outcome_service, phase_service, notification_service, clock
):
    return DisputeService(
        match_repo=match_repository,
        dispute_repo=dispute_repository,
        outcome_service=outcome_service,
        phase_service=phase_service,
        notification_service=notification_service,
        clock=clock,
    )


# =============================================================================
# DATA FACTORIES
# =============================================================================


@pytest.fixture
def make_player(player_repository):
    """Factory that stores and returns a PlayerProfile."""

    def _make(player_id: int, rep: int = 1000, **fields) -> PlayerProfile:
        profile = PlayerProfile(player_id=player_id, rep=rep, **fields)
        player_repository.add(profile)
        return profile

    return _make


@pytest.fixture
def make_match(make_player, queue_repository, match_repository, clock):
    """
    Factory that creates a stored match between two new players and moves it
    straight to the requested phase.

    Phase placement writes the row directly; it does not walk the phase graph.
    """

    def _make(
        p1: int = 1,
        p2: int = 2,
        rep1: int = 1000,
        rep2: int = 1000,
        phase: MatchPhase = MatchPhase.ACTIVE,
        deadline_in: float = 60.0,
        player_fields: dict | None = None,
        **fields,
    ) -> Match:
        now = clock()
        slots = []
        for offset, (pid, rep) in enumerate(((p1, rep1), (p2, rep2))):
            extra = (player_fields or {}).get(pid, {})
            profile = make_player(pid, rep=rep, **extra)
            entry = QueueEntry(
                player_id=pid,
                region=profile.region,
                rep=rep,
                rank_tier=get_rank_tier(rep).name,
                win_streak=profile.win_streak,
                joined_at=now - 100 + offset,
            )
            queue_repository.enqueue(entry)
            slots.append(
                ParticipantSlot(
                    player_id=pid,
                    rep=rep,
                    rank_tier=entry.rank_tier,
                    region=entry.region,
                    win_streak=entry.win_streak,
                    joined_at=entry.joined_at,
                )
            )

        draft = Match(
            match_id=0,
            participants=slots,
            phase=MatchPhase.PREGAME,
            phase_started_at=now,
            phase_deadline=now + 600,
            created_at=now,
            stage_pool=list(TEST_STAGES),
            is_hypercharged=fields.pop("is_hypercharged", False),
        )
        match = match_repository.create_from_queue(draft)
        match.phase = phase
        match.phase_started_at = now
        match.phase_deadline = now + deadline_in
        for name, value in fields.items():
            setattr(match, name, value)
        return match_repository.compare_and_set(match, MatchPhase.PREGAME)

    return _make
