"""
Service container for dependency injection and initialization.

This module is the only place services are constructed and wired.

Usage:
    container = ServiceContainer(ServiceConfig())
    await container.initialize()

    result = container.queue_service.join_queue(player_id)
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import config

if TYPE_CHECKING:
    from services.club_league_service import ClubLeagueService
    from services.dispute_service import DisputeService
    from services.match_phase_service import MatchPhaseService
    from services.matchmaking_service import MatchmakingService
    from services.outcome_service import OutcomeService
    from services.queue_service import QueueService

from domain.models.match import MatchPhase
from infrastructure.schema_manager import SchemaManager

# Repositories
from repositories.dispute_repository import DisputeRepository
from repositories.match_repository import MatchRepository
from repositories.player_repository import PlayerRepository
from repositories.queue_repository import QueueRepository
from repositories.score_report_repository import ScoreReportRepository
from services.interfaces import IClubLeagueGateway
from services.match_cache import MatchCache
from services.notification_service import NotificationService

logger = logging.getLogger("ranked_engine.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    player: PlayerRepository | None = None
    queue: QueueRepository | None = None
    match: MatchRepository | None = None
    score_report: ScoreReportRepository | None = None
    dispute: DisputeRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization. Defaults come from config.py."""

    # Database
    db_path: str = config.DB_PATH

    # Queue
    inactivity_seconds: int = config.RANKED_INACTIVITY_SECONDS
    max_queue_age_seconds: int = config.RANKED_MAX_QUEUE_AGE_SECONDS
    max_matchmaking_attempts: int = config.RANKED_MAX_MATCHMAKING_ATTEMPTS

    # Matchmaking
    max_match_score: float = config.RANKED_MAX_MATCH_SCORE
    region_penalty: float = config.RANKED_REGION_PENALTY
    hypercharge_chance: float = config.RANKED_HYPERCHARGE_CHANCE
    hypercharge_multiplier: float = config.RANKED_HYPERCHARGE_MULTIPLIER

    # Phase deadlines
    pregame_timeout_seconds: int = config.RANKED_PREGAME_TIMEOUT_SECONDS
    stage_ban_timeout_seconds: int = config.RANKED_STAGE_BAN_TIMEOUT_SECONDS
    captain_timeout_seconds: int = config.RANKED_CAPTAIN_TIMEOUT_SECONDS
    host_timeout_seconds: int = config.RANKED_HOST_TIMEOUT_SECONDS
    room_code_timeout_seconds: int = config.RANKED_ROOM_CODE_TIMEOUT_SECONDS
    active_timeout_seconds: int = config.RANKED_ACTIVE_TIMEOUT_SECONDS

    # Transition retries
    transition_max_retries: int = config.RANKED_TRANSITION_MAX_RETRIES
    transition_retry_delay_seconds: float = config.RANKED_TRANSITION_RETRY_DELAY_SECONDS
    cancel_requeue: bool = config.RANKED_CANCEL_REQUEUE

    # Reports and disputes
    report_reminder_seconds: int = config.RANKED_REPORT_REMINDER_SECONDS
    dispute_timeout_seconds: int = config.RANKED_DISPUTE_TIMEOUT_SECONDS

    # Rep economy
    base_rep: int = config.RANKED_BASE_REP
    loser_rep_ratio: float = config.RANKED_LOSER_REP_RATIO
    streak_milestone: int = config.RANKED_STREAK_MILESTONE
    loser_captain_mastery: int = config.RANKED_LOSER_CAPTAIN_MASTERY

    # Club league
    club_league_enabled: bool = config.CLUB_LEAGUE_ENABLED
    club_season_first_day: int = config.CLUB_LEAGUE_SEASON_FIRST_DAY
    club_season_last_day: int = config.CLUB_LEAGUE_SEASON_LAST_DAY

    # Scheduler intervals
    matchmaking_interval_seconds: float = config.RANKED_MATCHMAKING_INTERVAL_SECONDS
    queue_sweep_interval_seconds: float = config.RANKED_QUEUE_SWEEP_INTERVAL_SECONDS
    deadline_sweep_interval_seconds: float = config.RANKED_DEADLINE_SWEEP_INTERVAL_SECONDS
    reminder_sweep_interval_seconds: float = config.RANKED_REMINDER_SWEEP_INTERVAL_SECONDS
    dispute_sweep_interval_seconds: float = config.RANKED_DISPUTE_SWEEP_INTERVAL_SECONDS

    # Protocol artifacts
    stages: list[str] = field(default_factory=lambda: list(config.RANKED_STAGES))
    captains: list[str] = field(default_factory=lambda: list(config.RANKED_CAPTAINS))

    def phase_timeouts(self) -> dict[MatchPhase, float]:
        return {
            MatchPhase.PREGAME: self.pregame_timeout_seconds,
            MatchPhase.STAGE_SELECT: self.stage_ban_timeout_seconds,
            MatchPhase.CAPTAIN_SELECT: self.captain_timeout_seconds,
            MatchPhase.HOST_SELECT: self.host_timeout_seconds,
            MatchPhase.ROOM_CODE: self.room_code_timeout_seconds,
            MatchPhase.ACTIVE: self.active_timeout_seconds,
        }


class ServiceContainer:
    """
    Central container for all ranked engine services.

    Handles initialization order and dependency injection. The clock, random
    source, sleep function and club gateway can be injected for tests.

    Example:
        container = ServiceContainer(config)
        await container.initialize()
        container.matchmaking_service.run_matchmaking_pass()
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        club_gateway: IClubLeagueGateway | None = None,
    ):
        """
        Initialize the container with configuration.

        Args:
            config: Service configuration (uses defaults if None)
            clock: Time source shared by every service
            rng: Random source for hypercharge rolls and timeout picks
            sleep: Backoff sleep used between transition retries
            club_gateway: Receiver for club league rep deltas
        """
        self.config = config or ServiceConfig()
        self.clock = clock
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.club_gateway = club_gateway
        self._initialized = False
        self._repos = RepositoryContainer()
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Initialize all services in dependency order.

        Idempotent: calling it again has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")

        self._init_database()
        self._init_repositories()
        self._init_core_services()
        self._init_match_services()

        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_database(self) -> None:
        """Create schema and run migrations."""
        logger.debug(f"Initializing database at {self.config.db_path}")
        SchemaManager(self.config.db_path).initialize()

    def _init_repositories(self) -> None:
        logger.debug("Initializing repositories")

        db_path = self.config.db_path
        self._repos.player = PlayerRepository(db_path)
        self._repos.queue = QueueRepository(db_path)
        self._repos.match = MatchRepository(db_path)
        self._repos.score_report = ScoreReportRepository(db_path)
        self._repos.dispute = DisputeRepository(db_path)

    def _init_core_services(self) -> None:
        """Services with no service dependencies."""
        logger.debug("Initializing core services")

        from domain.services.rep_calculator import RepCalculator
        from services.club_league_service import ClubLeagueService
        from services.queue_service import QueueService

        self._services["notifications"] = NotificationService()
        self._services["match_cache"] = MatchCache(self._repos.match)

        self._services["rep_calculator"] = RepCalculator(
            base_rep=self.config.base_rep,
            hypercharge_multiplier=self.config.hypercharge_multiplier,
            loser_ratio=self.config.loser_rep_ratio,
            streak_milestone=self.config.streak_milestone,
        )

        self._services["queue"] = QueueService(
            player_repo=self._repos.player,
            queue_repo=self._repos.queue,
            inactivity_seconds=self.config.inactivity_seconds,
            max_queue_age_seconds=self.config.max_queue_age_seconds,
            max_matchmaking_attempts=self.config.max_matchmaking_attempts,
            clock=self.clock,
        )

        self._services["club_league"] = ClubLeagueService(
            gateway=self.club_gateway,
            rep_calculator=self._services["rep_calculator"],
            enabled=self.config.club_league_enabled,
            season_first_day=self.config.club_season_first_day,
            season_last_day=self.config.club_season_last_day,
            clock=self.clock,
        )

    def _init_match_services(self) -> None:
        """Phase, matchmaking, outcome and dispute services."""
        logger.debug("Initializing match services")

        from domain.services.matchmaking_scorer import MatchmakingScorer
        from services.dispute_service import DisputeService
        from services.match_phase_service import MatchPhaseService
        from services.matchmaking_service import MatchmakingService
        from services.outcome_service import OutcomeService

        notifications = self._services["notifications"]

        self._services["match_phase"] = MatchPhaseService(
            match_repo=self._repos.match,
            notification_service=notifications,
            match_cache=self._services["match_cache"],
            stages=self.config.stages,
            captains=self.config.captains,
            phase_timeouts=self.config.phase_timeouts(),
            max_retries=self.config.transition_max_retries,
            retry_delay_seconds=self.config.transition_retry_delay_seconds,
            requeue_on_cancel=self.config.cancel_requeue,
            requeue=self._services["queue"].requeue_players,
            rng=self.rng,
            clock=self.clock,
            sleep=self.sleep,
        )

        self._services["matchmaking"] = MatchmakingService(
            queue_repo=self._repos.queue,
            match_repo=self._repos.match,
            phase_service=self._services["match_phase"],
            notification_service=notifications,
            scorer=MatchmakingScorer(
                max_match_score=self.config.max_match_score,
                region_penalty=self.config.region_penalty,
            ),
            stages=self.config.stages,
            hypercharge_chance=self.config.hypercharge_chance,
            pregame_timeout_seconds=self.config.pregame_timeout_seconds,
            rng=self.rng,
            clock=self.clock,
        )

        self._services["outcome"] = OutcomeService(
            match_repo=self._repos.match,
            report_repo=self._repos.score_report,
            dispute_repo=self._repos.dispute,
            phase_service=self._services["match_phase"],
            notification_service=notifications,
            rep_calculator=self._services["rep_calculator"],
            club_league_service=self._services["club_league"],
            reminder_seconds=self.config.report_reminder_seconds,
            loser_captain_mastery=self.config.loser_captain_mastery,
            clock=self.clock,
        )

        self._services["dispute"] = DisputeService(
            match_repo=self._repos.match,
            dispute_repo=self._repos.dispute,
            outcome_service=self._services["outcome"],
            phase_service=self._services["match_phase"],
            notification_service=notifications,
            dispute_timeout_seconds=self.config.dispute_timeout_seconds,
            clock=self.clock,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def player_repo(self) -> PlayerRepository:
        return self._repos.player

    @property
    def queue_repo(self) -> QueueRepository:
        return self._repos.queue

    @property
    def match_repo(self) -> MatchRepository:
        return self._repos.match

    @property
    def score_report_repo(self) -> ScoreReportRepository:
        return self._repos.score_report

    @property
    def dispute_repo(self) -> DisputeRepository:
        return self._repos.dispute

    @property
    def notification_service(self) -> NotificationService | None:
        return self._services.get("notifications")

    @property
    def match_cache(self) -> MatchCache | None:
        return self._services.get("match_cache")

    @property
    def queue_service(self) -> "QueueService | None":
        return self._services.get("queue")

    @property
    def club_league_service(self) -> "ClubLeagueService | None":
        return self._services.get("club_league")

    @property
    def match_phase_service(self) -> "MatchPhaseService | None":
        return self._services.get("match_phase")

    @property
    def matchmaking_service(self) -> "MatchmakingService | None":
        return self._services.get("matchmaking")

    @property
    def outcome_service(self) -> "OutcomeService | None":
        return self._services.get("outcome")

    @property
    def dispute_service(self) -> "DisputeService | None":
        return self._services.get("dispute")
