"""
Application services layer.

Services orchestrate ranked operations using repositories and domain services.
"""

from services.club_league_service import ClubLeagueService, NullClubLeagueGateway
from services.dispute_service import DisputeService
from services.errors import NotFoundError, RankedError, StateConflictError, ValidationError
from services.match_cache import MatchCache
from services.match_phase_service import MatchPhaseService
from services.matchmaking_service import MatchmakingService
from services.notification_service import NotificationService
from services.outcome_service import OutcomeService
from services.queue_service import QueueService

# Result type for consistent error handling
from services.result import Result

# Service interfaces (ABCs)
from services.interfaces import (
    IClubLeagueGateway,
    IDisputeService,
    IMatchmakingService,
    IMatchPhaseService,
    IOutcomeService,
    IQueueService,
)

__all__ = [
    # Concrete services
    "QueueService",
    "MatchmakingService",
    "MatchPhaseService",
    "OutcomeService",
    "DisputeService",
    "ClubLeagueService",
    "NotificationService",
    "MatchCache",
    "NullClubLeagueGateway",
    # Errors
    "RankedError",
    "ValidationError",
    "StateConflictError",
    "NotFoundError",
    # Result type
    "Result",
    # Interfaces
    "IQueueService",
    "IMatchmakingService",
    "IMatchPhaseService",
    "IOutcomeService",
    "IDisputeService",
    "IClubLeagueGateway",
]
