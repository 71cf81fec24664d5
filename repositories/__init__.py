"""
Repository layer for data access abstraction.
"""

from repositories.base_repository import BaseRepository
from repositories.dispute_repository import DisputeRepository
from repositories.interfaces import (
    IDisputeRepository,
    IMatchRepository,
    IPlayerRepository,
    IQueueRepository,
    IScoreReportRepository,
)
from repositories.match_repository import MatchRepository
from repositories.player_repository import PlayerRepository
from repositories.queue_repository import QueueRepository
from repositories.score_report_repository import ScoreReportRepository

__all__ = [
    "BaseRepository",
    "PlayerRepository",
    "QueueRepository",
    "MatchRepository",
    "ScoreReportRepository",
    "DisputeRepository",
    "IPlayerRepository",
    "IQueueRepository",
    "IMatchRepository",
    "IScoreReportRepository",
    "IDisputeRepository",
]
