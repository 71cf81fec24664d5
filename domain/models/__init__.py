"""
Domain models - pure data structures representing ranked entities.
"""

from domain.models.match import (
    ALLOWED_TRANSITIONS,
    TERMINAL_PHASES,
    Match,
    MatchPhase,
    ParticipantSlot,
    can_transition,
)
from domain.models.notification import Notification
from domain.models.player import PlayerProfile
from domain.models.queue_entry import QueueEntry
from domain.models.score_report import Dispute, ScoreReport

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_PHASES",
    "Dispute",
    "Match",
    "MatchPhase",
    "Notification",
    "ParticipantSlot",
    "PlayerProfile",
    "QueueEntry",
    "ScoreReport",
    "can_transition",
]
