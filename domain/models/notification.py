"""
Notification records emitted by the engine for the presentation layer.
"""

from dataclasses import dataclass, field
from typing import Any

MATCH_FOUND = "match_found"
PHASE_ADVANCED = "phase_advanced"
AWAITING_OPPONENT = "awaiting_opponent"
REMINDER = "reminder"
MATCH_COMPLETE = "match_complete"
RANK_UP = "rank_up"
RANK_DOWN = "rank_down"
DISPUTE_OPENED = "dispute_opened"
DISPUTE_RESOLVED = "dispute_resolved"
MATCH_CANCELLED = "match_cancelled"
MATCH_FAILED = "match_failed"


@dataclass(frozen=True)
class Notification:
    """
    A plain notification record.

    The engine never renders anything; the caller turns these into messages.
    """

    recipient_id: int
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
