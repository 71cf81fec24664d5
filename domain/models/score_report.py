"""
Score report and dispute domain models.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class ScoreReport:
    """One participant's claim about the final score of a match."""

    match_id: int
    reporter_id: int
    claimed_self_score: int
    claimed_opponent_score: int
    reported_at: float
    reminder_due_at: float | None = None
    reminder_sent: bool = False

    def agrees_with(self, other: "ScoreReport") -> bool:
        """
        Check whether two reports from opposite sides describe the same result.

        My self-score must equal the opponent's claimed opponent-score, and vice versa.
        """
        return (
            self.claimed_self_score == other.claimed_opponent_score
            and self.claimed_opponent_score == other.claimed_self_score
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "reporter_id": self.reporter_id,
            "claimed_self_score": self.claimed_self_score,
            "claimed_opponent_score": self.claimed_opponent_score,
            "reported_at": self.reported_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoreReport":
        return cls(
            match_id=int(data["match_id"]),
            reporter_id=int(data["reporter_id"]),
            claimed_self_score=int(data["claimed_self_score"]),
            claimed_opponent_score=int(data["claimed_opponent_score"]),
            reported_at=float(data["reported_at"]),
        )


DISPUTE_OPEN = "open"
DISPUTE_RESOLVED = "resolved"
DISPUTE_VOIDED = "voided"


@dataclass
class Dispute:
    """Two disagreeing score reports awaiting adjudication."""

    dispute_id: int | None
    match_id: int
    report1: ScoreReport
    report2: ScoreReport
    opened_at: float
    status: str = DISPUTE_OPEN
    resolved_at: float | None = None
    resolution: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == DISPUTE_OPEN
