"""
Queue entry domain model.
"""

from dataclasses import dataclass


@dataclass
class QueueEntry:
    """A player waiting in the ranked queue, with a snapshot of their standing at join time."""

    player_id: int
    region: str
    rep: int
    rank_tier: str
    win_streak: int
    joined_at: float
    match_attempts: int = 0
    win_rate: float = 0.5

    def wait_seconds(self, now: float) -> float:
        return max(0.0, now - self.joined_at)
