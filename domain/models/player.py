"""
Player profile domain model.
"""

from dataclasses import dataclass, field


@dataclass
class PlayerProfile:
    """
    The slice of a player's account the ranked engine reads and writes.

    Profiles are owned by the account layer; the engine only touches rep,
    streak, record, last-match time and captain mastery.
    """

    player_id: int
    rep: int = 0
    win_streak: int = 0
    region: str = "NA"
    wins: int = 0
    losses: int = 0
    last_match_at: float | None = None  # Unix timestamp of last completed ranked match
    club_id: str | None = None
    captain_mastery: dict[str, int] = field(default_factory=dict)

    @property
    def total_matches(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        """Fraction of matches won; 0.5 when the player has no record yet."""
        if self.total_matches == 0:
            return 0.5
        return self.wins / self.total_matches
