"""
Rep calculation domain service.

Pure functions for turning an agreed match result into rep deltas.
All inputs come from the participant snapshots taken at match creation.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class RepChange:
    """Rep deltas for one match, with the bonus breakdown kept for display."""

    winner_gain: int
    loser_delta: int  # Always negative
    base: int
    rep_diff_bonus: int  # Signed: positive for an upset, negative otherwise
    run_diff_bonus: int
    win_streak_bonus: int
    hypercharged: bool
    floor: int
    ceiling: int


@dataclass(frozen=True)
class ClubRepChange:
    winner: int
    loser: int


class RepCalculator:
    """
    Computes winner gain and loser loss for a completed ranked match.

    Clamp bounds shift upward once the winner's pre-match streak reaches
    ``streak_milestone``.
    """

    REP_DIFF_DIVISOR = 225
    REP_DIFF_CAP = 20
    RUN_DIFF_PER_RUN = 3
    RUN_DIFF_CAP = 30
    STREAK_PER_WIN = 2
    STREAK_CAP = 20

    NORMAL_BOUNDS = (75, 125)
    MILESTONE_BOUNDS = (95, 145)

    CLUB_BASE_REP = 70
    CLUB_MAX_REP = 100
    CLUB_LOSS = -10

    def __init__(
        self,
        base_rep: int = 75,
        hypercharge_multiplier: float = 1.5,
        loser_ratio: float = 0.8,
        streak_milestone: int = 10,
    ):
        self.base_rep = base_rep
        self.hypercharge_multiplier = hypercharge_multiplier
        self.loser_ratio = loser_ratio
        self.streak_milestone = streak_milestone

    def rep_diff_bonus(self, winner_rep: int, loser_rep: int) -> int:
        """Signed rep-difference adjustment: rewards upsets, penalizes beating weaker players."""
        bonus = min(math.floor(abs(winner_rep - loser_rep) / self.REP_DIFF_DIVISOR), self.REP_DIFF_CAP)
        return bonus if winner_rep < loser_rep else -bonus

    def run_diff_bonus(self, winner_score: int, loser_score: int) -> int:
        return min(abs(winner_score - loser_score) * self.RUN_DIFF_PER_RUN, self.RUN_DIFF_CAP)

    def win_streak_bonus(self, win_streak: int) -> int:
        return min(max(win_streak, 0) * self.STREAK_PER_WIN, self.STREAK_CAP)

    def bounds_for_streak(self, win_streak: int) -> tuple[int, int]:
        if win_streak >= self.streak_milestone:
            return self.MILESTONE_BOUNDS
        return self.NORMAL_BOUNDS

    def calculate(
        self,
        winner_rep: int,
        loser_rep: int,
        winner_score: int,
        loser_score: int,
        winner_streak: int,
        is_hypercharged: bool = False,
    ) -> RepChange:
        """
        Compute the rep change for a match.

        Args:
            winner_rep: Winner's rep snapshot at match creation
            loser_rep: Loser's rep snapshot at match creation
            winner_score: Winner's final score
            loser_score: Loser's final score
            winner_streak: Winner's win streak before this match
            is_hypercharged: Whether the match carries the hypercharge multiplier

        Returns:
            RepChange with winner gain and (negative) loser delta
        """
        rep_diff = self.rep_diff_bonus(winner_rep, loser_rep)
        run_diff = self.run_diff_bonus(winner_score, loser_score)
        streak = self.win_streak_bonus(winner_streak)

        total = self.base_rep + rep_diff + run_diff + streak
        if is_hypercharged:
            total = math.floor(total * self.hypercharge_multiplier)

        floor, ceiling = self.bounds_for_streak(winner_streak)
        gain = max(floor, min(ceiling, total))

        return RepChange(
            winner_gain=gain,
            loser_delta=-math.floor(gain * self.loser_ratio),
            base=self.base_rep,
            rep_diff_bonus=rep_diff,
            run_diff_bonus=run_diff,
            win_streak_bonus=streak,
            hypercharged=is_hypercharged,
            floor=floor,
            ceiling=ceiling,
        )

    def calculate_club_rep(self, winner_score: int, loser_score: int) -> ClubRepChange:
        """Club-league rep for the winner's and loser's clubs."""
        gain = min(self.CLUB_BASE_REP + self.run_diff_bonus(winner_score, loser_score), self.CLUB_MAX_REP)
        return ClubRepChange(winner=gain, loser=self.CLUB_LOSS)


def apply_rep_delta(current_rep: int, delta: int) -> int:
    """Apply a delta to a player's total rep, never going below zero."""
    return max(0, current_rep + delta)
