"""
Club league season calendar and club rep forwarding.

A season runs from the first through the last configured day of every month
(UTC). During a season, ranked matches between members of two different
clubs also move club rep. The engine only computes the deltas; the club
layer behind IClubLeagueGateway stores them.
"""

import calendar
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from domain.models.player import PlayerProfile
from domain.services.rep_calculator import ClubRepChange, RepCalculator
from services.interfaces import IClubLeagueGateway

logger = logging.getLogger("ranked_engine.services.club_league")

SEASON_UPCOMING = "UPCOMING"
SEASON_ACTIVE = "ACTIVE"
SEASON_ENDED = "ENDED"


@dataclass(frozen=True)
class SeasonInfo:
    season_number: int  # year * 12 + zero-based month
    start: datetime
    end: datetime
    status: str

    @property
    def is_active(self) -> bool:
        return self.status == SEASON_ACTIVE


class NullClubLeagueGateway(IClubLeagueGateway):
    """Gateway used when no club layer is wired in; logs and drops deltas."""

    def club_rep_delta(self, club_id: str, delta: int) -> None:
        logger.debug(f"No club gateway configured, dropping {delta:+d} for club {club_id}")


class ClubLeagueService:
    """Decides whether a match counts for the club league and forwards the deltas."""

    def __init__(
        self,
        gateway: IClubLeagueGateway | None = None,
        rep_calculator: RepCalculator | None = None,
        enabled: bool = True,
        season_first_day: int = 1,
        season_last_day: int = 7,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway or NullClubLeagueGateway()
        self.rep_calculator = rep_calculator or RepCalculator()
        self.enabled = enabled
        self.season_first_day = season_first_day
        self.season_last_day = season_last_day
        self.clock = clock

    def get_season_info(self, now: float | None = None) -> SeasonInfo:
        """Season containing (or next after) the given timestamp, in UTC."""
        current = datetime.fromtimestamp(self.clock() if now is None else now, tz=timezone.utc)
        last_day = min(self.season_last_day, calendar.monthrange(current.year, current.month)[1])
        start = datetime(current.year, current.month, self.season_first_day, tzinfo=timezone.utc)
        end = datetime(current.year, current.month, last_day, 23, 59, 59, 999000, tzinfo=timezone.utc)

        if current < start:
            status = SEASON_UPCOMING
        elif current > end:
            status = SEASON_ENDED
        else:
            status = SEASON_ACTIVE

        return SeasonInfo(
            season_number=current.year * 12 + (current.month - 1),
            start=start,
            end=end,
            status=status,
        )

    def is_season_active(self, now: float | None = None) -> bool:
        return self.enabled and self.get_season_info(now).is_active

    def time_until_next_season(self, now: float | None = None) -> timedelta:
        """Zero while a season is running."""
        info = self.get_season_info(now)
        current = datetime.fromtimestamp(self.clock() if now is None else now, tz=timezone.utc)
        if info.status == SEASON_ACTIVE:
            return timedelta(0)
        if info.status == SEASON_UPCOMING:
            return info.start - current
        year, month = (current.year + 1, 1) if current.month == 12 else (current.year, current.month + 1)
        return datetime(year, month, self.season_first_day, tzinfo=timezone.utc) - current

    def is_eligible(self, winner: PlayerProfile, loser: PlayerProfile, now: float | None = None) -> bool:
        """Both players in a club, different clubs, season running."""
        if not winner.club_id or not loser.club_id:
            return False
        if winner.club_id == loser.club_id:
            return False
        return self.is_season_active(now)

    def apply_match(
        self,
        winner: PlayerProfile,
        loser: PlayerProfile,
        winner_score: int,
        loser_score: int,
        now: float | None = None,
    ) -> ClubRepChange | None:
        """
        Forward club rep for a completed match when it qualifies.

        Returns:
            The forwarded deltas, or None when the match does not count
        """
        if not self.is_eligible(winner, loser, now):
            return None

        change = self.rep_calculator.calculate_club_rep(winner_score, loser_score)
        self.gateway.club_rep_delta(winner.club_id, change.winner)
        self.gateway.club_rep_delta(loser.club_id, change.loser)
        logger.info(
            f"Club league: {winner.club_id} {change.winner:+d}, {loser.club_id} {change.loser:+d}"
        )
        return change
