"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod
from typing import Callable

from domain.models.match import Match, MatchPhase
from domain.models.player import PlayerProfile
from domain.models.queue_entry import QueueEntry
from domain.models.score_report import Dispute, ScoreReport


class IPlayerRepository(ABC):
    @abstractmethod
    def add(self, profile: PlayerProfile) -> None: ...

    @abstractmethod
    def get_by_id(self, player_id: int) -> PlayerProfile | None: ...

    @abstractmethod
    def get_by_ids(self, player_ids: list[int]) -> list[PlayerProfile]: ...

    @abstractmethod
    def exists(self, player_id: int) -> bool: ...

    @abstractmethod
    def update_region(self, player_id: int, region: str) -> None: ...

    @abstractmethod
    def set_club(self, player_id: int, club_id: str | None) -> None: ...


class IQueueRepository(ABC):
    @abstractmethod
    def enqueue(self, entry: QueueEntry) -> None:
        """Insert an entry; raises ValidationError when already queued or in a match."""
        ...

    @abstractmethod
    def remove(self, player_id: int) -> bool: ...

    @abstractmethod
    def get(self, player_id: int) -> QueueEntry | None: ...

    @abstractmethod
    def get_all(self) -> list[QueueEntry]: ...

    @abstractmethod
    def increment_attempts(self, player_ids: list[int]) -> None: ...

    @abstractmethod
    def delete_stale(self, joined_before: float, max_attempts: int) -> list[QueueEntry]: ...

    @abstractmethod
    def count(self) -> int: ...


class IMatchRepository(ABC):
    @abstractmethod
    def create_from_queue(self, match: Match) -> Match | None:
        """Atomically consume both queue entries and insert the match; None if either entry is gone."""
        ...

    @abstractmethod
    def get(self, match_id: int) -> Match | None: ...

    @abstractmethod
    def get_active_for_player(self, player_id: int) -> Match | None: ...

    @abstractmethod
    def get_non_terminal(self) -> list[Match]: ...

    @abstractmethod
    def get_expired(self, now: float) -> list[Match]: ...

    @abstractmethod
    def compare_and_set(self, match: Match, expected_phase: MatchPhase) -> Match:
        """Persist the match only if it is still in expected_phase at the read version."""
        ...

    @abstractmethod
    def complete_match(
        self,
        match: Match,
        expected_phase: MatchPhase,
        player_updates: dict[int, Callable[[PlayerProfile], PlayerProfile]],
    ) -> tuple[Match, list[tuple[PlayerProfile, PlayerProfile]]]: ...

    @abstractmethod
    def get_recent_for_player(self, player_id: int, limit: int = 10) -> list[Match]: ...


class IScoreReportRepository(ABC):
    @abstractmethod
    def upsert(self, report: ScoreReport) -> None: ...

    @abstractmethod
    def get_for_match(self, match_id: int) -> list[ScoreReport]: ...

    @abstractmethod
    def get_due_reminders(self, now: float) -> list[ScoreReport]: ...

    @abstractmethod
    def mark_reminder_sent(self, match_id: int, reporter_id: int) -> bool: ...

    @abstractmethod
    def delete_for_match(self, match_id: int) -> int: ...


class IDisputeRepository(ABC):
    @abstractmethod
    def open_dispute(self, match: Match, report1: ScoreReport, report2: ScoreReport, opened_at: float) -> Dispute:
        """Move the match ACTIVE -> DISPUTED and record the dispute in one transaction."""
        ...

    @abstractmethod
    def get_by_match(self, match_id: int) -> Dispute | None: ...

    @abstractmethod
    def get_open(self) -> list[Dispute]: ...

    @abstractmethod
    def get_open_older_than(self, cutoff: float) -> list[Dispute]: ...

    @abstractmethod
    def void_dispute(self, match: Match, resolution: str, resolved_at: float) -> Match:
        """Move the match DISPUTED -> CANCELLED and close the dispute in one transaction."""
        ...
