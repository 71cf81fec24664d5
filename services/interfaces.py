"""
Service layer interfaces (ABCs).

These abstract base classes define the contracts for the ranked services.
Player-facing commands return Result; scheduler passes return plain summaries.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models.match import Match, MatchPhase
    from domain.models.queue_entry import QueueEntry
    from domain.models.score_report import Dispute
    from services.result import Result


class IQueueService(ABC):
    """Interface for the ranked queue."""

    @abstractmethod
    def join_queue(self, player_id: int, region: str | None = None) -> "Result[QueueEntry]":
        """Add a player to the queue with a snapshot of their standing."""
        ...

    @abstractmethod
    def leave_queue(self, player_id: int) -> "Result[None]":
        ...

    @abstractmethod
    def sweep_queue(self) -> list[int]:
        """Remove stale entries; returns the removed player ids."""
        ...

    @abstractmethod
    def get_queue_status(self) -> list[dict]:
        ...


class IMatchmakingService(ABC):
    """Interface for queue pairing and match creation."""

    @abstractmethod
    def run_matchmaking_pass(self) -> list["Match"]:
        """Score the queue, promote acceptable pairs, return the created matches."""
        ...


class IMatchPhaseService(ABC):
    """Interface for the match phase state machine."""

    @abstractmethod
    def transition_to(
        self, match_id: int, expected_phase: "MatchPhase", new_phase: "MatchPhase", data: dict | None = None
    ) -> "Match":
        """Guarded phase change. Raises NotFoundError, ValidationError or StateConflictError."""
        ...

    @abstractmethod
    def submit_stage_ban(self, match_id: int, player_id: int, stage: str) -> "Result[Match]":
        ...

    @abstractmethod
    def submit_captain_pick(self, match_id: int, player_id: int, captain: str) -> "Result[Match]":
        ...

    @abstractmethod
    def submit_host_choice(self, match_id: int, player_id: int, host_id: int | None = None) -> "Result[Match]":
        """Name the host; host_id defaults to the submitting player."""
        ...

    @abstractmethod
    def submit_room_code(self, match_id: int, player_id: int, room_code: str) -> "Result[Match]":
        ...

    @abstractmethod
    def cancel_match(self, match_id: int, reason: str) -> "Result[Match]":
        ...

    @abstractmethod
    def sweep_deadlines(self) -> int:
        """Apply timeout resolutions to expired matches; returns how many were resolved."""
        ...


class IOutcomeService(ABC):
    """Interface for score reporting and rep application."""

    @abstractmethod
    def report_score(
        self, match_id: int, reporter_id: int, self_score: int, opponent_score: int
    ) -> "Result[Match]":
        ...

    @abstractmethod
    def send_due_reminders(self) -> int:
        ...


class IDisputeService(ABC):
    """Interface for dispute adjudication."""

    @abstractmethod
    def list_open_disputes(self) -> list["Dispute"]:
        ...

    @abstractmethod
    def resolve_dispute(self, match_id: int, score_p0: int, score_p1: int) -> "Result[Match]":
        ...

    @abstractmethod
    def void_dispute(self, match_id: int, reason: str) -> "Result[Match]":
        ...

    @abstractmethod
    def expire_disputes(self) -> int:
        ...


class IClubLeagueGateway(ABC):
    """Receives club rep deltas. Club storage and flooring belong to the club layer."""

    @abstractmethod
    def club_rep_delta(self, club_id: str, delta: int) -> None:
        ...
