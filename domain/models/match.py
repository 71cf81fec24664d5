"""
Ranked match domain model and phase graph.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MatchPhase(Enum):
    """Phases of a ranked match, from creation to a terminal state."""

    PREGAME = "PREGAME"
    STAGE_SELECT = "STAGE_SELECT"
    CAPTAIN_SELECT = "CAPTAIN_SELECT"
    HOST_SELECT = "HOST_SELECT"
    ROOM_CODE = "ROOM_CODE"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    DISPUTED = "DISPUTED"  # Waiting on external adjudication


# Forward edges only. FAILED is reachable from every non-terminal phase.
ALLOWED_TRANSITIONS: dict[MatchPhase, frozenset[MatchPhase]] = {
    MatchPhase.PREGAME: frozenset({MatchPhase.STAGE_SELECT, MatchPhase.FAILED}),
    MatchPhase.STAGE_SELECT: frozenset({MatchPhase.CAPTAIN_SELECT, MatchPhase.FAILED}),
    MatchPhase.CAPTAIN_SELECT: frozenset({MatchPhase.HOST_SELECT, MatchPhase.FAILED}),
    MatchPhase.HOST_SELECT: frozenset({MatchPhase.ROOM_CODE, MatchPhase.FAILED}),
    MatchPhase.ROOM_CODE: frozenset({MatchPhase.ACTIVE, MatchPhase.CANCELLED, MatchPhase.FAILED}),
    MatchPhase.ACTIVE: frozenset(
        {MatchPhase.COMPLETED, MatchPhase.CANCELLED, MatchPhase.DISPUTED, MatchPhase.FAILED}
    ),
    # Only the adjudication entry points use these edges
    MatchPhase.DISPUTED: frozenset({MatchPhase.COMPLETED, MatchPhase.CANCELLED}),
    MatchPhase.COMPLETED: frozenset(),
    MatchPhase.CANCELLED: frozenset(),
    MatchPhase.FAILED: frozenset(),
}

# Phases the engine no longer drives. A player in one of these may queue again.
TERMINAL_PHASES = frozenset(
    {MatchPhase.COMPLETED, MatchPhase.CANCELLED, MatchPhase.FAILED, MatchPhase.DISPUTED}
)

NON_TERMINAL_PHASES = frozenset(p for p in MatchPhase if p not in TERMINAL_PHASES)

# Phases an external cancel request is honoured in
CANCELLABLE_PHASES = frozenset({MatchPhase.ROOM_CODE, MatchPhase.ACTIVE})


def can_transition(current: MatchPhase, new: MatchPhase) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass
class ParticipantSlot:
    """Snapshot of a participant's standing at match creation."""

    player_id: int
    rep: int
    rank_tier: str
    region: str
    win_streak: int
    joined_at: float
    reported_score: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "rep": self.rep,
            "rank_tier": self.rank_tier,
            "region": self.region,
            "win_streak": self.win_streak,
            "joined_at": self.joined_at,
            "reported_score": self.reported_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParticipantSlot":
        return cls(
            player_id=int(data["player_id"]),
            rep=int(data["rep"]),
            rank_tier=data["rank_tier"],
            region=data["region"],
            win_streak=int(data.get("win_streak", 0)),
            joined_at=float(data.get("joined_at", 0.0)),
            reported_score=data.get("reported_score"),
        )


@dataclass
class Match:
    """
    A ranked 1v1 match.

    Tracks:
    - Participant snapshots (always exactly two)
    - Current phase and its deadline
    - Pre-game negotiation state (stage bans, captain picks, host, room code)
    - Outcome (winner, scores, rep changes) once terminal
    """

    match_id: int
    participants: list[ParticipantSlot]
    phase: MatchPhase
    phase_started_at: float
    phase_deadline: float
    created_at: float
    stage_pool: list[str] = field(default_factory=list)
    stage_bans: list[str] = field(default_factory=list)
    selected_stage: str | None = None
    current_turn: int | None = None  # Player whose stage ban is due
    captain_picks: dict[int, str] = field(default_factory=dict)
    host_id: int | None = None
    room_code: str | None = None
    is_hypercharged: bool = False
    ended_at: float | None = None
    terminal_reason: str | None = None
    winner_id: int | None = None
    final_scores: dict[int, int] = field(default_factory=dict)
    rep_changes: dict[int, int] = field(default_factory=dict)
    history: list[dict[str, Any]] = field(default_factory=list)
    version: int = 0  # Bumped on every persisted write

    def __post_init__(self):
        if len(self.participants) != 2:
            raise ValueError("A ranked match must have exactly 2 participants")

    @property
    def player_ids(self) -> list[int]:
        return [p.player_id for p in self.participants]

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def remaining_stages(self) -> list[str]:
        """Stages not yet banned, in pool order."""
        banned = set(self.stage_bans)
        return [s for s in self.stage_pool if s not in banned]

    def contains_player(self, player_id: int) -> bool:
        return player_id in self.player_ids

    def get_participant(self, player_id: int) -> ParticipantSlot | None:
        for slot in self.participants:
            if slot.player_id == player_id:
                return slot
        return None

    def get_opponent(self, player_id: int) -> ParticipantSlot | None:
        if not self.contains_player(player_id):
            return None
        for slot in self.participants:
            if slot.player_id != player_id:
                return slot
        return None

    def add_history(self, action: str, at: float, player_id: int | None = None, **details: Any) -> None:
        """Append an entry to the match audit trail."""
        self.history.append(
            {"action": action, "player_id": player_id, "details": details, "at": at}
        )
