"""
Repository for ranked matches.

Every write after creation goes through a compare-and-swap on the match's
phase and version, so two paths racing on the same match cannot both win.
"""

import json
import logging
from dataclasses import replace
from typing import Callable

from domain.models.match import NON_TERMINAL_PHASES, Match, MatchPhase, ParticipantSlot
from domain.models.player import PlayerProfile
from domain.models.score_report import DISPUTE_OPEN, DISPUTE_RESOLVED
from domain.services.rank_tiers import get_rank_tier
from repositories.base_repository import BaseRepository
from repositories.interfaces import IMatchRepository
from repositories.player_repository import PlayerRepository
from services import error_codes
from services.errors import NotFoundError, StateConflictError

logger = logging.getLogger("ranked_engine.repositories.match")

_NON_TERMINAL_VALUES = tuple(sorted(p.value for p in NON_TERMINAL_PHASES))


def _int_keys(raw: str | None) -> dict[int, object]:
    if not raw:
        return {}
    return {int(k): v for k, v in json.loads(raw).items()}


def row_to_match(row) -> Match:
    """Convert a matches row into a Match."""
    return Match(
        match_id=row["match_id"],
        participants=[ParticipantSlot.from_dict(p) for p in json.loads(row["participants"])],
        phase=MatchPhase(row["phase"]),
        phase_started_at=row["phase_started_at"],
        phase_deadline=row["phase_deadline"],
        created_at=row["created_at"],
        stage_pool=json.loads(row["stage_pool"] or "[]"),
        stage_bans=json.loads(row["stage_bans"] or "[]"),
        selected_stage=row["selected_stage"],
        current_turn=row["current_turn"],
        captain_picks=_int_keys(row["captain_picks"]),
        host_id=row["host_id"],
        room_code=row["room_code"],
        is_hypercharged=bool(row["is_hypercharged"]),
        ended_at=row["ended_at"],
        terminal_reason=row["terminal_reason"],
        winner_id=row["winner_id"],
        final_scores={k: int(v) for k, v in _int_keys(row["final_scores"]).items()},
        rep_changes={k: int(v) for k, v in _int_keys(row["rep_changes"]).items()},
        history=json.loads(row["history"] or "[]"),
        version=row["version"],
    )


def update_match_if_phase(cursor, match: Match, expected_phase: MatchPhase) -> None:
    """
    Write the mutable columns of a match guarded by phase and version.

    Runs on the caller's cursor so it can share a transaction with other writes.

    Raises:
        StateConflictError: The stored match is no longer at expected_phase / match.version
    """
    cursor.execute(
        """
        UPDATE matches SET
            participants = ?,
            phase = ?,
            phase_started_at = ?,
            phase_deadline = ?,
            stage_bans = ?,
            selected_stage = ?,
            current_turn = ?,
            captain_picks = ?,
            host_id = ?,
            room_code = ?,
            ended_at = ?,
            terminal_reason = ?,
            winner_id = ?,
            final_scores = ?,
            rep_changes = ?,
            history = ?,
            version = version + 1
        WHERE match_id = ? AND phase = ? AND version = ?
        """,
        (
            json.dumps([p.to_dict() for p in match.participants]),
            match.phase.value,
            match.phase_started_at,
            match.phase_deadline,
            json.dumps(match.stage_bans),
            match.selected_stage,
            match.current_turn,
            json.dumps(match.captain_picks),
            match.host_id,
            match.room_code,
            match.ended_at,
            match.terminal_reason,
            match.winner_id,
            json.dumps(match.final_scores),
            json.dumps(match.rep_changes),
            json.dumps(match.history),
            match.match_id,
            expected_phase.value,
            match.version,
        ),
    )
    if cursor.rowcount == 0:
        raise StateConflictError(
            f"Match {match.match_id} is no longer in {expected_phase.value} (version {match.version})"
        )

    if match.is_terminal:
        # Frees both players to queue again
        cursor.execute("DELETE FROM active_match_players WHERE match_id = ?", (match.match_id,))


class MatchRepository(BaseRepository, IMatchRepository):
    """
    Handles match persistence: creation from the queue, reads, guarded updates
    and the multi-table completion write.
    """

    def create_from_queue(self, match: Match) -> Match | None:
        """
        Promote two queue entries into a match.

        Both queue rows are deleted and the match inserted in one BEGIN IMMEDIATE
        transaction. If either entry has already left the queue (or either
        player somehow holds a non-terminal match) nothing is written.

        Participant rep, rank tier and win streak are re-read from the players
        table inside the same transaction; the queue entry supplies region and
        join time.

        Returns:
            The stored match with its assigned id, or None if the pair was unavailable
        """
        player_ids = match.player_ids
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS n FROM active_match_players WHERE player_id IN (?, ?)",
                player_ids,
            )
            if cursor.fetchone()["n"]:
                logger.warning(f"Skipping promotion of {player_ids}: a player already holds a match")
                return None

            removed = 0
            for player_id in player_ids:
                cursor.execute("DELETE FROM queue_entries WHERE player_id = ?", (player_id,))
                removed += cursor.rowcount
            if removed != 2:
                conn.rollback()
                logger.info(f"Skipping promotion of {player_ids}: queue entry already gone")
                return None

            participants = []
            for slot in match.participants:
                profile = PlayerRepository.read_profile(cursor, slot.player_id)
                if profile is None:
                    conn.rollback()
                    logger.warning(f"Skipping promotion of {player_ids}: no profile for {slot.player_id}")
                    return None
                participants.append(
                    replace(
                        slot,
                        rep=profile.rep,
                        rank_tier=get_rank_tier(profile.rep).name,
                        win_streak=profile.win_streak,
                    )
                )
            match = replace(match, participants=participants)

            cursor.execute(
                """
                INSERT INTO matches (player1_id, player2_id, participants, phase, phase_started_at,
                                     phase_deadline, created_at, stage_pool, stage_bans, selected_stage,
                                     current_turn, captain_picks, host_id, room_code, is_hypercharged,
                                     history)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    player_ids[0],
                    player_ids[1],
                    json.dumps([p.to_dict() for p in match.participants]),
                    match.phase.value,
                    match.phase_started_at,
                    match.phase_deadline,
                    match.created_at,
                    json.dumps(match.stage_pool),
                    json.dumps(match.stage_bans),
                    match.selected_stage,
                    match.current_turn,
                    json.dumps(match.captain_picks),
                    match.host_id,
                    match.room_code,
                    1 if match.is_hypercharged else 0,
                    json.dumps(match.history),
                ),
            )
            match_id = cursor.lastrowid
            cursor.executemany(
                "INSERT INTO active_match_players (player_id, match_id) VALUES (?, ?)",
                [(pid, match_id) for pid in player_ids],
            )

        return replace(match, match_id=match_id, version=0)

    def get(self, match_id: int) -> Match | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM matches WHERE match_id = ?", (match_id,))
            row = cursor.fetchone()
            return row_to_match(row) if row else None

    def get_active_for_player(self, player_id: int) -> Match | None:
        """The player's non-terminal match, if any."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT m.* FROM matches m
                JOIN active_match_players a ON a.match_id = m.match_id
                WHERE a.player_id = ?
                """,
                (player_id,),
            )
            row = cursor.fetchone()
            return row_to_match(row) if row else None

    def get_non_terminal(self) -> list[Match]:
        placeholders = ",".join("?" * len(_NON_TERMINAL_VALUES))
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM matches WHERE phase IN ({placeholders}) ORDER BY match_id",
                _NON_TERMINAL_VALUES,
            )
            return [row_to_match(row) for row in cursor.fetchall()]

    def get_expired(self, now: float) -> list[Match]:
        """Non-terminal matches whose phase deadline has passed, earliest deadline first."""
        placeholders = ",".join("?" * len(_NON_TERMINAL_VALUES))
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT * FROM matches
                WHERE phase IN ({placeholders}) AND phase_deadline <= ?
                ORDER BY phase_deadline ASC, match_id ASC
                """,
                (*_NON_TERMINAL_VALUES, now),
            )
            return [row_to_match(row) for row in cursor.fetchall()]

    def compare_and_set(self, match: Match, expected_phase: MatchPhase) -> Match:
        with self.connection() as conn:
            update_match_if_phase(conn.cursor(), match, expected_phase)
        return replace(match, version=match.version + 1)

    def complete_match(
        self,
        match: Match,
        expected_phase: MatchPhase,
        player_updates: dict[int, Callable[[PlayerProfile], PlayerProfile]],
    ) -> tuple[Match, list[tuple[PlayerProfile, PlayerProfile]]]:
        """
        Persist a completed match together with its player updates.

        In one transaction: the guarded match write, each player's profile
        re-read and passed through its update, removal of the match's score
        reports and, when completing a dispute, closing the dispute row. A
        conflict on the match or a missing profile rolls everything back.

        Returns:
            The stored match and (before, after) profile pairs in player_updates order

        Raises:
            StateConflictError: The match left expected_phase
            NotFoundError: A player in player_updates has no profile
        """
        changed: list[tuple[PlayerProfile, PlayerProfile]] = []
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            update_match_if_phase(cursor, match, expected_phase)
            for player_id, update in player_updates.items():
                before = PlayerRepository.read_profile(cursor, player_id)
                if before is None:
                    raise NotFoundError(
                        f"Missing player profile {player_id} for match {match.match_id}",
                        code=error_codes.PLAYER_NOT_FOUND,
                    )
                after = update(before)
                PlayerRepository.write_profile(cursor, after)
                changed.append((before, after))
            cursor.execute("DELETE FROM score_reports WHERE match_id = ?", (match.match_id,))
            if expected_phase == MatchPhase.DISPUTED:
                cursor.execute(
                    """
                    UPDATE disputes SET status = ?, resolved_at = ?, resolution = ?
                    WHERE match_id = ? AND status = ?
                    """,
                    (DISPUTE_RESOLVED, match.ended_at, match.terminal_reason, match.match_id, DISPUTE_OPEN),
                )
        logger.info(f"Match {match.match_id} completed: winner={match.winner_id} changes={match.rep_changes}")
        return replace(match, version=match.version + 1), changed

    def get_recent_for_player(self, player_id: int, limit: int = 10) -> list[Match]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM matches
                WHERE player1_id = ? OR player2_id = ?
                ORDER BY created_at DESC, match_id DESC
                LIMIT ?
                """,
                (player_id, player_id, limit),
            )
            return [row_to_match(row) for row in cursor.fetchall()]
