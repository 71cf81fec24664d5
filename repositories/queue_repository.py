"""
Repository for the ranked queue.
"""

import logging
import sqlite3

from domain.models.queue_entry import QueueEntry
from repositories.base_repository import BaseRepository
from repositories.interfaces import IQueueRepository
from services import error_codes
from services.errors import ValidationError

logger = logging.getLogger("ranked_engine.repositories.queue")


class QueueRepository(BaseRepository, IQueueRepository):
    """
    Persists queue entries. One row per player (player_id is the primary key).
    """

    def enqueue(self, entry: QueueEntry) -> None:
        """
        Insert a queue entry.

        The in-match check and the insert share one write transaction, so a
        player promoted into a match by a concurrent pass cannot slip back in.

        Raises:
            ValidationError: ALREADY_IN_MATCH or ALREADY_QUEUED
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT match_id FROM active_match_players WHERE player_id = ?",
                (entry.player_id,),
            )
            row = cursor.fetchone()
            if row:
                raise ValidationError(
                    f"Player {entry.player_id} is already in match {row['match_id']}",
                    code=error_codes.ALREADY_IN_MATCH,
                )
            try:
                cursor.execute(
                    """
                    INSERT INTO queue_entries (player_id, region, rep, rank_tier, win_streak,
                                               win_rate, joined_at, match_attempts)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.player_id,
                        entry.region,
                        entry.rep,
                        entry.rank_tier,
                        entry.win_streak,
                        entry.win_rate,
                        entry.joined_at,
                        entry.match_attempts,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(
                    f"Player {entry.player_id} is already queued", code=error_codes.ALREADY_QUEUED
                ) from exc

    def remove(self, player_id: int) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM queue_entries WHERE player_id = ?", (player_id,))
            return cursor.rowcount > 0

    def get(self, player_id: int) -> QueueEntry | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM queue_entries WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
            return self._row_to_entry(row) if row else None

    def get_all(self) -> list[QueueEntry]:
        """All entries, oldest first."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM queue_entries ORDER BY joined_at ASC, player_id ASC")
            return [self._row_to_entry(row) for row in cursor.fetchall()]

    def increment_attempts(self, player_ids: list[int]) -> None:
        if not player_ids:
            return
        with self.connection() as conn:
            cursor = conn.cursor()
            placeholders = ",".join("?" * len(player_ids))
            cursor.execute(
                f"UPDATE queue_entries SET match_attempts = match_attempts + 1 WHERE player_id IN ({placeholders})",
                list(player_ids),
            )

    def delete_stale(self, joined_before: float, max_attempts: int) -> list[QueueEntry]:
        """
        Remove entries that joined before the cutoff or ran out of matchmaking attempts.

        Returns:
            The removed entries
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM queue_entries WHERE joined_at < ? OR match_attempts >= ?",
                (joined_before, max_attempts),
            )
            stale = [self._row_to_entry(row) for row in cursor.fetchall()]
            if stale:
                placeholders = ",".join("?" * len(stale))
                cursor.execute(
                    f"DELETE FROM queue_entries WHERE player_id IN ({placeholders})",
                    [e.player_id for e in stale],
                )
        if stale:
            logger.info(f"Removed {len(stale)} stale queue entries")
        return stale

    def count(self) -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS n FROM queue_entries")
            return cursor.fetchone()["n"]

    @staticmethod
    def _row_to_entry(row) -> QueueEntry:
        return QueueEntry(
            player_id=row["player_id"],
            region=row["region"],
            rep=row["rep"],
            rank_tier=row["rank_tier"],
            win_streak=row["win_streak"],
            joined_at=row["joined_at"],
            match_attempts=row["match_attempts"],
            win_rate=row["win_rate"],
        )
