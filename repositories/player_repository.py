"""
Repository for ranked player profiles.
"""

import json
import logging

from domain.models.player import PlayerProfile
from repositories.base_repository import BaseRepository
from repositories.interfaces import IPlayerRepository

logger = logging.getLogger("ranked_engine.repositories.player")


def row_to_profile(row) -> PlayerProfile:
    """Convert a players row into a PlayerProfile."""
    mastery = row["captain_mastery"] if "captain_mastery" in row.keys() else None
    return PlayerProfile(
        player_id=row["player_id"],
        rep=row["rep"] or 0,
        win_streak=row["win_streak"] or 0,
        region=row["region"],
        wins=row["wins"] or 0,
        losses=row["losses"] or 0,
        last_match_at=row["last_match_at"],
        club_id=row["club_id"],
        captain_mastery={k: int(v) for k, v in json.loads(mastery).items()} if mastery else {},
    )


class PlayerRepository(BaseRepository, IPlayerRepository):
    """
    Handles CRUD for the fields of a player account the ranked engine owns.
    """

    def add(self, profile: PlayerProfile) -> None:
        """
        Insert or replace a player profile.

        The account layer calls this on registration; tests use it for setup.
        """
        with self.connection() as conn:
            self.write_profile(conn.cursor(), profile)

    @staticmethod
    def write_profile(cursor, profile: PlayerProfile) -> None:
        """Upsert a profile using an existing cursor (for multi-table transactions)."""
        cursor.execute(
            """
            INSERT INTO players (player_id, rep, win_streak, region, wins, losses,
                                 last_match_at, club_id, captain_mastery)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(player_id) DO UPDATE SET
                rep = excluded.rep,
                win_streak = excluded.win_streak,
                region = excluded.region,
                wins = excluded.wins,
                losses = excluded.losses,
                last_match_at = excluded.last_match_at,
                club_id = excluded.club_id,
                captain_mastery = excluded.captain_mastery,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                profile.player_id,
                profile.rep,
                profile.win_streak,
                profile.region,
                profile.wins,
                profile.losses,
                profile.last_match_at,
                profile.club_id,
                json.dumps(profile.captain_mastery),
            ),
        )

    @staticmethod
    def read_profile(cursor, player_id: int) -> PlayerProfile | None:
        """Read a profile on an existing cursor, seeing the caller's transaction."""
        cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
        row = cursor.fetchone()
        return row_to_profile(row) if row else None

    def get_by_id(self, player_id: int) -> PlayerProfile | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return row_to_profile(row)

    def get_by_ids(self, player_ids: list[int]) -> list[PlayerProfile]:
        """
        Get multiple profiles.

        Returns profiles in the same order as the input ids; unknown ids are skipped.
        """
        if not player_ids:
            return []

        with self.connection() as conn:
            cursor = conn.cursor()
            placeholders = ",".join("?" * len(player_ids))
            cursor.execute(
                f"SELECT * FROM players WHERE player_id IN ({placeholders})",
                list(player_ids),
            )
            by_id = {row["player_id"]: row for row in cursor.fetchall()}

        return [row_to_profile(by_id[pid]) for pid in player_ids if pid in by_id]

    def exists(self, player_id: int) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM players WHERE player_id = ?", (player_id,))
            return cursor.fetchone() is not None

    def update_region(self, player_id: int, region: str) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE players SET region = ?, updated_at = CURRENT_TIMESTAMP WHERE player_id = ?",
                (region, player_id),
            )

    def set_club(self, player_id: int, club_id: str | None) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE players SET club_id = ?, updated_at = CURRENT_TIMESTAMP WHERE player_id = ?",
                (club_id, player_id),
            )
            if cursor.rowcount == 0:
                logger.warning(f"set_club: no player with id {player_id}")

