"""
Repository for score disputes.
"""

import json
import logging
from dataclasses import replace

from domain.models.match import Match, MatchPhase
from domain.models.score_report import DISPUTE_OPEN, DISPUTE_VOIDED, Dispute, ScoreReport
from repositories.base_repository import BaseRepository
from repositories.interfaces import IDisputeRepository
from repositories.match_repository import update_match_if_phase

logger = logging.getLogger("ranked_engine.repositories.dispute")


class DisputeRepository(BaseRepository, IDisputeRepository):
    """
    Disputes are opened and voided together with the match phase change
    they belong to.
    """

    def open_dispute(self, match: Match, report1: ScoreReport, report2: ScoreReport, opened_at: float) -> Dispute:
        """
        Record a dispute and move the match to DISPUTED.

        Args:
            match: The match already set to DISPUTED, at the version read from ACTIVE

        Raises:
            StateConflictError: The match left ACTIVE before the write
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            update_match_if_phase(cursor, match, MatchPhase.ACTIVE)
            cursor.execute(
                """
                INSERT INTO disputes (match_id, report1, report2, opened_at, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    match.match_id,
                    json.dumps(report1.to_dict()),
                    json.dumps(report2.to_dict()),
                    opened_at,
                    DISPUTE_OPEN,
                ),
            )
            dispute_id = cursor.lastrowid
            cursor.execute("DELETE FROM score_reports WHERE match_id = ?", (match.match_id,))

        logger.info(f"Dispute {dispute_id} opened for match {match.match_id}")
        return Dispute(
            dispute_id=dispute_id,
            match_id=match.match_id,
            report1=report1,
            report2=report2,
            opened_at=opened_at,
        )

    def get_by_match(self, match_id: int) -> Dispute | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM disputes WHERE match_id = ?", (match_id,))
            row = cursor.fetchone()
            return self._row_to_dispute(row) if row else None

    def get_open(self) -> list[Dispute]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM disputes WHERE status = ? ORDER BY opened_at ASC",
                (DISPUTE_OPEN,),
            )
            return [self._row_to_dispute(row) for row in cursor.fetchall()]

    def get_open_older_than(self, cutoff: float) -> list[Dispute]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM disputes WHERE status = ? AND opened_at < ? ORDER BY opened_at ASC",
                (DISPUTE_OPEN, cutoff),
            )
            return [self._row_to_dispute(row) for row in cursor.fetchall()]

    def void_dispute(self, match: Match, resolution: str, resolved_at: float) -> Match:
        """
        Cancel a disputed match without any rep change.

        Args:
            match: The match already set to CANCELLED, at the version read from DISPUTED
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            update_match_if_phase(cursor, match, MatchPhase.DISPUTED)
            cursor.execute(
                """
                UPDATE disputes SET status = ?, resolved_at = ?, resolution = ?
                WHERE match_id = ? AND status = ?
                """,
                (DISPUTE_VOIDED, resolved_at, resolution, match.match_id, DISPUTE_OPEN),
            )
        logger.info(f"Dispute for match {match.match_id} voided: {resolution}")
        return replace(match, version=match.version + 1)

    @staticmethod
    def _row_to_dispute(row) -> Dispute:
        return Dispute(
            dispute_id=row["dispute_id"],
            match_id=row["match_id"],
            report1=ScoreReport.from_dict(json.loads(row["report1"])),
            report2=ScoreReport.from_dict(json.loads(row["report2"])),
            opened_at=row["opened_at"],
            status=row["status"],
            resolved_at=row["resolved_at"],
            resolution=row["resolution"],
        )
