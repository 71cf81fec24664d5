"""
Repository for pending score reports.
"""

from domain.models.score_report import ScoreReport
from repositories.base_repository import BaseRepository
from repositories.interfaces import IScoreReportRepository


class ScoreReportRepository(BaseRepository, IScoreReportRepository):
    """
    Score reports keyed by (match_id, reporter_id). A second report from the
    same reporter replaces the first.
    """

    def upsert(self, report: ScoreReport) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO score_reports (match_id, reporter_id, claimed_self_score,
                                           claimed_opponent_score, reported_at,
                                           reminder_due_at, reminder_sent)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(match_id, reporter_id) DO UPDATE SET
                    claimed_self_score = excluded.claimed_self_score,
                    claimed_opponent_score = excluded.claimed_opponent_score,
                    reported_at = excluded.reported_at,
                    reminder_due_at = excluded.reminder_due_at,
                    reminder_sent = excluded.reminder_sent
                """,
                (
                    report.match_id,
                    report.reporter_id,
                    report.claimed_self_score,
                    report.claimed_opponent_score,
                    report.reported_at,
                    report.reminder_due_at,
                    1 if report.reminder_sent else 0,
                ),
            )

    def get_for_match(self, match_id: int) -> list[ScoreReport]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM score_reports WHERE match_id = ? ORDER BY reported_at ASC, reporter_id ASC",
                (match_id,),
            )
            return [self._row_to_report(row) for row in cursor.fetchall()]

    def get_due_reminders(self, now: float) -> list[ScoreReport]:
        """Reports whose reminder is due and has not been sent yet."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM score_reports
                WHERE reminder_sent = 0 AND reminder_due_at IS NOT NULL AND reminder_due_at <= ?
                ORDER BY reminder_due_at ASC
                """,
                (now,),
            )
            return [self._row_to_report(row) for row in cursor.fetchall()]

    def mark_reminder_sent(self, match_id: int, reporter_id: int) -> bool:
        """Flag the reminder as sent. Returns False if another sweep got there first."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE score_reports SET reminder_sent = 1
                WHERE match_id = ? AND reporter_id = ? AND reminder_sent = 0
                """,
                (match_id, reporter_id),
            )
            return cursor.rowcount > 0

    def delete_for_match(self, match_id: int) -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM score_reports WHERE match_id = ?", (match_id,))
            return cursor.rowcount

    @staticmethod
    def _row_to_report(row) -> ScoreReport:
        return ScoreReport(
            match_id=row["match_id"],
            reporter_id=row["reporter_id"],
            claimed_self_score=row["claimed_self_score"],
            claimed_opponent_score=row["claimed_opponent_score"],
            reported_at=row["reported_at"],
            reminder_due_at=row["reminder_due_at"],
            reminder_sent=bool(row["reminder_sent"]),
        )
