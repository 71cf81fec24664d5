"""
Schema and migration management for the ranked engine's SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("ranked_engine.schema")


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        with self._connect() as conn:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri:  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Player profiles (fields the engine reads and writes)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS players (
                player_id INTEGER PRIMARY KEY,
                rep INTEGER NOT NULL DEFAULT 0,
                win_streak INTEGER NOT NULL DEFAULT 0,
                region TEXT NOT NULL DEFAULT 'NA',
                wins INTEGER NOT NULL DEFAULT 0,
                losses INTEGER NOT NULL DEFAULT 0,
                last_match_at REAL,
                club_id TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

        # Ranked matches
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS matches (
                match_id INTEGER PRIMARY KEY AUTOINCREMENT,
                player1_id INTEGER NOT NULL,
                player2_id INTEGER NOT NULL,
                participants TEXT NOT NULL,
                phase TEXT NOT NULL,
                phase_started_at REAL NOT NULL,
                phase_deadline REAL NOT NULL,
                created_at REAL NOT NULL,
                stage_pool TEXT NOT NULL DEFAULT '[]',
                stage_bans TEXT NOT NULL DEFAULT '[]',
                selected_stage TEXT,
                current_turn INTEGER,
                captain_picks TEXT NOT NULL DEFAULT '{}',
                host_id INTEGER,
                room_code TEXT,
                is_hypercharged INTEGER NOT NULL DEFAULT 0,
                ended_at REAL,
                terminal_reason TEXT,
                winner_id INTEGER,
                final_scores TEXT NOT NULL DEFAULT '{}',
                rep_changes TEXT NOT NULL DEFAULT '{}',
                history TEXT NOT NULL DEFAULT '[]',
                version INTEGER NOT NULL DEFAULT 0
            )
            """
        )

        # One row per player currently in a non-terminal match
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS active_match_players (
                player_id INTEGER PRIMARY KEY,
                match_id INTEGER NOT NULL,
                FOREIGN KEY (match_id) REFERENCES matches(match_id)
            )
            """
        )

    # --- Migration helpers ---

    def _add_column_if_not_exists(self, cursor, table: str, column: str, column_type: str) -> None:
        try:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        except sqlite3.OperationalError:
            pass

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("create_queue_entries_table", self._migration_create_queue_entries_table),
            ("create_score_reports_table", self._migration_create_score_reports_table),
            ("create_disputes_table", self._migration_create_disputes_table),
            ("add_match_indexes_v1", self._migration_add_match_indexes_v1),
            ("add_captain_mastery_to_players", self._migration_add_captain_mastery_to_players),
            ("add_report_reminder_columns", self._migration_add_report_reminder_columns),
        ]

    # --- Migrations ---

    def _migration_create_queue_entries_table(self, cursor) -> None:
        # player_id as primary key: at most one active entry per player
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS queue_entries (
                player_id INTEGER PRIMARY KEY,
                region TEXT NOT NULL,
                rep INTEGER NOT NULL,
                rank_tier TEXT NOT NULL,
                win_streak INTEGER NOT NULL DEFAULT 0,
                win_rate REAL NOT NULL DEFAULT 0.5,
                joined_at REAL NOT NULL,
                match_attempts INTEGER NOT NULL DEFAULT 0
            )
            """
        )

    def _migration_create_score_reports_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS score_reports (
                match_id INTEGER NOT NULL,
                reporter_id INTEGER NOT NULL,
                claimed_self_score INTEGER NOT NULL,
                claimed_opponent_score INTEGER NOT NULL,
                reported_at REAL NOT NULL,
                PRIMARY KEY (match_id, reporter_id),
                FOREIGN KEY (match_id) REFERENCES matches(match_id)
            )
            """
        )

    def _migration_create_disputes_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS disputes (
                dispute_id INTEGER PRIMARY KEY AUTOINCREMENT,
                match_id INTEGER NOT NULL UNIQUE,
                report1 TEXT NOT NULL,
                report2 TEXT NOT NULL,
                opened_at REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'open',
                resolved_at REAL,
                resolution TEXT,
                FOREIGN KEY (match_id) REFERENCES matches(match_id)
            )
            """
        )

    def _migration_add_match_indexes_v1(self, cursor) -> None:
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_phase_deadline ON matches(phase, phase_deadline)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_player1 ON matches(player1_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_player2 ON matches(player2_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_queue_entries_joined ON queue_entries(joined_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_disputes_status ON disputes(status, opened_at)")

    def _migration_add_captain_mastery_to_players(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "players", "captain_mastery", "TEXT NOT NULL DEFAULT '{}'")

    def _migration_add_report_reminder_columns(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "score_reports", "reminder_due_at", "REAL")
        self._add_column_if_not_exists(cursor, "score_reports", "reminder_sent", "INTEGER NOT NULL DEFAULT 0")
