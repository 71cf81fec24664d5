"""
Centralized configuration for the ranked matchmaking engine.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    items = [x.strip() for x in raw.split(",") if x.strip()]
    return items or default


DB_PATH = os.getenv("DB_PATH", "ranked_engine.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Queue
RANKED_INACTIVITY_SECONDS = _parse_int("RANKED_INACTIVITY_SECONDS", 604800)  # 1 week
RANKED_MAX_QUEUE_AGE_SECONDS = _parse_int("RANKED_MAX_QUEUE_AGE_SECONDS", 3600)  # 1 hour
RANKED_MAX_MATCHMAKING_ATTEMPTS = _parse_int("RANKED_MAX_MATCHMAKING_ATTEMPTS", 10)
RANKED_QUEUE_SWEEP_INTERVAL_SECONDS = _parse_int("RANKED_QUEUE_SWEEP_INTERVAL_SECONDS", 300)  # 5 minutes

# Matchmaking scorer
RANKED_MATCHMAKING_INTERVAL_SECONDS = _parse_int("RANKED_MATCHMAKING_INTERVAL_SECONDS", 10)
RANKED_MAX_MATCH_SCORE = _parse_float("RANKED_MAX_MATCH_SCORE", 2.0)  # Acceptance threshold (lower is better)
RANKED_REGION_PENALTY = _parse_float("RANKED_REGION_PENALTY", 0.5)  # Added to cross-region pair scores
RANKED_HYPERCHARGE_CHANCE = _parse_float("RANKED_HYPERCHARGE_CHANCE", 0.10)  # 10% of matches
RANKED_HYPERCHARGE_MULTIPLIER = _parse_float("RANKED_HYPERCHARGE_MULTIPLIER", 1.5)

# Phase deadlines (seconds from phase entry)
RANKED_PREGAME_TIMEOUT_SECONDS = _parse_int("RANKED_PREGAME_TIMEOUT_SECONDS", 600)
RANKED_STAGE_BAN_TIMEOUT_SECONDS = _parse_int("RANKED_STAGE_BAN_TIMEOUT_SECONDS", 60)  # Per ban turn
RANKED_CAPTAIN_TIMEOUT_SECONDS = _parse_int("RANKED_CAPTAIN_TIMEOUT_SECONDS", 60)
RANKED_HOST_TIMEOUT_SECONDS = _parse_int("RANKED_HOST_TIMEOUT_SECONDS", 30)
RANKED_ROOM_CODE_TIMEOUT_SECONDS = _parse_int("RANKED_ROOM_CODE_TIMEOUT_SECONDS", 120)
RANKED_ACTIVE_TIMEOUT_SECONDS = _parse_int("RANKED_ACTIVE_TIMEOUT_SECONDS", 5400)  # 1.5 hours
RANKED_DEADLINE_SWEEP_INTERVAL_SECONDS = _parse_float("RANKED_DEADLINE_SWEEP_INTERVAL_SECONDS", 1.0)

# Phase transition retries (compare-and-swap conflicts)
RANKED_TRANSITION_MAX_RETRIES = _parse_int("RANKED_TRANSITION_MAX_RETRIES", 3)
RANKED_TRANSITION_RETRY_DELAY_SECONDS = _parse_float("RANKED_TRANSITION_RETRY_DELAY_SECONDS", 0.05)

# Cancellation policy: put participants back in queue when the host never posts a room code
RANKED_CANCEL_REQUEUE = _parse_bool("RANKED_CANCEL_REQUEUE", False)

# Score reporting
RANKED_REPORT_REMINDER_SECONDS = _parse_int("RANKED_REPORT_REMINDER_SECONDS", 600)  # 10 minutes
RANKED_REMINDER_SWEEP_INTERVAL_SECONDS = _parse_int("RANKED_REMINDER_SWEEP_INTERVAL_SECONDS", 30)
RANKED_DISPUTE_TIMEOUT_SECONDS = _parse_int("RANKED_DISPUTE_TIMEOUT_SECONDS", 86400)  # 24 hours
RANKED_DISPUTE_SWEEP_INTERVAL_SECONDS = _parse_int("RANKED_DISPUTE_SWEEP_INTERVAL_SECONDS", 300)

# Rep economy
RANKED_BASE_REP = _parse_int("RANKED_BASE_REP", 75)
RANKED_LOSER_REP_RATIO = _parse_float("RANKED_LOSER_REP_RATIO", 0.8)  # Loser loses 80% of winner gain
RANKED_STREAK_MILESTONE = _parse_int("RANKED_STREAK_MILESTONE", 10)  # Clamp shifts up at this streak
RANKED_LOSER_CAPTAIN_MASTERY = _parse_int("RANKED_LOSER_CAPTAIN_MASTERY", 50)

# Club league
CLUB_LEAGUE_ENABLED = _parse_bool("CLUB_LEAGUE_ENABLED", True)
CLUB_LEAGUE_SEASON_FIRST_DAY = _parse_int("CLUB_LEAGUE_SEASON_FIRST_DAY", 1)
CLUB_LEAGUE_SEASON_LAST_DAY = _parse_int("CLUB_LEAGUE_SEASON_LAST_DAY", 7)

# Protocol artifacts
RANKED_STAGES = _parse_str_list(
    "RANKED_STAGES",
    [
        "Mario Stadium",
        "Luigi's Mansion",
        "Peach Ice Garden",
        "Daisy Cruiser",
        "Daisy Cruiser (Night)",
        "Yoshi Park",
        "Yoshi Park (Night)",
        "Wario City",
        "Bowser Jr. Playroom",
        "Bowser Castle",
    ],
)
RANKED_CAPTAINS = _parse_str_list(
    "RANKED_CAPTAINS",
    [
        "Mario",
        "Luigi",
        "Peach",
        "Daisy",
        "Yoshi",
        "Birdo",
        "Wario",
        "Waluigi",
        "Donkey Kong",
        "Diddy Kong",
        "Bowser",
        "Bowser Jr.",
    ],
)
