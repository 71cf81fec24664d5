"""
Standard error codes for the ranked service layer.

These error codes allow callers (command handlers, schedulers) to handle
specific error conditions without parsing error message text.

Usage:
    from services.error_codes import ALREADY_QUEUED
    from services.result import Result

    if queue_repo.get(player_id):
        return Result.fail("Already in queue", code=ALREADY_QUEUED)
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
STATE_CONFLICT = "state_conflict"
INTERNAL_ERROR = "internal_error"

# Player errors
PLAYER_NOT_FOUND = "player_not_found"
INACTIVE = "inactive"

# Queue errors
ALREADY_QUEUED = "already_queued"
ALREADY_IN_MATCH = "already_in_match"
NOT_QUEUED = "not_queued"

# Match errors
MATCH_NOT_FOUND = "match_not_found"
NO_ACTIVE_MATCH = "no_active_match"
NOT_A_PARTICIPANT = "not_a_participant"
INVALID_TRANSITION = "invalid_transition"
WRONG_PHASE = "wrong_phase"
NOT_YOUR_TURN = "not_your_turn"
NOT_HOST = "not_host"
ALREADY_PICKED = "already_picked"
INVALID_STAGE = "invalid_stage"
INVALID_CAPTAIN = "invalid_captain"
INVALID_ROOM_CODE = "invalid_room_code"
CANCEL_NOT_ALLOWED = "cancel_not_allowed"

# Dispute errors
DISPUTE_NOT_FOUND = "dispute_not_found"
DISPUTE_CLOSED = "dispute_closed"
