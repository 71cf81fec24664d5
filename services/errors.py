"""
Exceptions raised inside the ranked engine.

Repositories and the phase service raise these; the public service methods
catch them and translate to ``Result.fail`` with a code from error_codes.
"""

from services import error_codes


class RankedError(Exception):
    """Base exception for ranked engine errors"""

    code = error_codes.INTERNAL_ERROR


class ValidationError(RankedError):
    """Raised when input or a requested transition is not allowed"""

    code = error_codes.VALIDATION_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class StateConflictError(RankedError):
    """Raised when a phase compare-and-swap finds the match already moved on"""

    code = error_codes.STATE_CONFLICT


class NotFoundError(RankedError):
    """Raised when a match, player or dispute does not exist"""

    code = error_codes.NOT_FOUND

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code
