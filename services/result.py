"""
Result type returned by every public ranked service method.

Player commands never raise for expected failures (already queued, wrong
turn, bad room code). They return a failed Result carrying a code from
services.error_codes, and callers branch on that code.

Usage:
    result = queue_service.join_queue(player_id)
    if not result:
        if result.error_code == ALREADY_QUEUED:
            ...
    else:
        entry = result.value
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from services.errors import RankedError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation succeeded
        value: The payload on success (None for void operations)
        error: Human-readable failure message
        error_code: Machine-readable failure code
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        return cls(success=False, error=error, error_code=code)

    @classmethod
    def from_error(cls, exc: RankedError) -> "Result[T]":
        """Translate an internal engine exception into a failed result."""
        return cls(success=False, error=str(exc), error_code=exc.code)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """
        Return the value, raising ValueError on a failed result.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result ({self.error_code}): {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result"]) -> "Result":
        """Chain another service call onto a successful result; failures pass through."""
        if not self.success:
            return self
        return fn(self.value)
