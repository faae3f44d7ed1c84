"""
Core Module - Operation Results.

Result-with-error container returned by cache and statistics
operations so callers can ignore a recording failure without
aborting the user-facing aggregation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorCode(Enum):
    """Error codes carried by a failed OperationResult."""
    GENERIC = "generic"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


@dataclass(frozen=True)
class OperationError:
    """Error details of a failed operation."""
    code: ErrorCode
    message: str
    exception: Optional[BaseException] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "exception": repr(self.exception) if self.exception else None,
        }


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Outcome of a cache or statistics operation.

    Either `error` is None and `value` holds the (possibly None)
    result, or `error` describes what went wrong.
    """
    value: Optional[T] = None
    error: Optional[OperationError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "OperationResult[T]":
        """Create a successful result."""
        return cls(value=value)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> "OperationResult[T]":
        """Create a failed result."""
        return cls(error=OperationError(code=code, message=message, exception=exception))

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the stored exception on failure."""
        if self.error is None:
            return self.value
        if self.error.exception is not None:
            raise self.error.exception
        raise RuntimeError(self.error.message)
