"""
Tagged result type for calls that validate untrusted model output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Either a value (success) or a reason (failure), never both."""
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    cause: Optional[Exception] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: T, **metadata) -> "Result[T]":
        return cls(success=True, value=value, metadata=metadata)

    @classmethod
    def fail(cls, error: str, error_type: str = None, **metadata) -> "Result[T]":
        return cls(success=False, error=error, error_type=error_type, metadata=metadata)

    @classmethod
    def from_exception(cls, exc: Exception, **metadata) -> "Result[T]":
        message = getattr(exc, "message", None) or str(exc)
        return cls(
            success=False,
            error=message,
            error_type=type(exc).__name__,
            cause=exc,
            metadata=metadata,
        )

    def unwrap(self) -> T:
        """Return the value, or raise the failure's cause."""
        if self.success:
            return self.value
        if self.cause is not None:
            raise self.cause
        raise ValueError(self.error)
