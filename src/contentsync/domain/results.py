"""
Railway-oriented result types.
Operations that can fail in a user-correctable way return Success/Failure
instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')
E = TypeVar('E')


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful operation result."""
    value: T
    metadata: dict[str, Any] | None = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure(Generic[E]):
    """Failed operation result."""
    error: E
    context: dict[str, Any] | None = None
    recoverable: bool = False
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return False


# Type alias for Railway Result
Result = Success[T] | Failure[E]
