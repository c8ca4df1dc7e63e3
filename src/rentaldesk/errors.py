from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSACTION = "transaction"
    RENDER = "render"


class RentalDeskError(Exception):
    kind: ErrorKind = ErrorKind.TRANSACTION


class ValidationError(RentalDeskError):
    """Missing required field or empty item list, detected before any write."""

    kind = ErrorKind.VALIDATION


class NotFoundError(RentalDeskError):
    kind = ErrorKind.NOT_FOUND


class TransactionError(RentalDeskError):
    """Store-level failure during a multi-step write."""

    kind = ErrorKind.TRANSACTION


class RenderError(RentalDeskError):
    kind = ErrorKind.RENDER


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Uniform success/failure result returned by the core operations."""

    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, exc: Exception) -> "Outcome[T]":
        kind = exc.kind if isinstance(exc, RentalDeskError) else ErrorKind.TRANSACTION
        return cls(error=str(exc) or "Server error", kind=kind)
