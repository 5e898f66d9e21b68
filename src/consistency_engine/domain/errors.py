"""Error types and operation results shared across the engine."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class StorageError(RuntimeError):
    """Raised when the backing store fails unexpectedly."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidInputError(ValueError):
    """Raised for malformed timestamps, negative counts and similar input."""


class ErrorKind(StrEnum):
    """Expected failure kinds returned by mutating operations."""

    NOT_FOUND = "not_found"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    DUPLICATE_MEMBERSHIP = "duplicate_membership"
    NOT_AUTHORIZED = "not_authorized"
    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a mutating operation."""

    ok: bool
    value: T | None = None
    error: ErrorKind | None = None
    reason: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, reason: str) -> "OperationResult[T]":
        return cls(ok=False, error=error, reason=reason)
