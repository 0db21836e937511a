"""Typed failures returned by lifecycle operations.

Expected business conditions are values, not exceptions: every operation
hands back a result carrying either the updated entity or one of the
``RequestError`` subclasses below. Only integrity problems raise.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RequestError:
    code: ClassVar[str] = "error"

    def describe(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NotFound(RequestError):
    code: ClassVar[str] = "not_found"

    entity: str
    key: Any


@dataclass(frozen=True)
class InvalidTransition(RequestError):
    code: ClassVar[str] = "invalid_transition"

    from_status: str
    to_status: str


@dataclass(frozen=True)
class AlreadyClaimed(RequestError):
    code: ClassVar[str] = "already_claimed"

    request_id: int
    claimed_by: Optional[str]


@dataclass(frozen=True)
class NotClaimed(RequestError):
    code: ClassVar[str] = "not_claimed"

    request_id: int
    status: str


@dataclass(frozen=True)
class ExceedsRequested(RequestError):
    code: ClassVar[str] = "exceeds_requested"

    quantity_requested: int
    quantity_completed: int


@dataclass(frozen=True)
class InvalidQuantity(RequestError):
    code: ClassVar[str] = "invalid_quantity"

    field: str
    value: Any


@dataclass(frozen=True)
class MissingField(RequestError):
    code: ClassVar[str] = "missing_field"

    field: str


@dataclass(frozen=True)
class InvalidField(RequestError):
    code: ClassVar[str] = "invalid_field"

    field: str
    value: Any


@dataclass(frozen=True)
class DuplicateSubmission(RequestError):
    code: ClassVar[str] = "duplicate_submission"

    requester_id: str
    item_id: str
    window_ms: int


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either ``value`` or ``error`` is set, never both."""

    value: Optional[T] = None
    error: Optional[RequestError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RequestError) -> "Result[T]":
        return cls(error=error)


class UnknownStatusError(ValueError):
    """A status value outside the lifecycle was supplied by a caller."""

    def __init__(self, value: Any):
        super().__init__(f"Unknown request status: {value!r}")
        self.value = value


class CorruptRecordError(RuntimeError):
    """A stored record violates the lifecycle model and cannot be interpreted."""
