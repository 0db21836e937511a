"""Composition session lifetime rules

Expired and deleted sessions are indistinguishable to callers: both read
back as absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Union

TTL = Union[int, float, timedelta]


@dataclass(frozen=True)
class CompositionSession:
    key: str
    owner_id: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def to_timedelta(ttl: TTL) -> timedelta:
    if isinstance(ttl, timedelta):
        value = ttl
    else:
        value = timedelta(seconds=ttl)
    if value <= timedelta(0):
        raise ValueError(f"Session TTL must be positive, got {ttl!r}")
    return value


def expires_at(created_at: datetime, ttl: TTL) -> datetime:
    return created_at + to_timedelta(ttl)


def is_expired(expiry: datetime, now: datetime) -> bool:
    return expiry <= now
