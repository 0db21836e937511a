"""Character domain model (DB independent)"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from src.core.request.enums import CharacterKind
from src.core.request.errors import InvalidField, MissingField, RequestError


@dataclass(frozen=True)
class Character:
    """A requester's in-game character. Requests copy its name."""

    id: int
    owner_id: str
    name: str
    kind: CharacterKind = CharacterKind.MAIN
    created_at: Optional[datetime] = None


def clean_name(name: Any) -> str:
    return name.strip() if isinstance(name, str) else ""


def validate_registration(
    owner_id: Any, name: Any, kind: Any
) -> Optional[RequestError]:
    """Several mains per owner are allowed; only shape is checked."""
    if not owner_id:
        return MissingField("owner_id")
    if not clean_name(name):
        return MissingField("name")
    try:
        CharacterKind(kind)
    except ValueError:
        return InvalidField("kind", kind)
    return None
