"""Request domain models (DB independent)"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import CLAIM_HOLDING_STATUSES, TERMINAL_STATUSES, RequestStatus


@dataclass(frozen=True)
class AuditEntry:
    """One committed action against a request. Never edited once appended."""

    sequence: int
    action: str
    actor_id: str
    at: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Request:
    """Craft/enchant request snapshot"""

    id: int
    requester_id: str
    character_name: str  # copied at creation, not a live reference

    profession: str
    gear_slot: str
    item_id: str
    item_label: str

    status: RequestStatus = RequestStatus.OPEN
    quantity_requested: int = 1
    quantity_completed: int = 0

    # per-unit amounts
    materials_required: dict[str, int] = field(default_factory=dict)
    materials_provided: dict[str, int] = field(default_factory=dict)
    requester_provides_materials: bool = False

    claimed_by: Optional[str] = None
    claimed_by_display_name: Optional[str] = None
    claimed_at: Optional[datetime] = None

    deny_reason: Optional[str] = None

    audit_trail: tuple[AuditEntry, ...] = ()

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_claimed(self) -> bool:
        return self.status in CLAIM_HOLDING_STATUSES


@dataclass
class NewRequest:
    """Fields supplied by the front end when a composition flow finishes."""

    requester_id: Optional[str] = None
    character_name: Optional[str] = None
    profession: Optional[str] = None
    gear_slot: Optional[str] = None
    item_id: Optional[str] = None
    item_label: Optional[str] = None
    quantity_requested: int = 1
    materials_required: Any = None  # mapping or legacy "Name xN" list
    materials_provided: Any = None
    requester_provides_materials: Optional[bool] = None


@dataclass(frozen=True)
class StatusCount:
    """Open-work summary row"""

    profession: str
    status: RequestStatus
    count: int


@dataclass
class CrafterActivity:
    """Per-crafter totals rebuilt from audit trails"""

    crafter_id: str
    display_name: str
    professions: list[str] = field(default_factory=list)
    claims: int = 0
    completions: int = 0
    last_activity: Optional[datetime] = None
