"""Request lifecycle enumerations"""

from enum import Enum


class RequestStatus(str, Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    DENIED = "denied"


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETE, RequestStatus.DENIED})

# claimed_by is set exactly while a request sits in one of these
CLAIM_HOLDING_STATUSES = frozenset({RequestStatus.CLAIMED, RequestStatus.IN_PROGRESS})

ACTIVE_STATUSES = frozenset(
    {RequestStatus.OPEN, RequestStatus.CLAIMED, RequestStatus.IN_PROGRESS}
)


class AuditAction(str, Enum):
    CREATED = "created"
    CLAIMED = "claimed"
    RELEASED = "released"
    STATUS_CHANGED = "status_changed"
    PARTIAL_COMPLETED = "partial_completed"
    COMPLETED = "completed"
    DENIED = "denied"
    FORCED_STATUS = "forced_status"
    CANCELLED_CHARACTER_DELETED = "cancelled_character_deleted"


class CharacterKind(str, Enum):
    MAIN = "main"
    ALT = "alt"


class MaterialProvision(str, Enum):
    GUILD = "guild"  # requester supplies nothing
    PARTIAL = "partial"
    FULL = "full"


CHARACTER_DELETED_REASON = "character deleted"
