"""Request lifecycle Core package"""

from src.core.request.enums import (
    ACTIVE_STATUSES,
    CLAIM_HOLDING_STATUSES,
    TERMINAL_STATUSES,
    AuditAction,
    CharacterKind,
    MaterialProvision,
    RequestStatus,
)
from src.core.request.errors import (
    AlreadyClaimed,
    CorruptRecordError,
    DuplicateSubmission,
    ExceedsRequested,
    InvalidField,
    InvalidQuantity,
    InvalidTransition,
    MissingField,
    NotClaimed,
    NotFound,
    RequestError,
    Result,
    UnknownStatusError,
)
from src.core.request.models import AuditEntry, NewRequest, Request, StatusCount
from src.core.request.state_machine import (
    ALLOWED_TRANSITIONS,
    can_transition,
    parse_status,
    transition,
)

__all__ = [
    # enums
    "RequestStatus",
    "AuditAction",
    "CharacterKind",
    "MaterialProvision",
    "TERMINAL_STATUSES",
    "CLAIM_HOLDING_STATUSES",
    "ACTIVE_STATUSES",
    # errors
    "RequestError",
    "Result",
    "NotFound",
    "InvalidTransition",
    "AlreadyClaimed",
    "NotClaimed",
    "ExceedsRequested",
    "InvalidQuantity",
    "MissingField",
    "InvalidField",
    "DuplicateSubmission",
    "UnknownStatusError",
    "CorruptRecordError",
    # models
    "AuditEntry",
    "Request",
    "NewRequest",
    "StatusCount",
    # state machine
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "parse_status",
    "transition",
]
