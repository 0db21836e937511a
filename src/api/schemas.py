"""API request/response schemas."""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.core.request.enums import CharacterKind, MaterialProvision, RequestStatus

Materials = Union[dict[str, Any], list[str], None]


# === Request Schemas ===


class CreateRequestBody(BaseModel):
    """Finished composition flow.

    Required fields are checked by the store so that a missing one is
    reported with the lifecycle error body.
    """

    requester_id: Optional[str] = None
    character_name: Optional[str] = None
    profession: Optional[str] = None
    gear_slot: Optional[str] = None
    item_id: Optional[str] = None
    item_label: Optional[str] = None
    quantity_requested: int = 1
    materials_required: Materials = None
    materials_provided: Materials = None
    requester_provides_materials: Optional[bool] = None


class ClaimBody(BaseModel):
    crafter_id: str = Field(..., min_length=1)
    crafter_display_name: Optional[str] = None


class ActorBody(BaseModel):
    actor_id: str = Field(..., min_length=1)


class StatusChangeBody(BaseModel):
    actor_id: str = Field(..., min_length=1)
    status: str = Field(..., description="open, claimed, in_progress, complete, denied")
    reason: Optional[str] = None
    actor_display_name: Optional[str] = None


class CompletionBody(BaseModel):
    actor_id: str = Field(..., min_length=1)
    amount: Optional[int] = Field(None, description="None finishes the request")


class DenyBody(BaseModel):
    actor_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


class RegisterCharacterBody(BaseModel):
    owner_id: Optional[str] = None
    name: Optional[str] = None
    kind: str = CharacterKind.MAIN.value


# === Response Schemas ===


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    action: str
    actor_id: str
    at: datetime
    details: dict[str, Any] = {}


class RequestResponse(BaseModel):
    """Request snapshot"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: str
    character_name: str
    profession: str
    gear_slot: str
    item_id: str
    item_label: str
    status: RequestStatus
    quantity_requested: int
    quantity_completed: int
    materials_required: dict[str, int] = {}
    materials_provided: dict[str, int] = {}
    requester_provides_materials: bool = False
    material_provision: MaterialProvision = MaterialProvision.GUILD
    materials_missing: dict[str, int] = {}
    claimed_by: Optional[str] = None
    claimed_by_display_name: Optional[str] = None
    claimed_at: Optional[datetime] = None
    deny_reason: Optional[str] = None
    audit_trail: list[AuditEntryResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusCountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    profession: str
    status: RequestStatus
    count: int


class CharacterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    name: str
    kind: CharacterKind
    created_at: Optional[datetime] = None


class CharacterDeletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    character: CharacterResponse
    denied_requests: int


class ErrorResponse(BaseModel):
    error: str
    detail: dict[str, Any] = {}
