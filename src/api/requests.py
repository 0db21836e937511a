"""Request lifecycle endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi import Request as HttpRequest

from src.api.errors import unwrap
from src.api.schemas import (
    ActorBody,
    AuditEntryResponse,
    ClaimBody,
    CompletionBody,
    CreateRequestBody,
    DenyBody,
    RequestResponse,
    StatusChangeBody,
    StatusCountResponse,
)
from src.core.request.errors import NotFound, Result
from src.core.request.materials import materials_still_needed, provision_level
from src.core.request.models import NewRequest, Request
from src.services.request_service import RequestStore

router = APIRouter(prefix="/requests", tags=["requests"])


def get_request_store(request: HttpRequest) -> RequestStore:
    return request.app.state.request_store


def _found(request_id: int, value):
    if value is None:
        return unwrap(Result.failure(NotFound("request", request_id)))
    return value


def _present(request: Request) -> RequestResponse:
    """Snapshot plus who sources the materials and what is still missing."""
    response = RequestResponse.model_validate(request)
    response.material_provision = provision_level(request)
    response.materials_missing = materials_still_needed(
        request.materials_required,
        request.materials_provided,
        request.quantity_requested,
    )
    return response


def _respond(result: Result[Request]) -> RequestResponse:
    return _present(unwrap(result))


# === Queries ===


@router.get("", response_model=list[RequestResponse])
def list_requests(
    requester_id: str,
    status: Optional[list[str]] = Query(None),
    profession: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    store: RequestStore = Depends(get_request_store),
):
    return [
        _present(found)
        for found in store.find_by_requester(
            requester_id, statuses=status, limit=limit, profession=profession
        )
    ]


@router.get("/summary", response_model=list[StatusCountResponse])
def status_summary(store: RequestStore = Depends(get_request_store)):
    return store.status_summary()


@router.get("/queue/{profession}", response_model=list[RequestResponse])
def open_queue(profession: str, store: RequestStore = Depends(get_request_store)):
    """Open requests of a profession, oldest first."""
    return [_present(found) for found in store.find_open_by_profession(profession)]


@router.get("/claimed/{crafter_id}", response_model=list[RequestResponse])
def claimed_by(crafter_id: str, store: RequestStore = Depends(get_request_store)):
    return [_present(found) for found in store.find_claimed_by(crafter_id)]


@router.get("/claimed/{crafter_id}/materials", response_model=dict[str, int])
def crafter_materials(
    crafter_id: str, store: RequestStore = Depends(get_request_store)
):
    return store.material_totals_for_crafter(crafter_id)


@router.get("/{request_id}", response_model=RequestResponse)
def get_request(request_id: int, store: RequestStore = Depends(get_request_store)):
    return _present(_found(request_id, store.find_by_id(request_id)))


@router.get("/{request_id}/audit", response_model=list[AuditEntryResponse])
def get_audit_trail(
    request_id: int, store: RequestStore = Depends(get_request_store)
):
    _found(request_id, store.find_by_id(request_id, with_trail=False))
    return list(store.audit_log.trail(request_id))


# === Mutations ===


@router.post("", response_model=RequestResponse, status_code=201)
def create_request(
    body: CreateRequestBody, store: RequestStore = Depends(get_request_store)
):
    return _respond(store.create(NewRequest(**body.model_dump())))


@router.post("/{request_id}/claim", response_model=RequestResponse)
def claim_request(
    request_id: int, body: ClaimBody, store: RequestStore = Depends(get_request_store)
):
    return _respond(
        store.claim(request_id, body.crafter_id, body.crafter_display_name)
    )


@router.post("/{request_id}/release", response_model=RequestResponse)
def release_request(
    request_id: int, body: ActorBody, store: RequestStore = Depends(get_request_store)
):
    return _respond(store.release(request_id, body.actor_id))


@router.post("/{request_id}/status", response_model=RequestResponse)
def change_status(
    request_id: int,
    body: StatusChangeBody,
    store: RequestStore = Depends(get_request_store),
):
    return _respond(
        store.change_status(
            request_id,
            body.actor_id,
            body.status,
            reason=body.reason,
            actor_display_name=body.actor_display_name,
        )
    )


@router.post("/{request_id}/complete", response_model=RequestResponse)
def complete_request(
    request_id: int,
    body: CompletionBody,
    store: RequestStore = Depends(get_request_store),
):
    return _respond(store.apply_completion(request_id, body.actor_id, body.amount))


@router.post("/{request_id}/deny", response_model=RequestResponse)
def deny_request(
    request_id: int, body: DenyBody, store: RequestStore = Depends(get_request_store)
):
    return _respond(store.deny(request_id, body.actor_id, body.reason))


@router.post("/{request_id}/force", response_model=RequestResponse)
def force_status(
    request_id: int,
    body: StatusChangeBody,
    store: RequestStore = Depends(get_request_store),
):
    """Administrative override of the status table."""
    return _respond(
        store.force_status(request_id, body.actor_id, body.status, reason=body.reason)
    )
