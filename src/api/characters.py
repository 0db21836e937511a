"""Character registry endpoints."""

from fastapi import APIRouter, Depends, Request

from src.api.errors import unwrap
from src.api.schemas import (
    CharacterDeletionResponse,
    CharacterResponse,
    RegisterCharacterBody,
)
from src.services.character_service import CharacterService

router = APIRouter(prefix="/characters", tags=["characters"])


def get_character_service(request: Request) -> CharacterService:
    return request.app.state.character_service


@router.post("", response_model=CharacterResponse, status_code=201)
def register_character(
    body: RegisterCharacterBody,
    service: CharacterService = Depends(get_character_service),
):
    return unwrap(service.register(body.owner_id, body.name, body.kind))


@router.get("", response_model=list[CharacterResponse])
def list_characters(
    owner_id: str, service: CharacterService = Depends(get_character_service)
):
    """Mains first."""
    return service.list_for_owner(owner_id)


@router.delete("/{character_id}", response_model=CharacterDeletionResponse)
def delete_character(
    character_id: int,
    owner_id: str,
    service: CharacterService = Depends(get_character_service),
):
    """Remove a character; its live requests are denied first."""
    return unwrap(service.delete(owner_id, character_id))
