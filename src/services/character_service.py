"""Character Registry - per-owner characters, deletion cascades into requests"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.core.character.models import Character, clean_name, validate_registration
from src.core.clock import Clock, utcnow
from src.core.event_bus import DomainEvent, EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.request.enums import CharacterKind
from src.core.request.errors import NotFound, Result
from src.db.models import CharacterModel

logger = get_logger(__name__)

# (owner_id, character_name) -> number of requests denied
CascadeFn = Callable[[str, str], int]


@dataclass(frozen=True)
class CharacterDeletion:
    character: Character
    denied_requests: int


def _no_cascade(owner_id: str, name: str) -> int:
    return 0


class CharacterService:
    """Character CRUD"""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        event_bus: EventBus,
        cascade: CascadeFn = _no_cascade,
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self._bus = event_bus
        self._cascade = cascade
        self._clock = clock

    def register(
        self, owner_id: str, name: str, kind: str = CharacterKind.MAIN.value
    ) -> Result[Character]:
        error = validate_registration(owner_id, name, kind)
        if error is not None:
            logger.warning("Character registration rejected: %s", error.code)
            return Result.failure(error)

        with self._session_factory() as db, db.begin():
            orm = CharacterModel(
                owner_id=owner_id,
                name=clean_name(name),
                kind=CharacterKind(kind).value,
                created_at=self._clock(),
            )
            db.add(orm)
            db.flush()
            character = self._to_core(orm)

        logger.info(
            "Character %s (%s) registered for %s",
            character.name,
            character.kind.value,
            owner_id,
        )
        self._bus.emit(
            DomainEvent(
                event_type=EventTypes.CHARACTER_REGISTERED,
                data={"owner_id": owner_id, "character_id": character.id},
                source="character_service",
            )
        )
        return Result.success(character)

    def list_for_owner(self, owner_id: str) -> list[Character]:
        """Mains first, then alts, each in registration order."""
        with self._session_factory() as db:
            rows = db.scalars(
                select(CharacterModel)
                .where(CharacterModel.owner_id == owner_id)
                .order_by(CharacterModel.id)
            ).all()
        characters = [self._to_core(r) for r in rows]
        return sorted(characters, key=lambda c: c.kind != CharacterKind.MAIN)

    def get(self, character_id: int) -> Character | None:
        with self._session_factory() as db:
            orm = db.get(CharacterModel, character_id)
            return self._to_core(orm) if orm else None

    def delete(self, owner_id: str, character_id: int) -> Result[CharacterDeletion]:
        """Deny the character's live requests, then remove it."""
        character = self.get(character_id)
        if character is None or character.owner_id != owner_id:
            logger.warning(
                "Delete of character %s by %s rejected: not found",
                character_id,
                owner_id,
            )
            return Result.failure(NotFound("character", character_id))

        denied = self._cascade(owner_id, character.name)

        with self._session_factory() as db, db.begin():
            orm = db.get(CharacterModel, character_id)
            if orm is not None:
                db.delete(orm)

        logger.info(
            "Character %s of %s deleted (%d request(s) denied)",
            character.name,
            owner_id,
            denied,
        )
        self._bus.emit(
            DomainEvent(
                event_type=EventTypes.CHARACTER_DELETED,
                data={
                    "owner_id": owner_id,
                    "character_id": character_id,
                    "denied_requests": denied,
                },
                source="character_service",
            )
        )
        return Result.success(CharacterDeletion(character, denied))

    @staticmethod
    def _to_core(orm: CharacterModel) -> Character:
        return Character(
            id=orm.id,
            owner_id=orm.owner_id,
            name=orm.name,
            kind=CharacterKind(orm.kind),
            created_at=orm.created_at,
        )
