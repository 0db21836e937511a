"""Audit Log - append-only per-request action history

Entries are written by the other services inside the same transaction as
the change they describe, after that change has succeeded. There is no
update or delete path.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.core.clock import Clock, utcnow
from src.core.logging import get_logger
from src.core.request.enums import AuditAction
from src.core.request.errors import NotFound
from src.core.request.models import AuditEntry, CrafterActivity
from src.db.models import AuditEntryModel, RequestModel

logger = get_logger(__name__)

_COMPLETION_ACTIONS = (AuditAction.COMPLETED.value, AuditAction.PARTIAL_COMPLETED.value)


class AuditLog:
    """Per-request audit trail"""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def record(
        self,
        db: Session,
        request_id: int,
        action: str,
        actor_id: str,
        details: Optional[dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> AuditEntryModel:
        """Append inside the caller's transaction."""
        entry = AuditEntryModel(
            request_id=request_id,
            action=action.value if isinstance(action, AuditAction) else action,
            actor_id=actor_id,
            at=at or self._clock(),
            details=dict(details or {}),
        )
        db.add(entry)
        db.flush()
        logger.debug("Audit %s on request %s by %s", entry.action, request_id, actor_id)
        return entry

    def append(
        self,
        request_id: int,
        action: str,
        actor_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[NotFound]:
        """Standalone append. Returns NotFound for an unknown request."""
        with self._session_factory() as db, db.begin():
            if db.get(RequestModel, request_id) is None:
                return NotFound("request", request_id)
            self.record(db, request_id, action, actor_id, details)
        return None

    def trail(self, request_id: int) -> tuple[AuditEntry, ...]:
        with self._session_factory() as db:
            rows = db.scalars(
                select(AuditEntryModel)
                .where(AuditEntryModel.request_id == request_id)
                .order_by(AuditEntryModel.id)
            ).all()
            return tuple(self.to_core(r) for r in rows)

    def crafter_activity(self) -> list[CrafterActivity]:
        """Claims and completions per crafter, most recently active first."""
        with self._session_factory() as db:
            rows = db.execute(
                select(AuditEntryModel, RequestModel.profession)
                .join(RequestModel, AuditEntryModel.request_id == RequestModel.id)
                .where(
                    AuditEntryModel.action.in_(
                        (AuditAction.CLAIMED.value, *_COMPLETION_ACTIONS)
                    )
                )
                .order_by(AuditEntryModel.id)
            ).all()

        by_crafter: dict[str, CrafterActivity] = {}
        for entry, profession in rows:
            activity = by_crafter.get(entry.actor_id)
            if activity is None:
                activity = CrafterActivity(
                    crafter_id=entry.actor_id, display_name=entry.actor_id
                )
                by_crafter[entry.actor_id] = activity

            if entry.action == AuditAction.CLAIMED.value:
                activity.claims += 1
                activity.display_name = entry.details.get(
                    "display_name", activity.display_name
                )
            elif entry.action == AuditAction.COMPLETED.value:
                activity.completions += 1

            if profession not in activity.professions:
                activity.professions.append(profession)
            if activity.last_activity is None or entry.at > activity.last_activity:
                activity.last_activity = entry.at

        return sorted(
            by_crafter.values(),
            key=lambda a: a.last_activity or datetime.min,
            reverse=True,
        )

    @staticmethod
    def to_core(orm: AuditEntryModel) -> AuditEntry:
        return AuditEntry(
            sequence=orm.id,
            action=orm.action,
            actor_id=orm.actor_id,
            at=orm.at,
            details=dict(orm.details or {}),
        )
