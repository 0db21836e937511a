"""Request Store - Core <-> DB for the request lifecycle, EventBus notifications

Every mutation is one short transaction whose first write is conditional:
an UPDATE keyed on the status and claimant a snapshot saw, or for creation an
INSERT that only fires when no matching submission is inside the duplicate
window. Concurrent handlers therefore cannot both win. The audit entry is
written in the same transaction once the write matched, and events go out
only after commit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import fields as dataclass_fields
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, exists, func, insert, literal, select, update
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings
from src.core.clock import Clock, utcnow
from src.core.event_bus import DomainEvent, EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.request.claim_logic import (
    CLAIMABLE_STATUS,
    RELEASABLE_STATUSES,
    claim_values,
    classify_failed_claim,
    classify_failed_release,
    unclaimed_values,
)
from src.core.request.duplicate_guard import SubmissionKey, window_start
from src.core.request.enums import (
    ACTIVE_STATUSES,
    CHARACTER_DELETED_REASON,
    CLAIM_HOLDING_STATUSES,
    AuditAction,
    RequestStatus,
)
from src.core.request.errors import (
    AlreadyClaimed,
    CorruptRecordError,
    DuplicateSubmission,
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
from src.core.request.fulfillment import (
    COMPLETABLE_STATUS,
    CompletionPlan,
    plan_completion,
    validate_amount,
)
from src.core.request.materials import aggregate_materials, normalize_materials
from src.core.request.models import (
    CrafterActivity,
    NewRequest,
    Request,
    StatusCount,
)
from src.core.request.state_machine import parse_status, parse_statuses, transition
from src.db.models import AuditEntryModel, RequestModel
from src.services.audit_log import AuditLog

logger = get_logger(__name__)

REQUIRED_FIELDS = (
    "requester_id",
    "character_name",
    "profession",
    "gear_slot",
    "item_id",
    "item_label",
)

_SOURCE = "request_store"

_NEW_REQUEST_FIELDS = frozenset(f.name for f in dataclass_fields(NewRequest))


def _status_value(value: Any) -> str:
    return value.value if isinstance(value, RequestStatus) else str(value)


def _held_by(claimant: Optional[str]):
    """WHERE clause pinning the claimant a snapshot saw."""
    if claimant is None:
        return RequestModel.claimed_by.is_(None)
    return RequestModel.claimed_by == claimant


def _same_submission(columns, key: SubmissionKey, since: datetime) -> list:
    """Conditions matching a submission of ``key`` created after ``since``."""
    return [
        columns.requester_id == key.requester_id,
        columns.character_name == key.character_name,
        columns.profession == key.profession,
        columns.gear_slot == key.gear_slot,
        columns.item_id == key.item_id,
        columns.created_at > since,
    ]


class RequestStore:
    """Request repository + lifecycle operations"""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        event_bus: EventBus,
        audit_log: AuditLog | None = None,
        clock: Clock = utcnow,
        duplicate_window_ms: int | None = None,
        default_limit: int | None = None,
    ):
        self._session_factory = session_factory
        self._bus = event_bus
        self._clock = clock
        self._audit = audit_log or AuditLog(session_factory, clock)
        self._duplicate_window_ms = (
            duplicate_window_ms
            if duplicate_window_ms is not None
            else settings.DUPLICATE_WINDOW_MS
        )
        self._default_limit = default_limit or settings.DEFAULT_QUERY_LIMIT

    @property
    def audit_log(self) -> AuditLog:
        return self._audit

    # === Creation ===

    def create(self, fields: NewRequest | Mapping[str, Any]) -> Result[Request]:
        """Validate, then insert as open unless a matching submission is
        still inside the duplicate window."""
        if isinstance(fields, Mapping):
            unknown = [name for name in fields if name not in _NEW_REQUEST_FIELDS]
            if unknown:
                logger.warning("Request creation rejected: unknown field %r", unknown[0])
                return Result.failure(InvalidField(str(unknown[0]), fields[unknown[0]]))
            fields = NewRequest(**fields)

        for name in REQUIRED_FIELDS:
            value = getattr(fields, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                logger.warning("Request creation rejected: missing %s", name)
                return Result.failure(MissingField(name))
            if not isinstance(value, str):
                logger.warning("Request creation rejected: %s is not text", name)
                return Result.failure(InvalidField(name, value))

        quantity = fields.quantity_requested
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            return Result.failure(InvalidQuantity("quantity_requested", quantity))

        materials: dict[str, dict[str, int]] = {}
        for name in ("materials_required", "materials_provided"):
            raw = getattr(fields, name)
            try:
                materials[name] = normalize_materials(raw)
            except TypeError:
                logger.warning("Request creation rejected: unreadable %s %r", name, raw)
                return Result.failure(InvalidField(name, raw))

        provides = fields.requester_provides_materials
        if provides is None:
            provides = any(qty > 0 for qty in materials["materials_provided"].values())
        elif not isinstance(provides, bool):
            return Result.failure(InvalidField("requester_provides_materials", provides))

        key = SubmissionKey(
            requester_id=fields.requester_id,
            character_name=fields.character_name.strip(),
            profession=fields.profession,
            gear_slot=fields.gear_slot,
            item_id=fields.item_id,
        )
        now = self._clock()
        row = {
            "requester_id": key.requester_id,
            "character_name": key.character_name,
            "profession": key.profession,
            "gear_slot": key.gear_slot,
            "item_id": key.item_id,
            "item_label": fields.item_label,
            "status": RequestStatus.OPEN.value,
            "quantity_requested": quantity,
            "quantity_completed": 0,
            "materials_required": materials["materials_required"],
            "materials_provided": materials["materials_provided"],
            "requester_provides_materials": provides,
            "created_at": now,
            "updated_at": now,
        }

        # one INSERT ... SELECT ... WHERE NOT EXISTS: the window check and the
        # insert run under the same write lock
        table = RequestModel.__table__
        recent = table.alias("recent")
        guarded = (
            insert(table)
            .from_select(
                list(row),
                select(
                    *(literal(value, table.c[name].type) for name, value in row.items())
                ).where(
                    ~exists().where(
                        *_same_submission(
                            recent.c, key, window_start(now, self._duplicate_window_ms)
                        )
                    )
                ),
            )
            .returning(table.c.id)
        )

        request: Request | None = None
        with self._session_factory() as db, db.begin():
            new_id = db.connection().execute(guarded).scalar_one_or_none()
            if new_id is not None:
                self._audit.record(
                    db,
                    new_id,
                    AuditAction.CREATED,
                    key.requester_id,
                    {"quantity_requested": quantity},
                    at=now,
                )
                request = self._to_core(db, db.get(RequestModel, new_id))

        if request is None:
            logger.warning(
                "Duplicate submission from %s for %s (%s)",
                key.requester_id,
                key.item_id,
                key.character_name,
            )
            return Result.failure(
                DuplicateSubmission(
                    key.requester_id, key.item_id, self._duplicate_window_ms
                )
            )

        logger.info(
            "Request %s created by %s: %s x%d for %s",
            request.id,
            request.requester_id,
            request.item_label,
            request.quantity_requested,
            request.character_name,
        )
        self._emit(
            EventTypes.REQUEST_CREATED,
            request_id=request.id,
            requester_id=request.requester_id,
            profession=request.profession,
        )
        return Result.success(request)

    def is_duplicate(
        self,
        requester_id: str,
        character_name: str,
        profession: str,
        gear_slot: str,
        item_id: str,
        window_ms: int | None = None,
    ) -> bool:
        key = SubmissionKey(requester_id, character_name, profession, gear_slot, item_id)
        with self._session_factory() as db:
            return self._has_recent_submission(
                db,
                key,
                self._clock(),
                window_ms if window_ms is not None else self._duplicate_window_ms,
            )

    def _has_recent_submission(
        self, db: Session, key: SubmissionKey, now: datetime, window_ms: int
    ) -> bool:
        found = db.scalar(
            select(RequestModel.id)
            .where(
                *_same_submission(
                    RequestModel.__table__.c, key, window_start(now, window_ms)
                )
            )
            .limit(1)
        )
        return found is not None

    # === Claim arbitration ===

    def claim(
        self,
        request_id: int,
        crafter_id: str,
        crafter_display_name: str | None = None,
    ) -> Result[Request]:
        """Claim an open request. Exactly one concurrent caller can win."""
        now = self._clock()
        values = claim_values(crafter_id, crafter_display_name, now)

        request: Request | None = None
        error: RequestError | None = None
        with self._session_factory() as db, db.begin():
            outcome = db.execute(
                update(RequestModel)
                .where(
                    RequestModel.id == request_id,
                    RequestModel.status == CLAIMABLE_STATUS.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 1:
                self._audit.record(
                    db,
                    request_id,
                    AuditAction.CLAIMED,
                    crafter_id,
                    {"display_name": values["claimed_by_display_name"]},
                    at=now,
                )
                request = self._to_core(db, db.get(RequestModel, request_id))
            else:
                orm = db.get(RequestModel, request_id)
                error = classify_failed_claim(
                    request_id,
                    self._parse_stored_status(orm) if orm is not None else None,
                    orm.claimed_by if orm is not None else None,
                )

        if error is not None:
            logger.warning(
                "Claim of request %s by %s rejected: %s",
                request_id,
                crafter_id,
                error.code,
            )
            return Result.failure(error)

        logger.info(
            "Request %s claimed by %s (%s)",
            request_id,
            request.claimed_by_display_name,
            crafter_id,
        )
        self._emit(
            EventTypes.REQUEST_CLAIMED,
            request_id=request_id,
            requester_id=request.requester_id,
            crafter_id=crafter_id,
        )
        return Result.success(request)

    def release(self, request_id: int, actor_id: str) -> Result[Request]:
        """Return a claimed or in-progress request to the open pool."""
        snapshot = self.find_by_id(request_id, with_trail=False)
        if snapshot is None:
            return Result.failure(NotFound("request", request_id))
        if snapshot.status not in RELEASABLE_STATUSES:
            return Result.failure(NotClaimed(request_id, snapshot.status.value))

        now = self._clock()
        request: Request | None = None
        error: RequestError | None = None
        with self._session_factory() as db, db.begin():
            outcome = db.execute(
                update(RequestModel)
                .where(
                    RequestModel.id == request_id,
                    RequestModel.status.in_([s.value for s in RELEASABLE_STATUSES]),
                    RequestModel.claimed_by == snapshot.claimed_by,
                )
                .values(**unclaimed_values(RequestStatus.OPEN, now))
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 1:
                self._audit.record(
                    db,
                    request_id,
                    AuditAction.RELEASED,
                    actor_id,
                    {
                        "previous_status": snapshot.status.value,
                        "previous_claimant": snapshot.claimed_by,
                    },
                    at=now,
                )
                request = self._to_core(db, db.get(RequestModel, request_id))
            else:
                orm = db.get(RequestModel, request_id)
                error = classify_failed_release(
                    request_id,
                    self._parse_stored_status(orm) if orm is not None else None,
                )

        if error is not None:
            logger.warning(
                "Release of request %s by %s rejected: %s", request_id, actor_id, error.code
            )
            return Result.failure(error)

        logger.info("Request %s released by %s", request_id, actor_id)
        self._emit(
            EventTypes.REQUEST_RELEASED,
            request_id=request_id,
            requester_id=request.requester_id,
            previous_claimant=snapshot.claimed_by,
        )
        return Result.success(request)

    # === Status changes ===

    def change_status(
        self,
        request_id: int,
        actor_id: str,
        new_status: Any,
        reason: str | None = None,
        actor_display_name: str | None = None,
    ) -> Result[Request]:
        """Move a request along one edge of the status table.

        ``claimed`` is arbitrated through ``claim`` with the actor as
        claimant; ``complete`` is a full completion.
        """
        snapshot = self.find_by_id(request_id, with_trail=False)
        if snapshot is None:
            return Result.failure(NotFound("request", request_id))

        try:
            target = parse_status(new_status)
        except UnknownStatusError:
            logger.warning(
                "Request %s: refused unknown status %r from %s",
                request_id,
                new_status,
                actor_id,
            )
            return Result.failure(
                InvalidTransition(snapshot.status.value, _status_value(new_status))
            )

        if target == RequestStatus.CLAIMED and snapshot.status == RequestStatus.OPEN:
            return self.claim(request_id, actor_id, actor_display_name)
        if target == RequestStatus.COMPLETE and snapshot.status == COMPLETABLE_STATUS:
            return self.apply_completion(request_id, actor_id, None)

        now = self._clock()
        planned = transition(snapshot, target, at=now, reason=reason)
        if not planned.ok:
            logger.warning(
                "Request %s: invalid transition %s -> %s",
                request_id,
                snapshot.status.value,
                target.value,
            )
            return planned
        after = planned.value

        if target in CLAIM_HOLDING_STATUSES:
            # the claim stays with whoever holds it now
            values: dict[str, Any] = {"status": after.status.value, "updated_at": now}
        else:
            values = unclaimed_values(after.status, now)
            values["deny_reason"] = after.deny_reason

        request: Request | None = None
        error: RequestError | None = None
        with self._session_factory() as db, db.begin():
            outcome = db.execute(
                update(RequestModel)
                .where(
                    RequestModel.id == request_id,
                    RequestModel.status == snapshot.status.value,
                    _held_by(snapshot.claimed_by),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 1:
                if target == RequestStatus.DENIED:
                    action = AuditAction.DENIED
                    details = {
                        "from": snapshot.status.value,
                        "reason": reason,
                        "previous_claimant": snapshot.claimed_by,
                    }
                else:
                    action = AuditAction.STATUS_CHANGED
                    details = {"from": snapshot.status.value, "to": target.value}
                self._audit.record(db, request_id, action, actor_id, details, at=now)
                request = self._to_core(db, db.get(RequestModel, request_id))
            else:
                error = self._classify_lost_write(
                    db, request_id, snapshot.claimed_by, target
                )

        if error is not None:
            logger.warning(
                "Request %s: status change to %s lost a race (%s)",
                request_id,
                target.value,
                error.code,
            )
            return Result.failure(error)

        logger.info(
            "Request %s: %s -> %s by %s",
            request_id,
            snapshot.status.value,
            target.value,
            actor_id,
        )
        if target == RequestStatus.DENIED:
            self._emit(
                EventTypes.REQUEST_DENIED,
                request_id=request_id,
                requester_id=request.requester_id,
                previous_claimant=snapshot.claimed_by,
            )
        else:
            self._emit(
                EventTypes.REQUEST_STATUS_CHANGED,
                request_id=request_id,
                requester_id=request.requester_id,
                status=target.value,
            )
        return Result.success(request)

    def start_work(self, request_id: int, actor_id: str) -> Result[Request]:
        return self.change_status(request_id, actor_id, RequestStatus.IN_PROGRESS)

    def deny(self, request_id: int, actor_id: str, reason: str) -> Result[Request]:
        """Requester self-cancel or administrative cancel."""
        return self.change_status(request_id, actor_id, RequestStatus.DENIED, reason)

    def force_status(
        self,
        request_id: int,
        actor_id: str,
        new_status: Any,
        reason: str | None = None,
    ) -> Result[Request]:
        """Administrative override. Ignores the edge table, never the
        status vocabulary or the claim invariant."""
        snapshot = self.find_by_id(request_id, with_trail=False)
        if snapshot is None:
            return Result.failure(NotFound("request", request_id))
        try:
            target = parse_status(new_status)
        except UnknownStatusError:
            logger.warning(
                "Request %s: refused forced unknown status %r", request_id, new_status
            )
            return Result.failure(
                InvalidTransition(snapshot.status.value, _status_value(new_status))
            )

        if target in CLAIM_HOLDING_STATUSES and snapshot.claimed_by is None:
            return Result.failure(NotClaimed(request_id, snapshot.status.value))

        now = self._clock()
        if target in CLAIM_HOLDING_STATUSES:
            values: dict[str, Any] = {"status": target.value, "updated_at": now}
        else:
            values = unclaimed_values(target, now)
        if target == RequestStatus.OPEN:
            values["deny_reason"] = None
        elif target == RequestStatus.DENIED:
            values["deny_reason"] = reason
        elif target == RequestStatus.COMPLETE:
            values["quantity_completed"] = RequestModel.quantity_requested

        request: Request | None = None
        error: RequestError | None = None
        with self._session_factory() as db, db.begin():
            outcome = db.execute(
                update(RequestModel)
                .where(
                    RequestModel.id == request_id,
                    RequestModel.status == snapshot.status.value,
                    _held_by(snapshot.claimed_by),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 1:
                self._audit.record(
                    db,
                    request_id,
                    AuditAction.FORCED_STATUS,
                    actor_id,
                    {
                        "from": snapshot.status.value,
                        "to": target.value,
                        "reason": reason,
                    },
                    at=now,
                )
                request = self._to_core(db, db.get(RequestModel, request_id))
            else:
                error = self._classify_lost_write(
                    db, request_id, snapshot.claimed_by, target
                )

        if request is None:
            logger.warning(
                "Request %s: forced %s lost a race (%s)",
                request_id,
                target.value,
                error.code,
            )
            return Result.failure(error)

        logger.info(
            "Request %s forced %s -> %s by %s (%s)",
            request_id,
            snapshot.status.value,
            target.value,
            actor_id,
            reason,
        )
        self._emit(
            EventTypes.REQUEST_FORCED,
            request_id=request_id,
            requester_id=request.requester_id,
            status=target.value,
        )
        return Result.success(request)

    # === Quantity fulfillment ===

    def apply_completion(
        self, request_id: int, actor_id: str, amount: int | None = None
    ) -> Result[Request]:
        """Report progress. None finishes the request; k adds k, clamped.

        A guarded touch locks the row first, so the plan is computed from the
        total the write replaces and the audit entry records the exact delta.
        """
        invalid = validate_amount(amount)
        if invalid is not None:
            return Result.failure(invalid)

        now = self._clock()
        request: Request | None = None
        plan: CompletionPlan | None = None
        error: RequestError | None = None
        with self._session_factory() as db, db.begin():
            locked = (
                db.execute(
                    update(RequestModel)
                    .where(
                        RequestModel.id == request_id,
                        RequestModel.status == COMPLETABLE_STATUS.value,
                        RequestModel.quantity_completed
                        <= RequestModel.quantity_requested,
                    )
                    .values(updated_at=now)
                    .execution_options(synchronize_session=False)
                ).rowcount
                == 1
            )
            orm = db.get(RequestModel, request_id)
            if orm is None:
                error = NotFound("request", request_id)
            else:
                current = self._to_core(db, orm, with_trail=False)
                plan, error = plan_completion(current, amount)
                if error is None and not locked:
                    error = InvalidTransition(
                        current.status.value, RequestStatus.COMPLETE.value
                    )

            if error is None:
                if plan.completes:
                    values = unclaimed_values(RequestStatus.COMPLETE, now)
                else:
                    values = {"updated_at": now}
                values["quantity_completed"] = plan.new_total
                db.execute(
                    update(RequestModel)
                    .where(RequestModel.id == request_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                self._audit.record(
                    db,
                    request_id,
                    AuditAction.COMPLETED if plan.completes else AuditAction.PARTIAL_COMPLETED,
                    actor_id,
                    {
                        "amount": plan.added,
                        "total_completed": plan.new_total,
                        "quantity_requested": current.quantity_requested,
                    },
                    at=now,
                )
                db.refresh(orm)
                request = self._to_core(db, orm)

        if error is not None:
            logger.warning(
                "Completion on request %s by %s rejected: %s",
                request_id,
                actor_id,
                error.code,
            )
            return Result.failure(error)

        logger.info(
            "Request %s progress by %s: +%d (now %d/%d)",
            request_id,
            actor_id,
            plan.added,
            request.quantity_completed,
            request.quantity_requested,
        )
        if request.status == RequestStatus.COMPLETE:
            self._emit(
                EventTypes.REQUEST_COMPLETED,
                request_id=request_id,
                requester_id=request.requester_id,
                crafter_id=actor_id,
            )
        else:
            self._emit(
                EventTypes.REQUEST_PROGRESSED,
                request_id=request_id,
                requester_id=request.requester_id,
                crafter_id=actor_id,
                quantity_completed=request.quantity_completed,
            )
        return Result.success(request)

    # === Character cascade ===

    def cascade_delete_character(self, requester_id: str, character_name: str) -> int:
        """Deny every non-terminal request of a removed character."""
        now = self._clock()
        denied: list[tuple[int, Optional[str]]] = []
        with self._session_factory() as db, db.begin():
            rows = db.execute(
                select(RequestModel.id, RequestModel.status, RequestModel.claimed_by)
                .where(
                    RequestModel.requester_id == requester_id,
                    RequestModel.character_name == character_name,
                    RequestModel.status.in_([s.value for s in ACTIVE_STATUSES]),
                )
                .order_by(RequestModel.id)
            ).all()

            values = unclaimed_values(RequestStatus.DENIED, now)
            values["deny_reason"] = CHARACTER_DELETED_REASON
            for request_id, status, claimed_by in rows:
                outcome = db.execute(
                    update(RequestModel)
                    .where(RequestModel.id == request_id, RequestModel.status == status)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount != 1:
                    continue
                self._audit.record(
                    db,
                    request_id,
                    AuditAction.CANCELLED_CHARACTER_DELETED,
                    requester_id,
                    {
                        "reason": CHARACTER_DELETED_REASON,
                        "from": status,
                        "previous_claimant": claimed_by,
                    },
                    at=now,
                )
                denied.append((request_id, claimed_by))

        logger.info(
            "Character %s of %s removed: %d request(s) denied",
            character_name,
            requester_id,
            len(denied),
        )
        for request_id, claimed_by in denied:
            self._emit(
                EventTypes.REQUEST_DENIED,
                request_id=request_id,
                requester_id=requester_id,
                previous_claimant=claimed_by,
            )
        if denied:
            self._emit(
                EventTypes.CHARACTER_REQUESTS_CANCELLED,
                requester_id=requester_id,
                character_name=character_name,
                request_ids=[request_id for request_id, _ in denied],
            )
        return len(denied)

    # === Read paths ===

    def find_by_id(self, request_id: int, with_trail: bool = True) -> Request | None:
        with self._session_factory() as db:
            orm = db.get(RequestModel, request_id)
            if orm is None:
                return None
            return self._to_core(db, orm, with_trail=with_trail)

    def find_by_requester(
        self,
        requester_id: str,
        statuses: Iterable[Any] | None = None,
        limit: int | None = None,
        profession: str | None = None,
    ) -> list[Request]:
        stmt = select(RequestModel).where(RequestModel.requester_id == requester_id)
        stmt = self._filter(stmt, statuses, profession)
        stmt = stmt.order_by(RequestModel.updated_at.desc(), RequestModel.id.desc())
        return self._fetch(stmt.limit(limit or self._default_limit))

    def find_by_characters(
        self,
        character_names: Iterable[str],
        statuses: Iterable[Any] | None = None,
        limit: int | None = None,
        profession: str | None = None,
    ) -> list[Request]:
        names = list(character_names)
        if not names:
            return []
        stmt = select(RequestModel).where(RequestModel.character_name.in_(names))
        stmt = self._filter(stmt, statuses, profession)
        stmt = stmt.order_by(RequestModel.updated_at.desc(), RequestModel.id.desc())
        return self._fetch(stmt.limit(limit or self._default_limit))

    def find_by_profession(
        self, profession: str, statuses: Iterable[Any] | None = None
    ) -> list[Request]:
        stmt = self._filter(select(RequestModel), statuses, profession)
        return self._fetch(
            stmt.order_by(RequestModel.updated_at.desc(), RequestModel.id.desc())
        )

    def find_open_by_profession(self, profession: str) -> list[Request]:
        """Crafter queue: oldest open request first."""
        return self._fetch(
            select(RequestModel)
            .where(
                RequestModel.profession == profession,
                RequestModel.status == RequestStatus.OPEN.value,
            )
            .order_by(RequestModel.created_at, RequestModel.id)
        )

    def find_claimed_by(self, crafter_id: str) -> list[Request]:
        """Active work of one crafter, in-progress items first."""
        return self._fetch(
            select(RequestModel)
            .where(
                RequestModel.claimed_by == crafter_id,
                RequestModel.status.in_([s.value for s in CLAIM_HOLDING_STATUSES]),
            )
            .order_by(
                case((RequestModel.status == RequestStatus.IN_PROGRESS.value, 0), else_=1),
                RequestModel.claimed_at,
                RequestModel.id,
            )
        )

    def find_by_character_name(self, character_name: str) -> list[Request]:
        return self._fetch(
            select(RequestModel)
            .where(RequestModel.character_name == character_name)
            .order_by(RequestModel.created_at.desc(), RequestModel.id.desc())
        )

    def list_all(self) -> list[Request]:
        return self._fetch(select(RequestModel).order_by(RequestModel.id))

    def status_summary(self) -> list[StatusCount]:
        """Non-terminal request counts per profession and status."""
        with self._session_factory() as db:
            rows = db.execute(
                select(
                    RequestModel.profession,
                    RequestModel.status,
                    func.count(RequestModel.id),
                )
                .where(RequestModel.status.in_([s.value for s in ACTIVE_STATUSES]))
                .group_by(RequestModel.profession, RequestModel.status)
                .order_by(RequestModel.profession, RequestModel.status)
            ).all()
        return [
            StatusCount(profession, parse_status(status), count)
            for profession, status, count in rows
        ]

    def material_totals_for_crafter(self, crafter_id: str) -> dict[str, int]:
        return aggregate_materials(self.find_claimed_by(crafter_id))

    def crafter_activity(self) -> list[CrafterActivity]:
        return self._audit.crafter_activity()

    # === Internal ===

    def _filter(self, stmt, statuses: Iterable[Any] | None, profession: str | None):
        if statuses is not None:
            stmt = stmt.where(
                RequestModel.status.in_([s.value for s in parse_statuses(statuses)])
            )
        if profession:
            stmt = stmt.where(RequestModel.profession == profession)
        return stmt

    def _fetch(self, stmt) -> list[Request]:
        with self._session_factory() as db:
            orms = db.scalars(stmt).all()
            trails = self._trails(db, [o.id for o in orms])
            return [self._to_core(db, o, trail=trails.get(o.id, ())) for o in orms]

    def _trails(self, db: Session, request_ids: list[int]) -> dict[int, tuple]:
        if not request_ids:
            return {}
        grouped: dict[int, list] = {}
        for entry in db.scalars(
            select(AuditEntryModel)
            .where(AuditEntryModel.request_id.in_(request_ids))
            .order_by(AuditEntryModel.id)
        ):
            grouped.setdefault(entry.request_id, []).append(AuditLog.to_core(entry))
        return {rid: tuple(entries) for rid, entries in grouped.items()}

    @staticmethod
    def _parse_stored_status(orm: RequestModel) -> RequestStatus:
        try:
            return parse_status(orm.status)
        except UnknownStatusError:
            logger.error("Request %s holds unknown status %r", orm.id, orm.status)
            raise CorruptRecordError(
                f"Request {orm.id} holds unknown status {orm.status!r}"
            ) from None

    def _classify_lost_write(
        self,
        db: Session,
        request_id: int,
        expected_claimant: Optional[str],
        target: RequestStatus,
    ) -> RequestError:
        """Why a snapshot-guarded status write matched nothing."""
        orm = db.get(RequestModel, request_id)
        if orm is None:
            return NotFound("request", request_id)
        current = self._parse_stored_status(orm)
        if current in CLAIM_HOLDING_STATUSES and orm.claimed_by != expected_claimant:
            return AlreadyClaimed(request_id, orm.claimed_by)
        return InvalidTransition(current.value, target.value)

    def _to_core(
        self,
        db: Session,
        orm: RequestModel,
        with_trail: bool = True,
        trail: tuple | None = None,
    ) -> Request:
        if trail is None:
            trail = self._trails(db, [orm.id]).get(orm.id, ()) if with_trail else ()
        return Request(
            id=orm.id,
            requester_id=orm.requester_id,
            character_name=orm.character_name,
            profession=orm.profession,
            gear_slot=orm.gear_slot,
            item_id=orm.item_id,
            item_label=orm.item_label,
            status=self._parse_stored_status(orm),
            quantity_requested=orm.quantity_requested,
            quantity_completed=orm.quantity_completed,
            materials_required=normalize_materials(orm.materials_required),
            materials_provided=normalize_materials(orm.materials_provided),
            requester_provides_materials=bool(orm.requester_provides_materials),
            claimed_by=orm.claimed_by,
            claimed_by_display_name=orm.claimed_by_display_name,
            claimed_at=orm.claimed_at,
            deny_reason=orm.deny_reason,
            audit_trail=trail,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    def _emit(self, event_type: str, **data: Any) -> None:
        self._bus.emit(DomainEvent(event_type=event_type, data=data, source=_SOURCE))
