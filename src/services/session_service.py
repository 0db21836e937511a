"""Session Store - short-lived state for multi-step request composition

Reads treat an expired session as absent and remove it on the way. The
``SessionSweeper`` thread clears whatever nobody reads again.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings
from src.core.clock import Clock, utcnow
from src.core.event_bus import DomainEvent, EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.session.expiry import TTL, CompositionSession, expires_at, is_expired
from src.db.models import SessionModel

logger = get_logger(__name__)

# dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}

_REPLACED_COLUMNS = ("owner_id", "data", "created_at", "expires_at")


class SessionStore:
    """Key -> JSON data with expiry"""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        event_bus: EventBus | None = None,
        clock: Clock = utcnow,
        default_ttl: TTL | None = None,
    ):
        self._session_factory = session_factory
        self._bus = event_bus
        self._clock = clock
        self._default_ttl = (
            default_ttl if default_ttl is not None else settings.SESSION_TTL_SECONDS
        )

    def put(
        self,
        key: str,
        owner_id: str,
        data: dict[str, Any],
        ttl: TTL | None = None,
    ) -> None:
        """Insert or replace. Replacing restarts the lifetime."""
        now = self._clock()
        expiry = expires_at(now, ttl if ttl is not None else self._default_ttl)
        with self._session_factory() as db, db.begin():
            upsert = _UPSERTS[db.get_bind().dialect.name](SessionModel).values(
                key=key,
                owner_id=owner_id,
                data=dict(data),
                created_at=now,
                expires_at=expiry,
            )
            db.execute(
                upsert.on_conflict_do_update(
                    index_elements=[SessionModel.key],
                    set_={name: upsert.excluded[name] for name in _REPLACED_COLUMNS},
                )
            )
        logger.debug("Session %s stored for %s until %s", key, owner_id, expiry)

    def load(self, key: str) -> Optional[CompositionSession]:
        """The live session record, or None when absent or expired."""
        with self._session_factory() as db, db.begin():
            orm = db.get(SessionModel, key)
            if orm is None:
                return None
            if is_expired(orm.expires_at, self._clock()):
                db.delete(orm)
                logger.debug("Session %s expired on read", key)
                return None
            return CompositionSession(
                key=orm.key,
                owner_id=orm.owner_id,
                data=dict(orm.data),
                created_at=orm.created_at,
                expires_at=orm.expires_at,
            )

    def get(self, key: str) -> Optional[dict[str, Any]]:
        found = self.load(key)
        return None if found is None else found.data

    def delete(self, key: str) -> None:
        with self._session_factory() as db, db.begin():
            db.execute(delete(SessionModel).where(SessionModel.key == key))

    def has_active(self, owner_id: str) -> bool:
        with self._session_factory() as db:
            found = db.scalar(
                select(SessionModel.key)
                .where(
                    SessionModel.owner_id == owner_id,
                    SessionModel.expires_at > self._clock(),
                )
                .limit(1)
            )
        return found is not None

    def sweep_expired(self) -> int:
        with self._session_factory() as db, db.begin():
            outcome = db.execute(
                delete(SessionModel).where(SessionModel.expires_at <= self._clock())
            )
            removed = outcome.rowcount or 0

        if removed:
            logger.info("Swept %d expired session(s)", removed)
            if self._bus is not None:
                self._bus.emit(
                    DomainEvent(
                        event_type=EventTypes.SESSIONS_SWEPT,
                        data={"removed": removed},
                        source="session_store",
                    )
                )
        return removed


class SessionSweeper:
    """Background thread calling ``sweep_expired`` on a fixed period."""

    def __init__(self, store: SessionStore, interval_seconds: float | None = None):
        self._store = store
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else settings.SESSION_SWEEP_INTERVAL_SECONDS
        )
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="session-sweeper", daemon=True
        )
        self._thread.start()
        logger.info("Session sweeper started (every %ss)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Session sweeper stopped")

    def _run(self) -> None:
        # first pass runs immediately
        while True:
            try:
                self._store.sweep_expired()
            except Exception:
                logger.exception("Session sweep failed")
            if self._stop.wait(self._interval):
                break
