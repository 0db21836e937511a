"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.characters import router as characters_router
from src.api.errors import ApiError, api_error_handler, unknown_status_handler
from src.api.health import router as health_router
from src.api.requests import router as requests_router
from src.config import settings
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.core.request.errors import UnknownStatusError
from src.db.database import SessionLocal, engine as db_engine
from src.db.models import Base
from src.services.audit_log import AuditLog
from src.services.character_service import CharacterService
from src.services.request_service import RequestStore
from src.services.session_service import SessionStore, SessionSweeper

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    event_bus = EventBus()
    audit_log = AuditLog(SessionLocal)
    request_store = RequestStore(SessionLocal, event_bus, audit_log)
    character_service = CharacterService(
        SessionLocal,
        event_bus,
        cascade=request_store.cascade_delete_character,
    )
    session_store = SessionStore(SessionLocal, event_bus)
    sweeper = SessionSweeper(session_store)

    app.state.event_bus = event_bus
    app.state.request_store = request_store
    app.state.character_service = character_service
    app.state.session_store = session_store
    logger.info("Services initialized.")

    sweeper.start()

    yield

    logger.info("Shutting down...")
    sweeper.stop()


app = FastAPI(title="Guild Craft Desk", lifespan=lifespan)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(UnknownStatusError, unknown_status_handler)

app.include_router(health_router)
app.include_router(requests_router)
app.include_router(characters_router)
