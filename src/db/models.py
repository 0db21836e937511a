"""SQLAlchemy declarative base and ORM models."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""


class CharacterModel(Base):
    """Registered character of a requester."""

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False, default="main")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class RequestModel(Base):
    """Craft/enchant request."""

    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[str] = mapped_column(String, nullable=False)
    character_name: Mapped[str] = mapped_column(String, nullable=False)

    profession: Mapped[str] = mapped_column(String, nullable=False)
    gear_slot: Mapped[str] = mapped_column(String, nullable=False)
    item_id: Mapped[str] = mapped_column(String, nullable=False)
    item_label: Mapped[str] = mapped_column(String, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    quantity_requested: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    quantity_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    materials_required: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    materials_provided: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    requester_provides_materials: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    claimed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    claimed_by_display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    deny_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    audit_entries: Mapped[list["AuditEntryModel"]] = relationship(
        "AuditEntryModel",
        back_populates="request",
        order_by="AuditEntryModel.id",
    )

    __table_args__ = (
        Index(
            "idx_requests_submission",
            "requester_id",
            "character_name",
            "profession",
            "gear_slot",
            "item_id",
            "created_at",
        ),
        Index("idx_requests_profession_status", "profession", "status"),
        Index("idx_requests_claimed_by", "claimed_by"),
    )


class AuditEntryModel(Base):
    """Append-only action history; id order is the trail order."""

    __tablename__ = "request_audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[str] = mapped_column(String, nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    request: Mapped["RequestModel"] = relationship(
        "RequestModel", back_populates="audit_entries"
    )


class SessionModel(Base):
    """Multi-step composition state."""

    __tablename__ = "temp_sessions"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
