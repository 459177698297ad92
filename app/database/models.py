"""SQLAlchemy models for the narrative tables."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TIMESTAMP,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NarrativeCategory(str, enum.Enum):
    ROOFING = "ROOFING"
    HVAC = "HVAC"
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    EXTERIOR = "EXTERIOR"
    INTERIOR = "INTERIOR"
    OTHER = "OTHER"


class Severity(str, enum.Enum):
    MAJOR = "MAJOR"
    SAFETY = "SAFETY"
    MINOR = "MINOR"
    INFO = "INFO"


class ApplyMode(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


class NarrativeTemplate(Base):
    """Per-tenant stock narrative with ``{{placeholder}}`` tokens."""

    __tablename__ = "narrative_templates"
    __table_args__ = (
        Index("ix_narrative_templates_tenant_category", "tenant_id", "category", "component"),
        Index("ix_narrative_templates_tenant_active", "tenant_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)  # NarrativeCategory
    component: Mapped[str | None] = mapped_column(String, nullable=True)  # e.g. "Shingles", "Service Panel"
    severity: Mapped[str | None] = mapped_column(String(16), nullable=True)  # Severity
    tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    # Derived from body on every write, never edited directly
    placeholders: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    language: Mapped[str] = mapped_column(String(16), nullable=False, default="en-US")
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skip_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Finding(Base):
    """Inspection finding owned by the report subsystem.

    The narrative engine reads title, summary, section name and severity and
    writes only the narrative_* / variables / confidence columns.
    """

    __tablename__ = "findings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    inspection_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    section_name: Mapped[str | None] = mapped_column(String, nullable=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity: Mapped[str | None] = mapped_column(String(16), nullable=True)
    narrative_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("narrative_templates.id"), nullable=True, index=True
    )
    narrative_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    variables: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class NarrativeChoice(Base):
    """Append-only record of a narrative applied to a finding."""

    __tablename__ = "narrative_choices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    finding_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    narrative_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    chosen: Mapped[bool] = mapped_column(Boolean, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    selection_mode: Mapped[str] = mapped_column(String(16), nullable=False)  # ApplyMode
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class NarrativeSetting(Base):
    """Per-tenant narrative preferences, one row per tenant."""

    __tablename__ = "narrative_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, unique=True)
    auto_apply_narratives: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_apply_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.72)
    language: Mapped[str] = mapped_column(String(16), nullable=False, default="en-US")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
