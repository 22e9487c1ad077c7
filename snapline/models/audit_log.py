"""Audit log entry model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlmodel import JSON, Column, Field, SQLModel

from .base import utcnow


class AuditLogEntry(SQLModel, table=True):
    """One structured audit event."""

    __tablename__ = "audit_log"

    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True, max_length=100)
    entity_type: str = Field(max_length=30)
    entity_id: str | None = Field(default=None, index=True)
    user_id: UUID | None = None
    body: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
