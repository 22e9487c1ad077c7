"""
Device models.

A device is a remote runtime that is told which snapshot to run through
``target_snapshot_id`` and reports what it runs through ``active_snapshot_id``.
"""

from typing import Any, Optional
from uuid import UUID

from sqlmodel import JSON, Column, Field, Relationship, SQLModel

from .base import generate_credential_secret
from .instance import Instance
from .team import Application, Team


class Device(SQLModel, table=True):
    """Edge device managed by the platform."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    type: str = ""
    credential_secret: str = Field(default_factory=generate_credential_secret)
    state: str = ""

    team_id: int | None = Field(default=None, foreign_key="team.id", index=True)
    application_id: int | None = Field(default=None, foreign_key="application.id", index=True)
    instance_id: UUID | None = Field(default=None, foreign_key="instance.id", index=True)

    # Desired and reported snapshot; cleared explicitly when a snapshot is deleted
    target_snapshot_id: int | None = Field(default=None, index=True)
    active_snapshot_id: int | None = Field(default=None, index=True)

    settings: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    team: Optional[Team] = Relationship()
    application: Optional[Application] = Relationship()
    instance: Optional[Instance] = Relationship()


class DeviceRead(SQLModel):
    """API response schema for devices."""

    id: int
    name: str
    type: str
    state: str
    team_id: int | None = None
    application_id: int | None = None
    instance_id: UUID | None = None
    target_snapshot_id: int | None = None
    active_snapshot_id: int | None = None


class DeviceCredentials(SQLModel):
    """Freshly rotated device credential secret."""

    credential_secret: str
