"""
Instance models.

An instance is a managed Node-RED deployment. Its live state (flows,
encrypted credentials and settings) is what a snapshot captures and what an
imported snapshot replaces.
"""

from typing import Any
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, Field, SQLModel

from .base import InstanceState, generate_credential_secret


class Instance(SQLModel, table=True):
    """Managed Node-RED instance."""

    __tablename__ = "instance"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    state: InstanceState = Field(default=InstanceState.running)
    url: str | None = None
    credential_secret: str = Field(default_factory=generate_credential_secret)

    team_id: int | None = Field(default=None, foreign_key="team.id", index=True)
    application_id: int | None = Field(default=None, foreign_key="application.id", index=True)

    # Live state
    flows: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    credentials: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    settings: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # Snapshot the instance's devices should run
    device_target_snapshot_id: int | None = Field(default=None)


class InstanceStatus(SQLModel):
    """Polling view of an instance, including in-flight markers."""

    id: UUID
    name: str
    state: InstanceState
    inflight_state: str | None = None
    is_deploying: bool = False
