"""
Snapshot models.

A snapshot is an immutable capture of flows, encrypted credentials and
settings owned by exactly one instance or one device. Ownership is exposed
as the tagged union :data:`SnapshotOwner`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeAlias
from uuid import UUID

from sqlalchemy import CheckConstraint
from sqlmodel import JSON, Column, Field, SQLModel

from .base import OwnerType, utcnow


@dataclass(frozen=True)
class InstanceOwner:
    """Snapshot owned by an instance."""

    instance_id: UUID

    @property
    def owner_type(self) -> OwnerType:
        return OwnerType.instance


@dataclass(frozen=True)
class DeviceOwner:
    """Snapshot owned by a device."""

    device_id: int

    @property
    def owner_type(self) -> OwnerType:
        return OwnerType.device


SnapshotOwner: TypeAlias = InstanceOwner | DeviceOwner


class Snapshot(SQLModel, table=True):
    """Stored configuration snapshot."""

    __tablename__ = "project_snapshot"
    __table_args__ = (
        CheckConstraint(
            "(instance_id IS NULL) <> (device_id IS NULL)", name="ck_snapshot_single_owner"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=255)
    description: str = ""

    # {"settings": {...}, "env": {...}, "modules": {...}}
    settings: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    # {"flows": [...], "credentials": {"$": "..."}}
    flows: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    credential_secret: str | None = None

    instance_id: UUID | None = Field(default=None, foreign_key="instance.id", index=True)
    device_id: int | None = Field(default=None, foreign_key="device.id", index=True)
    user_id: UUID | None = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def owner(self) -> SnapshotOwner:
        """Owner of this snapshot as a tagged union."""
        if self.instance_id is not None:
            return InstanceOwner(self.instance_id)
        if self.device_id is not None:
            return DeviceOwner(self.device_id)
        raise ValueError(f"Snapshot {self.id} has no owner")

    @property
    def owner_type(self) -> OwnerType:
        return self.owner.owner_type

    @property
    def env(self) -> dict[str, str]:
        return dict(self.settings.get("env") or {})


class SnapshotRead(SQLModel):
    """API response schema for snapshots. Flows and credentials are never listed."""

    id: int
    name: str
    description: str
    owner_type: OwnerType
    instance_id: UUID | None = None
    device_id: int | None = None
    user_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "SnapshotRead":
        return cls(
            id=snapshot.id,  # type: ignore[arg-type]
            name=snapshot.name,
            description=snapshot.description,
            owner_type=snapshot.owner_type,
            instance_id=snapshot.instance_id,
            device_id=snapshot.device_id,
            user_id=snapshot.user_id,
            created_at=snapshot.created_at,
        )


class SnapshotFlows(SQLModel):
    """Flows section of a portable snapshot."""

    flows: list[dict[str, Any]] = Field(default_factory=list)
    credentials: dict[str, Any] | None = None


class SnapshotSettings(SQLModel):
    """Settings section of a portable snapshot."""

    settings: dict[str, Any] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)
    modules: dict[str, Any] = Field(default_factory=dict)


class SnapshotPayload(SQLModel):
    """Portable snapshot representation accepted by upload/import."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    flows: SnapshotFlows = Field(default_factory=SnapshotFlows)
    settings: SnapshotSettings = Field(default_factory=SnapshotSettings)


class SnapshotCreate(SQLModel):
    """Request body for snapshotting an instance's live state."""

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    set_as_target: bool = False


class SnapshotExportRequest(SQLModel):
    """Request body for exporting a snapshot."""

    credential_secret: str | None = None
    credentials: dict[str, Any] | None = None


class SnapshotImportRequest(SQLModel):
    """Request body for uploading a snapshot to an instance or a device."""

    owner_type: OwnerType
    owner_id: str
    snapshot: SnapshotPayload
    credential_secret: str | None = None
