"""
Pipeline and pipeline stage models.

Stages of a pipeline are chained through ``next_stage_id``; there is no
sequence column. Targets are bound through link tables so that a stage can be
inspected for the number of instances and devices it carries.
"""

from uuid import UUID

from sqlmodel import Field, SQLModel

from .base import SnapshotAction


class Pipeline(SQLModel, table=True):
    """Ordered promotion path for snapshots inside an application."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    application_id: int = Field(foreign_key="application.id", index=True)


class PipelineStage(SQLModel, table=True):
    """A step of a pipeline bound to one instance or one device."""

    __tablename__ = "pipeline_stage"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    # Stored as text; resolved to SnapshotAction when deploying
    action: str = Field(default=SnapshotAction.CREATE_SNAPSHOT.value, max_length=50)
    deploy_to_devices: bool = False

    pipeline_id: int = Field(foreign_key="pipeline.id", index=True)
    next_stage_id: int | None = Field(
        default=None, foreign_key="pipeline_stage.id", ondelete="SET NULL"
    )


class PipelineStageInstance(SQLModel, table=True):
    """Link between a stage and an instance target. An instance serves one stage."""

    __tablename__ = "pipeline_stage_instance"

    stage_id: int = Field(foreign_key="pipeline_stage.id", primary_key=True)
    instance_id: UUID = Field(foreign_key="instance.id", primary_key=True, unique=True)


class PipelineStageDevice(SQLModel, table=True):
    """Link between a stage and a device target. A device serves one stage."""

    __tablename__ = "pipeline_stage_device"

    stage_id: int = Field(foreign_key="pipeline_stage.id", primary_key=True)
    device_id: int = Field(foreign_key="device.id", primary_key=True, unique=True)


class PipelineCreate(SQLModel):
    """Request body for creating a pipeline."""

    name: str = Field(min_length=1, max_length=100)
    application_id: int


class PipelineUpdate(SQLModel):
    """Request body for renaming a pipeline."""

    name: str | None = Field(default=None, max_length=100)


class StageCreate(SQLModel):
    """Request body for adding a stage.

    Exactly one of ``instance_id`` and ``device_id`` must be given. ``source``
    is the id of the stage that should deploy into the new one.
    """

    name: str = Field(min_length=1, max_length=100)
    action: SnapshotAction = SnapshotAction.CREATE_SNAPSHOT
    instance_id: UUID | None = None
    device_id: int | None = None
    source: int | None = None
    deploy_to_devices: bool = False


class StageUpdate(SQLModel):
    """Request body for updating a stage. Unset fields are left untouched."""

    name: str | None = None
    action: SnapshotAction | None = None
    instance_id: UUID | None = None
    device_id: int | None = None
    deploy_to_devices: bool | None = None


class PipelineStageRead(SQLModel):
    """API response schema for a stage."""

    id: int
    name: str
    action: str
    deploy_to_devices: bool
    next_stage_id: int | None = None
    instance_ids: list[UUID] = Field(default_factory=list)
    device_ids: list[int] = Field(default_factory=list)


class PipelineRead(SQLModel):
    """API response schema for a pipeline with its stages in chain order."""

    id: int
    name: str
    application_id: int
    stages: list[PipelineStageRead] = Field(default_factory=list)


class DeployRequest(SQLModel):
    """Request body for deploying a stage."""

    source_snapshot_id: int | None = None
