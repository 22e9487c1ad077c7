"""
Snapline data models.

This package contains the SQLModel-based models that define the database schema
and data structures used by the deployment pipeline core.
"""

# Base models
from .audit_log import AuditLogEntry
from .base import InstanceState, OwnerType, SnapshotAction

# Device models
from .device import Device, DeviceCredentials, DeviceRead

# Instance models
from .instance import Instance, InstanceStatus

# Pipeline models
from .pipeline import (
    DeployRequest,
    Pipeline,
    PipelineCreate,
    PipelineRead,
    PipelineStage,
    PipelineStageDevice,
    PipelineStageInstance,
    PipelineStageRead,
    PipelineUpdate,
    StageCreate,
    StageUpdate,
)

# Snapshot models
from .snapshot import (
    DeviceOwner,
    InstanceOwner,
    Snapshot,
    SnapshotCreate,
    SnapshotExportRequest,
    SnapshotFlows,
    SnapshotImportRequest,
    SnapshotOwner,
    SnapshotPayload,
    SnapshotRead,
    SnapshotSettings,
)

# Team models
from .team import Application, Team, User, UserRead

__all__ = [
    # Base
    "InstanceState",
    "OwnerType",
    "SnapshotAction",
    # Audit
    "AuditLogEntry",
    # Device
    "Device",
    "DeviceCredentials",
    "DeviceRead",
    # Instance
    "Instance",
    "InstanceStatus",
    # Pipeline
    "DeployRequest",
    "Pipeline",
    "PipelineCreate",
    "PipelineRead",
    "PipelineStage",
    "PipelineStageDevice",
    "PipelineStageInstance",
    "PipelineStageRead",
    "PipelineUpdate",
    "StageCreate",
    "StageUpdate",
    # Snapshot
    "DeviceOwner",
    "InstanceOwner",
    "Snapshot",
    "SnapshotCreate",
    "SnapshotExportRequest",
    "SnapshotFlows",
    "SnapshotImportRequest",
    "SnapshotOwner",
    "SnapshotPayload",
    "SnapshotRead",
    "SnapshotSettings",
    # Team
    "Application",
    "Team",
    "User",
    "UserRead",
]
