"""Repository layer for data access operations."""

from snapline.repositories.audit_log_repository import AuditLogRepository
from snapline.repositories.base import BaseRepository
from snapline.repositories.device_repository import DeviceRepository
from snapline.repositories.instance_repository import InstanceRepository
from snapline.repositories.pipeline_repository import PipelineRepository, PipelineStageRepository
from snapline.repositories.snapshot_repository import SnapshotRepository
from snapline.repositories.team_repository import TeamRepository
from snapline.repositories.user_repository import UserRepository

__all__ = [
    "AuditLogRepository",
    "BaseRepository",
    "DeviceRepository",
    "InstanceRepository",
    "PipelineRepository",
    "PipelineStageRepository",
    "SnapshotRepository",
    "TeamRepository",
    "UserRepository",
]
