"""Instance API router: status polling, live settings and snapshots of live state."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, status

from snapline.api.dependencies import (
    AuditLoggerDep,
    CurrentUserDep,
    InstanceRepositoryDep,
    SnapshotRepositoryDep,
    SnapshotServiceDep,
)
from snapline.models import InstanceStatus, SnapshotCreate, SnapshotRead
from snapline.services.inflight import inflight_tracker

router = APIRouter()


@router.get("/{instance_id}/status", response_model=InstanceStatus)
async def get_instance_status(
    instance_id: UUID, repo: InstanceRepositoryDep, _user: CurrentUserDep
) -> InstanceStatus:
    """Instance state with its in-flight markers, for polling a deploy."""
    instance = await repo.get(instance_id)
    return InstanceStatus(
        id=instance.id,
        name=instance.name,
        state=instance.state,
        inflight_state=inflight_tracker.get(instance.id),
        is_deploying=inflight_tracker.is_deploying(instance.id),
    )


@router.get("/{instance_id}/settings")
async def get_instance_settings(
    instance_id: UUID,
    repo: InstanceRepositoryDep,
    service: SnapshotServiceDep,
    _user: CurrentUserDep,
) -> dict[str, Any]:
    """Live settings of an instance with platform variables injected."""
    return service.get_live_settings(await repo.get(instance_id))


@router.get("/{instance_id}/snapshots", response_model=list[SnapshotRead])
async def list_instance_snapshots(
    instance_id: UUID,
    repo: InstanceRepositoryDep,
    snapshot_repo: SnapshotRepositoryDep,
    _user: CurrentUserDep,
) -> list[SnapshotRead]:
    """Snapshots owned by an instance, newest first."""
    instance = await repo.get(instance_id)
    snapshots = await snapshot_repo.list_for_instance(instance.id)
    return [SnapshotRead.from_snapshot(snapshot) for snapshot in snapshots]


@router.post(
    "/{instance_id}/snapshots",
    response_model=SnapshotRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_instance_snapshot(
    instance_id: UUID,
    data: SnapshotCreate,
    repo: InstanceRepositoryDep,
    service: SnapshotServiceDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> SnapshotRead:
    """Capture the live state of an instance."""
    instance = await repo.get(instance_id)
    snapshot = await service.create_snapshot(
        instance, user, data.name, data.description, set_as_target=data.set_as_target
    )
    await audit.project_snapshot_created(user, None, instance, snapshot)
    if data.set_as_target:
        await audit.project_snapshot_device_target_set(user, None, instance, snapshot)
    return SnapshotRead.from_snapshot(snapshot)
