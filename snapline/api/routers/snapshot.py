"""
Snapshot API router.

Export requires a destination ``credential_secret``; import accepts a
portable snapshot for either an instance or a device.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, status

from snapline.api.dependencies import (
    AuditLoggerDep,
    CurrentUserDep,
    DeviceRepositoryDep,
    InstanceRepositoryDep,
    SnapshotRepositoryDep,
    SnapshotServiceDep,
)
from snapline.exceptions import BAD_REQUEST
from snapline.models import (
    Device,
    Instance,
    OwnerType,
    SnapshotExportRequest,
    SnapshotImportRequest,
    SnapshotRead,
)

router = APIRouter()


@router.get("/{snapshot_id}", response_model=SnapshotRead)
async def get_snapshot(
    snapshot_id: int, repo: SnapshotRepositoryDep, _user: CurrentUserDep
) -> SnapshotRead:
    """Get snapshot summary."""
    return SnapshotRead.from_snapshot(await repo.get(snapshot_id))


@router.post("/{snapshot_id}/export")
async def export_snapshot(
    snapshot_id: int,
    data: SnapshotExportRequest,
    repo: SnapshotRepositoryDep,
    service: SnapshotServiceDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Export a snapshot with credentials re-encrypted for ``credential_secret``."""
    snapshot = await repo.get(snapshot_id)
    if not data.credential_secret:
        raise BAD_REQUEST.with_context("credential_secret is required")

    owner = await service.resolve_owner(snapshot)
    exported = await service.export_snapshot(
        snapshot, data.credential_secret, data.credentials, owner=owner
    )
    if exported is None:
        raise BAD_REQUEST.with_context("Snapshot owner could not be resolved")

    if isinstance(owner, Instance):
        await audit.project_snapshot_exported(user, None, owner, snapshot)
    return exported


@router.post("/import", response_model=SnapshotRead, status_code=status.HTTP_201_CREATED)
async def import_snapshot(
    data: SnapshotImportRequest,
    service: SnapshotServiceDep,
    instance_repo: InstanceRepositoryDep,
    device_repo: DeviceRepositoryDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> SnapshotRead:
    """Upload a portable snapshot to an instance or a device."""
    owner: Instance | Device
    try:
        if data.owner_type == OwnerType.instance:
            owner = await instance_repo.get(UUID(data.owner_id))
        else:
            owner = await device_repo.get(int(data.owner_id))
    except ValueError as e:
        raise BAD_REQUEST.with_context(f"Invalid owner id '{data.owner_id}'") from e

    snapshot = await service.upload_snapshot(owner, data.snapshot, data.credential_secret, user)
    await audit.application_snapshot_uploaded(user, None, owner, snapshot)
    return SnapshotRead.from_snapshot(snapshot)


@router.delete("/{snapshot_id}")
async def delete_snapshot(
    snapshot_id: int,
    repo: SnapshotRepositoryDep,
    service: SnapshotServiceDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> dict[str, str]:
    """Delete a snapshot; devices targeting it are told to clear it."""
    snapshot = await repo.get(snapshot_id)
    owner = await service.resolve_owner(snapshot)
    await service.delete_snapshot(snapshot)
    if isinstance(owner, Instance):
        await audit.project_snapshot_deleted(user, None, owner, snapshot)
    return {"status": "okay"}
