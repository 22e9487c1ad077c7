"""Device API router: live settings, env updates and credential rotation."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from snapline.api.dependencies import (
    CurrentUserDep,
    DeviceRepositoryDep,
    DeviceServiceDep,
    SnapshotRepositoryDep,
)
from snapline.models import DeviceCredentials, DeviceRead, SnapshotRead

router = APIRouter()


class DeviceEnvUpdate(BaseModel):
    """Request body replacing a device's environment variables."""

    env: list[dict[str, Any]] = Field(default_factory=list)


@router.get("/{device_id}", response_model=DeviceRead)
async def get_device(
    device_id: int, repo: DeviceRepositoryDep, _user: CurrentUserDep
) -> DeviceRead:
    """Get device details, including target and active snapshot."""
    return DeviceRead.model_validate(await repo.get(device_id), from_attributes=True)


@router.get("/{device_id}/live/settings")
async def get_device_live_settings(
    device_id: int, repo: DeviceRepositoryDep, service: DeviceServiceDep, _user: CurrentUserDep
) -> dict[str, Any]:
    """Settings as the device runtime receives them, platform variables included."""
    return await service.get_live_settings(await repo.get(device_id))


@router.put("/{device_id}/settings", response_model=DeviceRead)
async def update_device_settings(
    device_id: int,
    data: DeviceEnvUpdate,
    repo: DeviceRepositoryDep,
    service: DeviceServiceDep,
    _user: CurrentUserDep,
) -> DeviceRead:
    """Replace the device's environment; reserved ``FF_`` variables are dropped."""
    device = await service.update_settings(await repo.get(device_id), data.env)
    return DeviceRead.model_validate(device, from_attributes=True)


@router.post("/{device_id}/generate_credentials", response_model=DeviceCredentials)
async def generate_device_credentials(
    device_id: int, repo: DeviceRepositoryDep, service: DeviceServiceDep, _user: CurrentUserDep
) -> DeviceCredentials:
    """Rotate the device's credential secret."""
    secret = await service.refresh_credentials(await repo.get(device_id))
    return DeviceCredentials(credential_secret=secret)


@router.get("/{device_id}/snapshots", response_model=list[SnapshotRead])
async def list_device_snapshots(
    device_id: int,
    repo: DeviceRepositoryDep,
    snapshot_repo: SnapshotRepositoryDep,
    _user: CurrentUserDep,
) -> list[SnapshotRead]:
    """Snapshots owned by a device, newest first."""
    device = await repo.get(device_id)
    snapshots = await snapshot_repo.list_for_device(device.id)  # type: ignore[arg-type]
    return [SnapshotRead.from_snapshot(snapshot) for snapshot in snapshots]
