"""Repository for Device-specific database operations."""

from collections.abc import Sequence

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from snapline.exceptions.domain import DeviceNotFoundError
from snapline.models import Device
from snapline.repositories.base import BaseRepository


class DeviceRepository(BaseRepository[Device]):
    """Repository for Device model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Device)

    async def get(self, device_id: int) -> Device:
        """Get device by ID.

        Raises:
            DeviceNotFoundError: If device doesn't exist
        """
        device = await self.session.get(Device, device_id)
        if not device:
            raise DeviceNotFoundError(device_id)
        return device

    async def get_with_relations(self, device_id: int) -> Device:
        """Get a device with team, application and instance eagerly loaded.

        Raises:
            DeviceNotFoundError: If device doesn't exist
        """
        statement = (
            select(Device)
            .where(Device.id == device_id)
            .options(
                selectinload(Device.team),  # type: ignore[arg-type]
                selectinload(Device.application),  # type: ignore[arg-type]
                selectinload(Device.instance),  # type: ignore[arg-type]
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        device = result.scalars().first()
        if not device:
            raise DeviceNotFoundError(device_id)
        return device

    async def find_by_snapshot(self, snapshot_id: int) -> Sequence[Device]:
        """Devices whose target or active snapshot is the given snapshot."""
        statement = select(Device).where(
            or_(
                Device.target_snapshot_id == snapshot_id,  # type: ignore[arg-type]
                Device.active_snapshot_id == snapshot_id,  # type: ignore[arg-type]
            )
        )
        result = await self.session.execute(statement)
        return result.scalars().all()
