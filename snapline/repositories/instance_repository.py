"""Repository for Instance-specific database operations."""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from snapline.exceptions.domain import InstanceNotFoundError
from snapline.models import Device, Instance
from snapline.repositories.base import BaseRepository


class InstanceRepository(BaseRepository[Instance]):
    """Repository for Instance model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Instance)

    async def get(self, instance_id: UUID) -> Instance:
        """Get instance by ID.

        Raises:
            InstanceNotFoundError: If instance doesn't exist
        """
        instance = await self.session.get(Instance, instance_id)
        if not instance:
            raise InstanceNotFoundError(instance_id)
        return instance

    async def get_devices(self, instance: Instance) -> Sequence[Device]:
        """Devices attached to an instance."""
        statement = select(Device).where(Device.instance_id == instance.id).order_by(Device.id)  # type: ignore[arg-type]
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def replace_live_state(
        self,
        instance: Instance,
        flows: list[dict[str, Any]],
        credentials: dict[str, Any],
        settings: dict[str, Any],
    ) -> Instance:
        """Overwrite the live flows, credentials and settings of an instance.

        JSON columns are reassigned, never mutated in place, so the change is tracked.
        """
        instance.flows = list(flows)
        instance.credentials = dict(credentials)
        instance.settings = dict(settings)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    async def set_device_target(
        self, instance: Instance, snapshot_id: int | None
    ) -> Sequence[Device]:
        """Point an instance and all of its devices at a target snapshot.

        Returns:
            The devices that were updated
        """
        instance.device_target_snapshot_id = snapshot_id
        devices = await self.get_devices(instance)
        for device in devices:
            device.target_snapshot_id = snapshot_id
        await self.session.commit()
        return devices
