"""Repository for Snapshot-specific database operations."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from snapline.exceptions.domain import SnapshotNotFoundError
from snapline.models import Device, Instance, Snapshot
from snapline.repositories.base import BaseRepository
from snapline.repositories.device_repository import DeviceRepository


class SnapshotRepository(BaseRepository[Snapshot]):
    """Repository for Snapshot model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Snapshot)

    async def get(self, snapshot_id: int) -> Snapshot:
        """Get snapshot by ID.

        Raises:
            SnapshotNotFoundError: If snapshot doesn't exist
        """
        snapshot = await self.session.get(Snapshot, snapshot_id)
        if not snapshot:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    async def list_for_instance(self, instance_id: UUID) -> Sequence[Snapshot]:
        """Snapshots owned by an instance, newest first."""
        statement = (
            select(Snapshot)
            .where(Snapshot.instance_id == instance_id)
            .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())  # type: ignore[attr-defined, union-attr]
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def list_for_device(self, device_id: int) -> Sequence[Snapshot]:
        """Snapshots owned by a device, newest first."""
        statement = (
            select(Snapshot)
            .where(Snapshot.device_id == device_id)
            .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())  # type: ignore[attr-defined, union-attr]
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def latest_for_instance(self, instance: Instance) -> Snapshot | None:
        """Most recent snapshot owned by an instance."""
        snapshots = await self.list_for_instance(instance.id)
        return snapshots[0] if snapshots else None

    async def latest_for_device(self, device: Device) -> Snapshot | None:
        """Most recent snapshot owned by a device."""
        snapshots = await self.list_for_device(device.id)  # type: ignore[arg-type]
        return snapshots[0] if snapshots else None

    async def active_for_device(self, device: Device) -> Snapshot | None:
        """Snapshot the device last reported as running."""
        return await self.get_optional(device.active_snapshot_id)

    async def delete_clearing_targets(
        self, snapshot: Snapshot
    ) -> tuple[list[Device], list[Instance]]:
        """Delete a snapshot and clear every pointer that references it.

        Device target/active pointers and instance-level device targets are
        cleared in the same transaction as the delete.

        Returns:
            Devices whose target snapshot was cleared, and instances whose
            devices no longer have a target
        """
        retargeted: list[Device] = []
        for device in await DeviceRepository(self.session).find_by_snapshot(snapshot.id):  # type: ignore[arg-type]
            if device.target_snapshot_id == snapshot.id:
                device.target_snapshot_id = None
                retargeted.append(device)
            if device.active_snapshot_id == snapshot.id:
                device.active_snapshot_id = None

        statement = select(Instance).where(Instance.device_target_snapshot_id == snapshot.id)  # type: ignore[arg-type]
        instances = list((await self.session.execute(statement)).scalars().all())
        for instance in instances:
            instance.device_target_snapshot_id = None

        await self.session.delete(snapshot)
        await self.session.commit()
        return retargeted, instances
