"""Repository for pipelines, stages and their target bindings."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from snapline.exceptions.domain import PipelineNotFoundError, StageNotFoundError
from snapline.models import (
    Device,
    Instance,
    Pipeline,
    PipelineStage,
    PipelineStageDevice,
    PipelineStageInstance,
)
from snapline.repositories.base import BaseRepository


class PipelineRepository(BaseRepository[Pipeline]):
    """Repository for Pipeline model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Pipeline)

    async def get(self, pipeline_id: int) -> Pipeline:
        """Get pipeline by ID.

        Raises:
            PipelineNotFoundError: If pipeline doesn't exist
        """
        pipeline = await self.session.get(Pipeline, pipeline_id)
        if not pipeline:
            raise PipelineNotFoundError(pipeline_id)
        return pipeline

    async def delete_with_stages(self, pipeline: Pipeline) -> None:
        """Delete a pipeline, its stages and their target bindings in one transaction."""
        stage_ids = select(PipelineStage.id).where(PipelineStage.pipeline_id == pipeline.id)
        await self.session.execute(
            delete(PipelineStageInstance).where(col(PipelineStageInstance.stage_id).in_(stage_ids))
        )
        await self.session.execute(
            delete(PipelineStageDevice).where(col(PipelineStageDevice.stage_id).in_(stage_ids))
        )
        await self.session.execute(
            update(PipelineStage)
            .where(col(PipelineStage.pipeline_id) == pipeline.id)
            .values(next_stage_id=None)
        )
        await self.session.execute(
            delete(PipelineStage).where(col(PipelineStage.pipeline_id) == pipeline.id)
        )
        await self.session.delete(pipeline)
        await self.session.commit()


class PipelineStageRepository(BaseRepository[PipelineStage]):
    """Repository for PipelineStage model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PipelineStage)

    async def get(self, stage_id: int) -> PipelineStage:
        """Get stage by ID.

        Raises:
            StageNotFoundError: If stage doesn't exist
        """
        stage = await self.session.get(PipelineStage, stage_id)
        if not stage:
            raise StageNotFoundError(stage_id)
        return stage

    async def list_for_pipeline(self, pipeline_id: int) -> Sequence[PipelineStage]:
        """All stages of a pipeline in id order."""
        statement = (
            select(PipelineStage)
            .where(PipelineStage.pipeline_id == pipeline_id)
            .order_by(col(PipelineStage.id))
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def get_instances(self, stage: PipelineStage) -> Sequence[Instance]:
        """Instances bound to a stage."""
        statement = (
            select(Instance)
            .join(PipelineStageInstance, col(PipelineStageInstance.instance_id) == Instance.id)
            .where(PipelineStageInstance.stage_id == stage.id)
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def get_devices(self, stage: PipelineStage) -> Sequence[Device]:
        """Devices bound to a stage."""
        statement = (
            select(Device)
            .join(PipelineStageDevice, col(PipelineStageDevice.device_id) == Device.id)
            .where(PipelineStageDevice.stage_id == stage.id)
            .order_by(col(Device.id))
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def get_instance_ids(self, stage_id: int) -> list[UUID]:
        statement = select(PipelineStageInstance.instance_id).where(
            PipelineStageInstance.stage_id == stage_id
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_device_ids(self, stage_id: int) -> list[int]:
        statement = select(PipelineStageDevice.device_id).where(
            PipelineStageDevice.stage_id == stage_id
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def stage_id_for_instance(self, instance_id: UUID) -> int | None:
        """Id of the stage an instance is bound to, if any."""
        statement = select(PipelineStageInstance.stage_id).where(
            PipelineStageInstance.instance_id == instance_id
        )
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def stage_id_for_device(self, device_id: int) -> int | None:
        """Id of the stage a device is bound to, if any."""
        statement = select(PipelineStageDevice.stage_id).where(
            PipelineStageDevice.device_id == device_id
        )
        result = await self.session.execute(statement)
        return result.scalars().first()

    def bind_target(
        self, stage: PipelineStage, instance_id: UUID | None, device_id: int | None
    ) -> None:
        """Stage a binding row for the stage's target. Caller commits."""
        if instance_id is not None:
            self.session.add(PipelineStageInstance(stage_id=stage.id, instance_id=instance_id))  # type: ignore[arg-type]
        if device_id is not None:
            self.session.add(PipelineStageDevice(stage_id=stage.id, device_id=device_id))  # type: ignore[arg-type]

    async def unbind_targets(self, stage: PipelineStage) -> None:
        """Remove all target bindings of a stage. Caller commits."""
        await self.session.execute(
            delete(PipelineStageInstance).where(col(PipelineStageInstance.stage_id) == stage.id)
        )
        await self.session.execute(
            delete(PipelineStageDevice).where(col(PipelineStageDevice.stage_id) == stage.id)
        )
