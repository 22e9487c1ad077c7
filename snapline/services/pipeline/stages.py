"""Service layer for pipelines and their stage chains."""

from collections.abc import Sequence
from uuid import UUID

from snapline.exceptions.domain import (
    InvalidArgumentError,
    InvalidNameError,
    InvalidStageError,
    StageNotFoundError,
)
from snapline.models import (
    Pipeline,
    PipelineCreate,
    PipelineRead,
    PipelineStage,
    PipelineStageRead,
    PipelineUpdate,
    StageCreate,
    StageUpdate,
)
from snapline.repositories.device_repository import DeviceRepository
from snapline.repositories.instance_repository import InstanceRepository
from snapline.repositories.pipeline_repository import PipelineRepository, PipelineStageRepository
from snapline.repositories.team_repository import TeamRepository
from snapline.services.pipeline.stage_graph import StageGraph
from snapline.utils.logger import logger


class PipelineStageService:
    """Creates, rewires and removes pipeline stages.

    Every mutation loads the pipeline's chain into a :class:`StageGraph`,
    applies the change there and writes the resulting links back in the same
    transaction as the stage itself.
    """

    def __init__(
        self,
        pipeline_repo: PipelineRepository,
        stage_repo: PipelineStageRepository,
        instance_repo: InstanceRepository,
        device_repo: DeviceRepository,
        team_repo: TeamRepository,
    ):
        self.pipeline_repo = pipeline_repo
        self.stage_repo = stage_repo
        self.instance_repo = instance_repo
        self.device_repo = device_repo
        self.team_repo = team_repo

    async def create_pipeline(self, data: PipelineCreate) -> Pipeline:
        """Create an empty pipeline inside an application.

        Raises:
            InvalidArgumentError: If the application does not exist
        """
        application = await self.team_repo.get_application_optional(data.application_id)
        if application is None:
            raise InvalidArgumentError(f"Application {data.application_id} not found")
        return await self.pipeline_repo.create(Pipeline(**data.model_dump()))

    async def update_pipeline(self, pipeline: Pipeline, data: PipelineUpdate) -> Pipeline:
        """Rename a pipeline.

        Raises:
            InvalidNameError: If the name is missing or blank
        """
        if data.name is None:
            raise InvalidNameError("Name is required")
        name = data.name.strip()
        if not name:
            raise InvalidNameError("Name must not be blank")
        pipeline = await self.pipeline_repo.update(pipeline, {"name": name})
        logger.info(f"Renamed pipeline {pipeline.id} to {name!r}")
        return pipeline

    async def _load_graph(self, pipeline_id: int) -> tuple[dict[int, PipelineStage], StageGraph]:
        stages = await self.stage_repo.list_for_pipeline(pipeline_id)
        by_id = {stage.id: stage for stage in stages}
        return by_id, StageGraph.from_stages(stages)  # type: ignore[return-value]

    @staticmethod
    def _write_links(stages: dict[int, PipelineStage], graph: StageGraph) -> None:
        for stage_id, successor in graph.links.items():
            stage = stages[stage_id]
            if stage.next_stage_id != successor:
                stage.next_stage_id = successor

    @staticmethod
    def _require_single_target(instance_id: UUID | None, device_id: int | None) -> None:
        if instance_id is not None and device_id is not None:
            raise InvalidArgumentError(
                "Cannot add a pipeline stage with both instance and a device"
            )
        if instance_id is None and device_id is None:
            raise InvalidArgumentError(
                "Param instance_id or device_id is required when creating a new pipeline stage"
            )

    async def _check_target(
        self,
        pipeline: Pipeline,
        instance_id: UUID | None,
        device_id: int | None,
        stage_id: int | None = None,
    ) -> None:
        """Referenced target must exist, live in the pipeline's application and
        not already serve a stage other than ``stage_id``.
        """
        if instance_id is not None:
            instance = await self.instance_repo.get(instance_id)
            if instance.application_id != pipeline.application_id:
                raise InvalidStageError(
                    "Instance must be part of the same application as the pipeline"
                )
            bound_to = await self.stage_repo.stage_id_for_instance(instance_id)
            if bound_to is not None and bound_to != stage_id:
                raise InvalidStageError(
                    f"instanceId {instance_id} is already in use by stage {bound_to}"
                )
        if device_id is not None:
            device = await self.device_repo.get(device_id)
            if device.application_id != pipeline.application_id:
                raise InvalidStageError(
                    "Device must be part of the same application as the pipeline"
                )
            bound_to = await self.stage_repo.stage_id_for_device(device_id)
            if bound_to is not None and bound_to != stage_id:
                raise InvalidStageError(
                    f"deviceId {device_id} is already in use by stage {bound_to}"
                )

    async def add_pipeline_stage(self, pipeline: Pipeline, data: StageCreate) -> PipelineStage:
        """Add a stage bound to exactly one instance or device.

        With ``source`` the new stage is inserted directly after that stage,
        otherwise it is appended to the end of the chain.

        Raises:
            InvalidArgumentError: If both or neither of instance_id and device_id are given
            NotFoundError: If the target or the source stage does not exist
            InvalidStageError: If the target or source belongs elsewhere, or the target
                already serves a stage
        """
        self._require_single_target(data.instance_id, data.device_id)
        await self._check_target(pipeline, data.instance_id, data.device_id)

        stages, graph = await self._load_graph(pipeline.id)  # type: ignore[arg-type]
        if data.source is not None and data.source not in graph:
            source = await self.stage_repo.get(data.source)
            if source.pipeline_id != pipeline.id:
                raise InvalidStageError("Source stage must be part of the same pipeline")

        stage = await self.stage_repo.add(
            PipelineStage(
                name=data.name,
                action=data.action.value,
                deploy_to_devices=data.deploy_to_devices,
                pipeline_id=pipeline.id,  # type: ignore[arg-type]
            )
        )
        self.stage_repo.bind_target(stage, data.instance_id, data.device_id)

        if data.source is not None:
            graph.insert_after(data.source, stage.id)  # type: ignore[arg-type]
        else:
            graph.append(stage.id)  # type: ignore[arg-type]
        graph.check()
        stages[stage.id] = stage  # type: ignore[index]
        self._write_links(stages, graph)

        await self.stage_repo.commit()
        await self.stage_repo.refresh(stage)
        logger.info(f"Added stage {stage.id} to pipeline {pipeline.id}")
        return stage

    async def update_pipeline_stage(self, stage: PipelineStage, data: StageUpdate) -> PipelineStage:
        """Update a stage's attributes and optionally re-bind its target.

        Raises:
            InvalidArgumentError: If both instance_id and device_id are given
            InvalidStageError: If the new target belongs elsewhere or serves another stage
        """
        if data.instance_id is not None or data.device_id is not None:
            self._require_single_target(data.instance_id, data.device_id)
            pipeline = await self.pipeline_repo.get(stage.pipeline_id)
            await self._check_target(pipeline, data.instance_id, data.device_id, stage.id)
            await self.stage_repo.unbind_targets(stage)
            self.stage_repo.bind_target(stage, data.instance_id, data.device_id)

        changes = data.model_dump(
            exclude_unset=True, include={"name", "action", "deploy_to_devices"}
        )
        if data.action is not None:
            changes["action"] = data.action.value
        return await self.stage_repo.update(stage, changes)

    async def delete_pipeline_stage(self, stage: PipelineStage) -> None:
        """Delete a stage, bridging its predecessor to its successor.

        The bound instance or device is left untouched.
        """
        stages, graph = await self._load_graph(stage.pipeline_id)
        if stage.id not in graph:
            raise StageNotFoundError(stage.id)

        graph.remove(stage.id)  # type: ignore[arg-type]
        del stages[stage.id]  # type: ignore[arg-type]
        self._write_links(stages, graph)

        await self.stage_repo.unbind_targets(stage)
        await self.stage_repo.session.flush()
        await self.stage_repo.session.delete(stage)
        await self.stage_repo.commit()
        logger.info(f"Deleted stage {stage.id} from pipeline {stage.pipeline_id}")

    async def delete_pipeline(self, pipeline: Pipeline) -> None:
        """Delete a pipeline together with all of its stages."""
        await self.pipeline_repo.delete_with_stages(pipeline)
        logger.info(f"Deleted pipeline {pipeline.id}")

    async def list_stages(self, pipeline: Pipeline) -> list[PipelineStage]:
        """Stages of a pipeline in chain order."""
        stages, graph = await self._load_graph(pipeline.id)  # type: ignore[arg-type]
        return [stages[stage_id] for stage_id in graph.ordered()]

    async def stage_read(self, stage: PipelineStage) -> PipelineStageRead:
        return PipelineStageRead(
            id=stage.id,  # type: ignore[arg-type]
            name=stage.name,
            action=stage.action,
            deploy_to_devices=stage.deploy_to_devices,
            next_stage_id=stage.next_stage_id,
            instance_ids=await self.stage_repo.get_instance_ids(stage.id),  # type: ignore[arg-type]
            device_ids=await self.stage_repo.get_device_ids(stage.id),  # type: ignore[arg-type]
        )

    async def pipeline_read(self, pipeline: Pipeline) -> PipelineRead:
        stages: Sequence[PipelineStage] = await self.list_stages(pipeline)
        return PipelineRead(
            id=pipeline.id,  # type: ignore[arg-type]
            name=pipeline.name,
            application_id=pipeline.application_id,
            stages=[await self.stage_read(stage) for stage in stages],
        )
