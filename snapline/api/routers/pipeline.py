"""
Pipeline API router.

Endpoints for pipelines, their stages and stage deploys. Deploys to an
instance answer immediately with ``{"status": "importing"}`` and finish in a
background task; clients poll the instance status to see completion.
"""

from fastapi import APIRouter, BackgroundTasks, status

from snapline.api.dependencies import (
    AuditLoggerDep,
    CurrentUserDep,
    DeployServiceDep,
    DispatcherDep,
    PipelineRepositoryDep,
    RuntimeDep,
    StageRepositoryDep,
    StageServiceDep,
)
from snapline.exceptions.domain import StageNotFoundError
from snapline.models import (
    DeployRequest,
    PipelineCreate,
    PipelineRead,
    PipelineStage,
    PipelineStageRead,
    PipelineUpdate,
    StageCreate,
    StageUpdate,
)
from snapline.repositories import PipelineStageRepository
from snapline.services.pipeline import execute_instance_deploy_job

router = APIRouter()


async def _stage_in_pipeline(
    stage_repo: PipelineStageRepository, pipeline_id: int, stage_id: int
) -> PipelineStage:
    stage = await stage_repo.get(stage_id)
    if stage.pipeline_id != pipeline_id:
        raise StageNotFoundError(stage_id)
    return stage


@router.post("", response_model=PipelineRead, status_code=status.HTTP_201_CREATED)
async def create_pipeline(
    data: PipelineCreate, service: StageServiceDep, _user: CurrentUserDep
) -> PipelineRead:
    """Create an empty pipeline."""
    pipeline = await service.create_pipeline(data)
    return await service.pipeline_read(pipeline)


@router.get("/{pipeline_id}", response_model=PipelineRead)
async def get_pipeline(
    pipeline_id: int,
    repo: PipelineRepositoryDep,
    service: StageServiceDep,
    _user: CurrentUserDep,
) -> PipelineRead:
    """Get a pipeline with its stages in chain order."""
    return await service.pipeline_read(await repo.get(pipeline_id))


@router.put("/{pipeline_id}", response_model=PipelineRead)
async def update_pipeline(
    pipeline_id: int,
    data: PipelineUpdate,
    repo: PipelineRepositoryDep,
    service: StageServiceDep,
    _user: CurrentUserDep,
) -> PipelineRead:
    """Rename a pipeline."""
    pipeline = await service.update_pipeline(await repo.get(pipeline_id), data)
    return await service.pipeline_read(pipeline)


@router.delete("/{pipeline_id}")
async def delete_pipeline(
    pipeline_id: int,
    repo: PipelineRepositoryDep,
    service: StageServiceDep,
    _user: CurrentUserDep,
) -> dict[str, str]:
    """Delete a pipeline and all of its stages."""
    await service.delete_pipeline(await repo.get(pipeline_id))
    return {"status": "okay"}


@router.post(
    "/{pipeline_id}/stages",
    response_model=PipelineStageRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_stage(
    pipeline_id: int,
    data: StageCreate,
    repo: PipelineRepositoryDep,
    service: StageServiceDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> PipelineStageRead:
    """Add a stage, optionally after an existing ``source`` stage."""
    pipeline = await repo.get(pipeline_id)
    stage = await service.add_pipeline_stage(pipeline, data)
    await audit.pipeline_stage_added(user, None, pipeline_id, stage.id)  # type: ignore[arg-type]
    return await service.stage_read(stage)


@router.get("/{pipeline_id}/stages/{stage_id}", response_model=PipelineStageRead)
async def get_stage(
    pipeline_id: int,
    stage_id: int,
    stage_repo: StageRepositoryDep,
    service: StageServiceDep,
    _user: CurrentUserDep,
) -> PipelineStageRead:
    """Get a single stage."""
    stage = await _stage_in_pipeline(stage_repo, pipeline_id, stage_id)
    return await service.stage_read(stage)


@router.put("/{pipeline_id}/stages/{stage_id}", response_model=PipelineStageRead)
async def update_stage(
    pipeline_id: int,
    stage_id: int,
    data: StageUpdate,
    stage_repo: StageRepositoryDep,
    service: StageServiceDep,
    _user: CurrentUserDep,
) -> PipelineStageRead:
    """Update a stage's name, action, device flag or target."""
    stage = await _stage_in_pipeline(stage_repo, pipeline_id, stage_id)
    stage = await service.update_pipeline_stage(stage, data)
    return await service.stage_read(stage)


@router.delete("/{pipeline_id}/stages/{stage_id}")
async def delete_stage(
    pipeline_id: int,
    stage_id: int,
    stage_repo: StageRepositoryDep,
    service: StageServiceDep,
    audit: AuditLoggerDep,
    user: CurrentUserDep,
) -> dict[str, str]:
    """Delete a stage and bridge the chain around it."""
    stage = await _stage_in_pipeline(stage_repo, pipeline_id, stage_id)
    await service.delete_pipeline_stage(stage)
    await audit.pipeline_stage_deleted(user, None, pipeline_id, stage_id)
    return {"status": "okay"}


@router.put("/{pipeline_id}/stages/{stage_id}/deploy")
async def deploy_stage(
    pipeline_id: int,
    stage_id: int,
    background_tasks: BackgroundTasks,
    repo: PipelineRepositoryDep,
    service: DeployServiceDep,
    dispatcher: DispatcherDep,
    runtime: RuntimeDep,
    user: CurrentUserDep,
    data: DeployRequest | None = None,
) -> dict[str, str]:
    """Deploy from a stage to the stage it points at."""
    pipeline = await repo.get(pipeline_id)
    source_snapshot_id = data.source_snapshot_id if data else None
    outcome = await service.deploy_stage(pipeline, stage_id, user, source_snapshot_id)
    if outcome.job is not None:
        background_tasks.add_task(execute_instance_deploy_job, outcome.job, dispatcher, runtime)
    return {"status": outcome.status}
