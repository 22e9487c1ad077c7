"""
Common dependencies for Snapline API endpoints.

This module wires repositories and services onto the request session and
exposes them as ``Annotated`` dependency aliases.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from snapline.api.security import TokenData, decode_token
from snapline.exceptions import UNAUTHORIZED
from snapline.models import User
from snapline.repositories import (
    AuditLogRepository,
    DeviceRepository,
    InstanceRepository,
    PipelineRepository,
    PipelineStageRepository,
    SnapshotRepository,
    TeamRepository,
)
from snapline.services.audit import AuditLogger
from snapline.services.device_commands import DeviceCommandDispatcher
from snapline.services.device_service import DeviceService
from snapline.services.launcher import InstanceRuntime
from snapline.services.pipeline import PipelineDeployService, PipelineStageService
from snapline.services.snapshot_service import SnapshotService
from snapline.utils.database import get_async_session

SessionDep = Annotated[AsyncSession, Depends(get_async_session)]


async def get_current_user(
    payload: Annotated[TokenData, Depends(decode_token)], session: SessionDep
) -> User:
    """
    Get the current authenticated user from the bearer token.

    Raises:
        HTTPException: If the user no longer exists
    """
    user = await session.get(User, payload.sub)
    if not user:
        raise UNAUTHORIZED
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_dispatcher(request: Request) -> DeviceCommandDispatcher:
    """Device command dispatcher created at startup."""
    dispatcher: DeviceCommandDispatcher = request.app.state.device_dispatcher
    return dispatcher


def get_runtime(request: Request) -> InstanceRuntime:
    """Instance runtime client created at startup."""
    runtime: InstanceRuntime = request.app.state.instance_runtime
    return runtime


DispatcherDep = Annotated[DeviceCommandDispatcher, Depends(get_dispatcher)]
RuntimeDep = Annotated[InstanceRuntime, Depends(get_runtime)]


# Repositories


def get_pipeline_repository(session: SessionDep) -> PipelineRepository:
    return PipelineRepository(session)


def get_stage_repository(session: SessionDep) -> PipelineStageRepository:
    return PipelineStageRepository(session)


def get_snapshot_repository(session: SessionDep) -> SnapshotRepository:
    return SnapshotRepository(session)


def get_instance_repository(session: SessionDep) -> InstanceRepository:
    return InstanceRepository(session)


def get_device_repository(session: SessionDep) -> DeviceRepository:
    return DeviceRepository(session)


PipelineRepositoryDep = Annotated[PipelineRepository, Depends(get_pipeline_repository)]
StageRepositoryDep = Annotated[PipelineStageRepository, Depends(get_stage_repository)]
SnapshotRepositoryDep = Annotated[SnapshotRepository, Depends(get_snapshot_repository)]
InstanceRepositoryDep = Annotated[InstanceRepository, Depends(get_instance_repository)]
DeviceRepositoryDep = Annotated[DeviceRepository, Depends(get_device_repository)]


# Services


def get_audit_logger(session: SessionDep) -> AuditLogger:
    return AuditLogger(AuditLogRepository(session))


def get_device_service(
    device_repo: DeviceRepositoryDep,
    instance_repo: InstanceRepositoryDep,
    snapshot_repo: SnapshotRepositoryDep,
    dispatcher: DispatcherDep,
) -> DeviceService:
    return DeviceService(device_repo, instance_repo, snapshot_repo, dispatcher)


DeviceServiceDep = Annotated[DeviceService, Depends(get_device_service)]


def get_snapshot_service(
    snapshot_repo: SnapshotRepositoryDep,
    instance_repo: InstanceRepositoryDep,
    device_repo: DeviceRepositoryDep,
    device_service: DeviceServiceDep,
) -> SnapshotService:
    return SnapshotService(snapshot_repo, instance_repo, device_repo, device_service)


def get_stage_service(
    pipeline_repo: PipelineRepositoryDep,
    stage_repo: StageRepositoryDep,
    instance_repo: InstanceRepositoryDep,
    device_repo: DeviceRepositoryDep,
    session: SessionDep,
) -> PipelineStageService:
    return PipelineStageService(
        pipeline_repo, stage_repo, instance_repo, device_repo, TeamRepository(session)
    )


def get_deploy_service(
    session: SessionDep, dispatcher: DispatcherDep, runtime: RuntimeDep
) -> PipelineDeployService:
    return PipelineDeployService.for_session(session, dispatcher, runtime)


AuditLoggerDep = Annotated[AuditLogger, Depends(get_audit_logger)]
SnapshotServiceDep = Annotated[SnapshotService, Depends(get_snapshot_service)]
StageServiceDep = Annotated[PipelineStageService, Depends(get_stage_service)]
DeployServiceDep = Annotated[PipelineDeployService, Depends(get_deploy_service)]
