"""
Pipeline deploy orchestrator.

A deploy validates a source stage and its successor, resolves the snapshot
the source stage should promote and pushes it to the target:

* an instance target receives a copy of the snapshot, re-encrypted for the
  instance, which is imported into its live state. This happens in two steps
  connected by an :class:`InstanceDeployJob`: :meth:`begin_instance_deploy`
  marks the instance in flight, :meth:`run_instance_deploy` does the work and
  is normally scheduled in the background.
* a device target is repointed at the snapshot and told to update.
"""

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from snapline.exceptions.domain import (
    InvalidActionError,
    InvalidSourceActionError,
    InvalidSourceDeviceError,
    InvalidSourceInstanceError,
    InvalidSourceSnapshotError,
    InvalidStageError,
    NotFoundError,
    UnexpectedDeployError,
)
from snapline.models import (
    Device,
    Instance,
    InstanceState,
    Pipeline,
    PipelineStage,
    Snapshot,
    SnapshotAction,
    User,
)
from snapline.repositories import (
    AuditLogRepository,
    DeviceRepository,
    InstanceRepository,
    PipelineRepository,
    PipelineStageRepository,
    SnapshotRepository,
    TeamRepository,
    UserRepository,
)
from snapline.services.audit import AuditLogger, UpdatesCollection
from snapline.services.device_commands import DeviceCommandDispatcher
from snapline.services.device_service import DeviceService
from snapline.services.inflight import IMPORTING, InflightStateTracker, inflight_tracker
from snapline.services.launcher import InstanceRuntime
from snapline.services.snapshot_service import (
    SnapshotService,
    generate_deploy_snapshot_description,
    generate_deploy_snapshot_name,
)
from snapline.utils.db_manager import db_manager
from snapline.utils.logger import deploy_logger, logger


@dataclass(frozen=True)
class DeployTargets:
    """Resolved source and target of a stage pair.

    Exactly one of the instance and device fields is set on each side.
    """

    source_instance: Instance | None
    target_instance: Instance | None
    source_device: Device | None
    target_device: Device | None
    source_stage: PipelineStage
    target_stage: PipelineStage


@dataclass(frozen=True)
class DeployMeta:
    """Context used for naming and auditing only."""

    pipeline: Pipeline
    source_stage: PipelineStage
    target_stage: PipelineStage
    user: User
    source_instance: Instance | None = None
    source_device: Device | None = None


@dataclass(frozen=True)
class InstanceDeployJob:
    """Work left to do once an instance has been marked in flight.

    Holds ids only so that it can run in a session other than the one that
    created it.
    """

    target_instance_id: UUID
    source_snapshot_id: int
    user_id: UUID
    deploy_to_devices: bool
    restart_target: bool
    snapshot_name: str
    snapshot_description: str
    source_instance_id: UUID | None = None
    source_device_id: int | None = None


@dataclass(frozen=True)
class DeployOutcome:
    """Result of :meth:`PipelineDeployService.deploy_stage`."""

    status: Literal["importing", "success"]
    source_snapshot: Snapshot
    job: InstanceDeployJob | None = None


def parse_action(stage: PipelineStage) -> SnapshotAction:
    """Stage action as an enum.

    Raises:
        InvalidActionError: If the stored value is not a known action
    """
    try:
        return SnapshotAction(stage.action)
    except ValueError as e:
        raise InvalidActionError(f"Unsupported pipeline deploy action: {stage.action}") from e


class PipelineDeployService:
    """Validates stage pairs and deploys snapshots along a pipeline."""

    def __init__(
        self,
        stage_repo: PipelineStageRepository,
        snapshot_repo: SnapshotRepository,
        instance_repo: InstanceRepository,
        device_repo: DeviceRepository,
        team_repo: TeamRepository,
        user_repo: UserRepository,
        snapshot_service: SnapshotService,
        device_service: DeviceService,
        audit: AuditLogger,
        runtime: InstanceRuntime,
        tracker: InflightStateTracker | None = None,
    ):
        self.stage_repo = stage_repo
        self.snapshot_repo = snapshot_repo
        self.instance_repo = instance_repo
        self.device_repo = device_repo
        self.team_repo = team_repo
        self.user_repo = user_repo
        self.snapshot_service = snapshot_service
        self.device_service = device_service
        self.audit = audit
        self.runtime = runtime
        self.tracker = tracker or inflight_tracker

    @classmethod
    def for_session(
        cls,
        session: AsyncSession,
        dispatcher: DeviceCommandDispatcher,
        runtime: InstanceRuntime,
        tracker: InflightStateTracker | None = None,
    ) -> "PipelineDeployService":
        """Wire a deploy service and its collaborators onto one session."""
        snapshot_repo = SnapshotRepository(session)
        instance_repo = InstanceRepository(session)
        device_repo = DeviceRepository(session)
        device_service = DeviceService(device_repo, instance_repo, snapshot_repo, dispatcher)
        return cls(
            stage_repo=PipelineStageRepository(session),
            snapshot_repo=snapshot_repo,
            instance_repo=instance_repo,
            device_repo=device_repo,
            team_repo=TeamRepository(session),
            user_repo=UserRepository(session),
            snapshot_service=SnapshotService(
                snapshot_repo, instance_repo, device_repo, device_service
            ),
            device_service=device_service,
            audit=AuditLogger(AuditLogRepository(session)),
            runtime=runtime,
            tracker=tracker,
        )

    # Validation

    async def validate_source_stage_for_deploy(
        self, pipeline: Pipeline, source_stage: PipelineStage | None
    ) -> DeployTargets:
        """Resolve the source/target pair of a deploy without mutating anything.

        Checks run in order and the first failure wins.

        Raises:
            NotFoundError: If the source or target stage does not exist
            InvalidStageError: On a pipeline, cardinality or team mismatch
        """
        if source_stage is None:
            raise NotFoundError("Source stage not found")
        if source_stage.pipeline_id != pipeline.id:
            raise InvalidStageError("Source stage must be part of the same pipeline")

        target_stage = await self.stage_repo.get_optional(source_stage.next_stage_id)
        if target_stage is None:
            raise NotFoundError("Target stage not found")
        if target_stage.pipeline_id != source_stage.pipeline_id:
            raise InvalidStageError(
                "Target stage must be part of the same pipeline as source stage"
            )

        source_instances = await self.stage_repo.get_instances(source_stage)
        source_devices = await self.stage_repo.get_devices(source_stage)
        total_sources = len(source_instances) + len(source_devices)
        if total_sources == 0:
            raise InvalidStageError("Source stage must have at least one instance or device")
        if total_sources > 1:
            raise InvalidStageError(
                "Deployments are currently only supported for source stages "
                "with a single instance or device"
            )

        target_instances = await self.stage_repo.get_instances(target_stage)
        target_devices = await self.stage_repo.get_devices(target_stage)
        if len(target_instances) + len(target_devices) == 0:
            raise InvalidStageError("Target stage must have at least one instance or device")
        if len(target_instances) > 1:
            raise InvalidStageError(
                "Deployments are currently only supported for target stages "
                "with a single instance or device"
            )

        source_instance = source_instances[0] if source_instances else None
        target_instance = target_instances[0] if target_instances else None
        source_device = source_devices[0] if source_devices else None
        target_device = target_devices[0] if target_devices else None

        source_kind = "instance" if source_instance else "device"
        target_kind = "instance" if target_instance else "device"
        source_object: Instance | Device = source_instance or source_device  # type: ignore[assignment]
        target_object: Instance | Device = target_instance or target_device  # type: ignore[assignment]

        source_team = await self.team_repo.team_of(source_object)
        if source_team is None:
            raise InvalidStageError(f"Source {source_kind} not associated with a team", 404)
        target_team = await self.team_repo.team_of(target_object)
        if target_team is None:
            raise InvalidStageError(f"Target {target_kind} not associated with a team", 404)
        if source_team.id != target_team.id:
            raise InvalidStageError(
                f"Source {source_kind} and target {target_kind} must be in the same team", 403
            )

        return DeployTargets(
            source_stage=source_stage,
            source_instance=source_instance,
            target_instance=target_instance,
            source_device=source_device,
            target_device=target_device,
            target_stage=target_stage,
        )

    # Source snapshot resolution

    async def _prompted_snapshot(
        self, source_snapshot_id: int | None, owner: Instance | Device
    ) -> Snapshot:
        if source_snapshot_id is None:
            raise InvalidSourceSnapshotError(
                "Source snapshot is required as deploy action is set to prompt for snapshot"
            )
        snapshot = await self.snapshot_repo.get_optional(source_snapshot_id)
        if snapshot is None:
            raise InvalidSourceSnapshotError("Source snapshot not found", 404)

        if isinstance(owner, Instance) and snapshot.instance_id != owner.id:
            raise InvalidSourceSnapshotError("Source snapshot not associated with source instance")
        if isinstance(owner, Device) and snapshot.device_id != owner.id:
            raise InvalidSourceSnapshotError("Source snapshot not associated with source device")
        return snapshot

    async def get_or_create_snapshot_for_source_instance(
        self,
        source_stage: PipelineStage,
        source_instance: Instance,
        source_snapshot_id: int | None,
        meta: DeployMeta,
    ) -> Snapshot:
        """Snapshot an instance-sourced stage promotes, per its action."""
        match parse_action(source_stage):
            case SnapshotAction.USE_LATEST_SNAPSHOT:
                snapshot = await self.snapshot_repo.latest_for_instance(source_instance)
                if snapshot is None:
                    raise InvalidSourceInstanceError(
                        "No snapshots found for source stages instance but deploy action "
                        "is set to use latest snapshot"
                    )
                return snapshot
            case SnapshotAction.CREATE_SNAPSHOT:
                return await self.snapshot_service.create_snapshot(
                    source_instance,
                    meta.user,
                    name=generate_deploy_snapshot_name(),
                    description=generate_deploy_snapshot_description(
                        source_stage, meta.target_stage, meta.pipeline
                    ),
                    set_as_target=False,
                )
            case SnapshotAction.PROMPT:
                return await self._prompted_snapshot(source_snapshot_id, source_instance)
            case SnapshotAction.USE_ACTIVE_SNAPSHOT:
                raise InvalidSourceActionError(
                    "When using an instance as a source, use active snapshot is not supported"
                )

    async def get_or_create_snapshot_for_source_device(
        self,
        source_stage: PipelineStage,
        source_device: Device,
        source_snapshot_id: int | None,
    ) -> Snapshot:
        """Snapshot a device-sourced stage promotes, per its action."""
        match parse_action(source_stage):
            case SnapshotAction.USE_LATEST_SNAPSHOT:
                snapshot = await self.snapshot_repo.latest_for_device(source_device)
                if snapshot is None:
                    raise InvalidSourceDeviceError(
                        "No snapshots found for source stages device but deploy action "
                        "is set to use latest snapshot"
                    )
                return snapshot
            case SnapshotAction.CREATE_SNAPSHOT:
                raise InvalidSourceActionError(
                    "When using a device as a source, create snapshot is not supported"
                )
            case SnapshotAction.PROMPT:
                return await self._prompted_snapshot(source_snapshot_id, source_device)
            case SnapshotAction.USE_ACTIVE_SNAPSHOT:
                snapshot = await self.snapshot_repo.active_for_device(source_device)
                if snapshot is None:
                    raise InvalidSourceDeviceError(
                        "No active snapshot found for source stages device but deploy action "
                        "is set to use active snapshot"
                    )
                return snapshot

    # Deploy to instance

    def begin_instance_deploy(
        self,
        source_snapshot: Snapshot,
        target_instance: Instance,
        deploy_to_devices: bool,
        meta: DeployMeta,
    ) -> InstanceDeployJob:
        """Mark the target instance in flight and describe the remaining work.

        Raises:
            DeployInProgressError: If the instance already has an operation in flight
        """
        self.tracker.mark(target_instance.id, IMPORTING, deploying=True)
        return self._instance_job(source_snapshot, target_instance, deploy_to_devices, meta)

    def _instance_job(
        self,
        source_snapshot: Snapshot,
        target_instance: Instance,
        deploy_to_devices: bool,
        meta: DeployMeta,
    ) -> InstanceDeployJob:
        restart_target = target_instance.state == InstanceState.running
        deploy_logger(pipeline=meta.pipeline.id, instance=target_instance.id).info(
            f"Deploying snapshot {source_snapshot.id} from stage {meta.source_stage.id} "
            f"to stage {meta.target_stage.id}"
        )
        return InstanceDeployJob(
            target_instance_id=target_instance.id,
            source_snapshot_id=source_snapshot.id,  # type: ignore[arg-type]
            user_id=meta.user.id,
            deploy_to_devices=deploy_to_devices,
            restart_target=restart_target,
            snapshot_name=generate_deploy_snapshot_name(source_snapshot),
            snapshot_description=generate_deploy_snapshot_description(
                meta.source_stage, meta.target_stage, meta.pipeline, source_snapshot
            ),
            source_instance_id=meta.source_instance.id if meta.source_instance else None,
            source_device_id=meta.source_device.id if meta.source_device else None,
        )

    async def run_instance_deploy(self, job: InstanceDeployJob) -> Snapshot:
        """Copy, import and restart; always clears the in-flight state.

        Audit events need the target and the acting user. When either no
        longer exists nothing is audited, the markers are cleared and the
        error is raised.

        Raises:
            UnexpectedDeployError: Wrapping whatever failed during the deploy
        """
        log = deploy_logger(instance=job.target_instance_id, snapshot=job.source_snapshot_id)
        try:
            target = await self.instance_repo.get(job.target_instance_id)
            user = await self.user_repo.get(job.user_id)
        except Exception as e:
            log.error(f"Deploy abandoned, target or user not found: {e}")
            self.tracker.clear(job.target_instance_id)
            raise UnexpectedDeployError(f"Error during deploy: {e}") from e
        source_instance = await self.instance_repo.get_optional(job.source_instance_id)
        source_device = await self.device_repo.get_optional(job.source_device_id)

        try:
            source_snapshot = await self.snapshot_repo.get(job.source_snapshot_id)
            target_snapshot = await self.snapshot_service.copy_snapshot(
                source_snapshot,
                target,
                user,
                import_snapshot=True,
                set_as_target=job.deploy_to_devices,
                name=job.snapshot_name,
                description=job.snapshot_description,
            )
            if job.restart_target:
                await self.runtime.restart_flows(target)
        except Exception as e:
            log.error(f"Deploy failed: {e}")
            await self.snapshot_repo.rollback()
            self.tracker.clear(job.target_instance_id)
            for entity in (target, user, source_instance, source_device):
                if entity is not None:
                    await self.snapshot_repo.session.refresh(entity)
            await self.audit.project_imported(user, None, target, source_instance, source_device)
            await self.audit.project_snapshot_imported(
                user, e, target, source_instance, source_device, None
            )
            raise UnexpectedDeployError(f"Error during deploy: {e}") from e

        try:
            await self.audit.project_imported(user, None, target, source_instance, source_device)
            await self.audit.project_snapshot_imported(
                user, None, target, source_instance, source_device, target_snapshot
            )
        except Exception as e:
            log.error(f"Deployed, but audit failed: {e}")
            raise UnexpectedDeployError(f"Error during deploy: {e}") from e
        finally:
            self.tracker.clear(job.target_instance_id)
        log.info(f"Deployed as snapshot {target_snapshot.id}")
        return target_snapshot

    async def deploy_snapshot_to_instance(
        self,
        source_snapshot: Snapshot,
        target_instance: Instance,
        deploy_to_devices: bool,
        meta: DeployMeta,
    ) -> Snapshot:
        """Begin and run an instance deploy inline."""
        job = self.begin_instance_deploy(source_snapshot, target_instance, deploy_to_devices, meta)
        return await self.run_instance_deploy(job)

    # Deploy to device

    async def deploy_snapshot_to_device(
        self, source_snapshot: Snapshot, target_device: Device, user: User
    ) -> Device:
        """Point a device at a snapshot and tell it to update.

        Raises:
            UnexpectedDeployError: Wrapping whatever failed during the deploy
        """
        try:
            original_snapshot_id = target_device.target_snapshot_id
            target_device = await self.device_repo.update(
                target_device, {"target_snapshot_id": source_snapshot.id}
            )

            application = await self.team_repo.get_application_optional(
                target_device.application_id
            )
            await self.audit.application_device_snapshot_device_target_set(
                user, None, application, target_device, source_snapshot
            )

            updates = UpdatesCollection()
            updates.push("targetSnapshotId", original_snapshot_id, target_device.target_snapshot_id)
            team = await self.team_repo.team_of(target_device)
            await self.audit.team_device_updated(user, None, team, target_device, updates)

            updated_device = await self.device_repo.get_with_relations(target_device.id)  # type: ignore[arg-type]
            await self.device_service.send_update_command(updated_device)
        except Exception as e:
            raise UnexpectedDeployError(f"Error during deploy: {e}") from e
        return updated_device

    # Entry point

    async def deploy_stage(
        self,
        pipeline: Pipeline,
        source_stage_id: int,
        user: User,
        source_snapshot_id: int | None = None,
    ) -> DeployOutcome:
        """Deploy from a source stage to the stage it points at.

        An instance target is marked in flight before the source snapshot is
        resolved, so a concurrent deploy to it fails before creating anything.
        Only the marking happens here; the returned outcome carries the job
        to run.

        Raises:
            DeployInProgressError: If the target instance is already in flight
        """
        source_stage = await self.stage_repo.get_optional(source_stage_id)
        targets = await self.validate_source_stage_for_deploy(pipeline, source_stage)
        target_instance = targets.target_instance

        meta = DeployMeta(
            pipeline=pipeline,
            source_stage=targets.source_stage,
            target_stage=targets.target_stage,
            user=user,
            source_instance=targets.source_instance,
            source_device=targets.source_device,
        )
        if target_instance is not None:
            self.tracker.mark(target_instance.id, IMPORTING, deploying=True)
        try:
            source_snapshot = await self._resolve_source_snapshot(
                targets, source_snapshot_id, meta
            )
        except Exception:
            if target_instance is not None:
                self.tracker.clear(target_instance.id)
            raise

        if target_instance is not None:
            job = self._instance_job(
                source_snapshot, target_instance, targets.target_stage.deploy_to_devices, meta
            )
            return DeployOutcome(status="importing", source_snapshot=source_snapshot, job=job)

        await self.deploy_snapshot_to_device(
            source_snapshot,
            targets.target_device,  # type: ignore[arg-type]
            user,
        )
        return DeployOutcome(status="success", source_snapshot=source_snapshot)

    async def _resolve_source_snapshot(
        self, targets: DeployTargets, source_snapshot_id: int | None, meta: DeployMeta
    ) -> Snapshot:
        if targets.source_instance is not None:
            return await self.get_or_create_snapshot_for_source_instance(
                targets.source_stage, targets.source_instance, source_snapshot_id, meta
            )
        return await self.get_or_create_snapshot_for_source_device(
            targets.source_stage,
            targets.source_device,  # type: ignore[arg-type]
            source_snapshot_id,
        )


async def execute_instance_deploy_job(
    job: InstanceDeployJob,
    dispatcher: DeviceCommandDispatcher,
    runtime: InstanceRuntime,
) -> None:
    """Run an instance deploy in its own session, for use as a background task."""
    async with db_manager.get_async_session_context() as session:
        service = PipelineDeployService.for_session(session, dispatcher, runtime)
        try:
            await service.run_instance_deploy(job)
        except UnexpectedDeployError as e:
            logger.error(f"Background deploy to instance {job.target_instance_id} failed: {e}")
