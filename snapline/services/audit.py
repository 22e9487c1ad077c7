"""
Structured audit events.

Events are written as :class:`AuditLogEntry` rows and echoed to the log.
Every method takes the acting user and an optional error first, followed by
the entities the event is about.
"""

from typing import Any

from snapline.models import Application, AuditLogEntry, Device, Instance, Snapshot, Team, User
from snapline.repositories.audit_log_repository import AuditLogRepository
from snapline.utils.logger import logger


class UpdatesCollection:
    """Ordered list of field changes recorded with an update event."""

    def __init__(self) -> None:
        self.updates: list[dict[str, Any]] = []

    def push(self, key: str, old: Any, new: Any) -> None:
        if old != new:
            self.updates.append({"key": key, "old": old, "new": new})

    def __len__(self) -> int:
        return len(self.updates)

    def to_list(self) -> list[dict[str, Any]]:
        return list(self.updates)


def _error_body(error: BaseException) -> dict[str, Any]:
    return {
        "code": getattr(error, "code", "unexpected_error"),
        "error": str(error),
    }


def generate_body(**entities: Any) -> dict[str, Any]:
    """Summarise the entities of an event into a JSON-safe body.

    ``None`` values are kept when the key is ``snapshot`` so that a failed
    import records an explicit null result.
    """
    body: dict[str, Any] = {}
    for key, value in entities.items():
        match value:
            case None if key == "snapshot":
                body[key] = None
            case None:
                continue
            case BaseException():
                body[key] = _error_body(value)
            case UpdatesCollection():
                body[key] = value.to_list()
            case User():
                body[key] = {"id": str(value.id), "email": value.email}
            case Instance() | Device() | Snapshot() | Team() | Application():
                body[key] = {"id": str(value.id), "name": value.name}
            case _:
                body[key] = value
    return body


class AuditLogger:
    """Writes audit events through the audit log repository."""

    def __init__(self, audit_repo: AuditLogRepository):
        self.audit_repo = audit_repo

    async def log(
        self, event: str, entity_type: str, entity_id: object, user: User, body: dict[str, Any]
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            event=event,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            user_id=user.id,
            body=body,
        )
        if "error" in body:
            logger.warning(f"Audit {event} on {entity_type} {entity_id} failed: {body['error']}")
        else:
            logger.info(f"Audit {event} on {entity_type} {entity_id} by {user.email}")
        return await self.audit_repo.create(entry)

    # Project (instance) events

    async def project_imported(
        self,
        user: User,
        error: BaseException | None,
        project: Instance,
        source_project: Instance | None,
        source_device: Device | None,
    ) -> None:
        body = generate_body(
            error=error, project=project, source_project=source_project, source_device=source_device
        )
        await self.log("project.imported", "project", project.id, user, body)

    async def project_snapshot_imported(
        self,
        user: User,
        error: BaseException | None,
        project: Instance,
        source_project: Instance | None,
        source_device: Device | None,
        snapshot: Snapshot | None,
    ) -> None:
        body = generate_body(
            error=error,
            project=project,
            source_project=source_project,
            source_device=source_device,
            snapshot=snapshot,
        )
        await self.log("project.snapshot.imported", "project", project.id, user, body)

    async def project_snapshot_created(
        self, user: User, error: BaseException | None, project: Instance, snapshot: Snapshot
    ) -> None:
        body = generate_body(error=error, project=project, snapshot=snapshot)
        await self.log("project.snapshot.created", "project", project.id, user, body)

    async def project_snapshot_deleted(
        self, user: User, error: BaseException | None, project: Instance, snapshot: Snapshot
    ) -> None:
        body = generate_body(error=error, project=project, snapshot=snapshot)
        await self.log("project.snapshot.deleted", "project", project.id, user, body)

    async def project_snapshot_exported(
        self, user: User, error: BaseException | None, project: Instance, snapshot: Snapshot
    ) -> None:
        body = generate_body(error=error, project=project, snapshot=snapshot)
        await self.log("project.snapshot.exported", "project", project.id, user, body)

    async def project_snapshot_device_target_set(
        self, user: User, error: BaseException | None, project: Instance, snapshot: Snapshot
    ) -> None:
        body = generate_body(error=error, project=project, snapshot=snapshot)
        await self.log("project.snapshot.device-target-set", "project", project.id, user, body)

    # Application events

    async def application_device_snapshot_device_target_set(
        self,
        user: User,
        error: BaseException | None,
        application: Application | None,
        device: Device,
        snapshot: Snapshot,
    ) -> None:
        body = generate_body(error=error, application=application, device=device, snapshot=snapshot)
        entity_id = application.id if application else device.application_id
        await self.log(
            "application.device.snapshot.device-target-set", "application", entity_id, user, body
        )

    async def application_snapshot_uploaded(
        self, user: User, error: BaseException | None, owner: Instance | Device, snapshot: Snapshot
    ) -> None:
        key = "project" if isinstance(owner, Instance) else "device"
        body = generate_body(error=error, snapshot=snapshot, **{key: owner})
        await self.log(
            "application.snapshot.uploaded", "application", owner.application_id, user, body
        )

    # Team events

    async def team_device_updated(
        self,
        user: User,
        error: BaseException | None,
        team: Team | None,
        device: Device,
        updates: UpdatesCollection,
    ) -> None:
        body = generate_body(error=error, team=team, device=device, updates=updates)
        entity_id = team.id if team else device.team_id
        await self.log("team.device.updated", "team", entity_id, user, body)

    # Pipeline events

    async def pipeline_stage_added(
        self, user: User, error: BaseException | None, pipeline_id: int, stage_id: int
    ) -> None:
        body = generate_body(error=error, pipeline_id=pipeline_id, stage_id=stage_id)
        await self.log("pipeline.stage-added", "pipeline", pipeline_id, user, body)

    async def pipeline_stage_deleted(
        self, user: User, error: BaseException | None, pipeline_id: int, stage_id: int
    ) -> None:
        body = generate_body(error=error, pipeline_id=pipeline_id, stage_id=stage_id)
        await self.log("pipeline.stage-deleted", "pipeline", pipeline_id, user, body)
