"""
Service layer for snapshot lifecycle and transfer.

Snapshots are captured from an instance's live state, exported to a portable
form re-encrypted for a destination secret, uploaded to an instance or a
device, copied between owners and applied back to an instance.
"""

from datetime import UTC, datetime
from typing import Any, TypeAlias

from snapline.exceptions.domain import InvalidSnapshotOwnerError, MissingCredentialSecretError
from snapline.models import (
    Device,
    DeviceOwner,
    Instance,
    InstanceOwner,
    Pipeline,
    PipelineStage,
    Snapshot,
    SnapshotPayload,
    User,
)
from snapline.repositories.device_repository import DeviceRepository
from snapline.repositories.instance_repository import InstanceRepository
from snapline.repositories.snapshot_repository import SnapshotRepository
from snapline.services.credentials import (
    CredentialCipher,
    EncryptedCredentials,
    credential_cipher,
    parse_credentials,
    to_json,
)
from snapline.services.device_service import DeviceService
from snapline.services.environment import (
    env_list_to_map,
    env_map_to_list,
    instance_platform_env,
    strip_platform_env,
    strip_settings_env,
    with_platform_env,
)
from snapline.utils.logger import logger

SnapshotOwnerEntity: TypeAlias = Instance | Device


def generate_deploy_snapshot_name(source_snapshot: Snapshot | None = None) -> str:
    """Name for a snapshot created by a pipeline deploy."""
    name = f"Deploy Snapshot - {datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S')}"
    if source_snapshot is not None:
        name = f"{name} - {source_snapshot.name}"
    return name


def generate_deploy_snapshot_description(
    source_stage: PipelineStage,
    target_stage: PipelineStage,
    pipeline: Pipeline,
    source_snapshot: Snapshot | None = None,
) -> str:
    """Description for a snapshot created by a pipeline deploy."""
    description = (
        f"Snapshot created for pipeline deployment from {source_stage.name} "
        f"to {target_stage.name} as part of pipeline {pipeline.name}"
    )
    if source_snapshot is not None and source_snapshot.description:
        description = f"{description}\n\n{source_snapshot.description}"
    return description


def snapshot_to_json(snapshot: Snapshot) -> dict[str, Any]:
    """Full portable representation of a stored snapshot."""
    settings = snapshot.settings or {}
    flows = snapshot.flows or {}
    return {
        "id": snapshot.id,
        "name": snapshot.name,
        "description": snapshot.description,
        "owner_type": snapshot.owner_type.value,
        "user_id": str(snapshot.user_id) if snapshot.user_id else None,
        "created_at": snapshot.created_at.isoformat(),
        "flows": {
            "flows": list(flows.get("flows") or []),
            "credentials": flows.get("credentials"),
        },
        "settings": {
            "settings": dict(settings.get("settings") or {}),
            "env": dict(settings.get("env") or {}),
            "modules": dict(settings.get("modules") or {}),
        },
    }


def owns(owner: SnapshotOwnerEntity | None, snapshot: Snapshot) -> bool:
    """Whether ``owner`` is the entity recorded as the snapshot's owner."""
    match snapshot.owner:
        case InstanceOwner(instance_id=instance_id):
            return isinstance(owner, Instance) and owner.id == instance_id
        case DeviceOwner(device_id=device_id):
            return isinstance(owner, Device) and owner.id == device_id


class SnapshotService:
    """Service for snapshot business logic."""

    def __init__(
        self,
        snapshot_repo: SnapshotRepository,
        instance_repo: InstanceRepository,
        device_repo: DeviceRepository,
        device_service: DeviceService,
        cipher: CredentialCipher | None = None,
    ):
        """Initialize snapshot service.

        Args:
            snapshot_repo: Snapshot repository instance
            instance_repo: Instance repository instance
            device_repo: Device repository instance
            device_service: Device service used to notify devices
            cipher: Credential cipher, defaults to the shared one
        """
        self.snapshot_repo = snapshot_repo
        self.instance_repo = instance_repo
        self.device_repo = device_repo
        self.device_service = device_service
        self.cipher = cipher or credential_cipher

    async def resolve_owner(self, snapshot: Snapshot) -> SnapshotOwnerEntity | None:
        """Load the instance or device owning a snapshot."""
        match snapshot.owner:
            case InstanceOwner(instance_id=instance_id):
                return await self.instance_repo.get_optional(instance_id)
            case DeviceOwner(device_id=device_id):
                return await self.device_repo.get_optional(device_id)

    async def effective_secret(self, snapshot: Snapshot) -> str | None:
        """Secret the snapshot's credentials are encrypted with."""
        if snapshot.credential_secret:
            return snapshot.credential_secret
        owner = await self.resolve_owner(snapshot)
        return owner.credential_secret if owner else None

    async def create_snapshot(
        self,
        instance: Instance,
        user: User,
        name: str,
        description: str = "",
        set_as_target: bool = False,
    ) -> Snapshot:
        """Capture the live state of an instance as a new snapshot.

        Args:
            instance: Instance to capture
            user: User creating the snapshot
            name: Snapshot name
            description: Snapshot description
            set_as_target: Also make it the target of the instance's devices

        Returns:
            Created snapshot
        """
        live = instance.settings or {}
        credentials = self.cipher.reencrypt(
            parse_credentials(instance.credentials),
            instance.credential_secret,
            instance.credential_secret,
        )
        snapshot = Snapshot(
            name=name,
            description=description,
            settings={
                "settings": dict(live.get("settings") or {}),
                "env": env_list_to_map(live.get("env")),
                "modules": dict(live.get("modules") or {}),
            },
            flows={"flows": list(instance.flows or []), "credentials": to_json(credentials)},
            credential_secret=instance.credential_secret,
            instance_id=instance.id,
            user_id=user.id,
        )
        snapshot = await self.snapshot_repo.create(snapshot)
        logger.info(f"Created snapshot {snapshot.id} of instance {instance.id}")

        if set_as_target:
            await self.set_device_target(instance, snapshot)
        return snapshot

    async def export_snapshot(
        self,
        snapshot: Snapshot,
        credential_secret: str | None,
        credentials: dict[str, Any] | None = None,
        owner: SnapshotOwnerEntity | None = None,
    ) -> dict[str, Any] | None:
        """Export a snapshot with credentials re-encrypted for ``credential_secret``.

        Args:
            snapshot: Snapshot to export
            credential_secret: Destination secret; nothing is exported without one
            credentials: Credentials to export instead of the snapshot's own.
                Already encrypted ones are expected to use ``credential_secret``.
            owner: Owner of the snapshot, loaded when omitted

        Returns:
            Portable snapshot, or None when no secret was given or the owner does not match
        """
        if not credential_secret:
            return None

        if owner is None:
            owner = await self.resolve_owner(snapshot)
        if owner is None or not owns(owner, snapshot):
            return None

        result = snapshot_to_json(snapshot)
        result["settings"] = strip_settings_env(result["settings"])

        current_secret = snapshot.credential_secret or owner.credential_secret
        source = parse_credentials(
            credentials if credentials is not None else result["flows"]["credentials"]
        )
        if credentials is not None and isinstance(source, EncryptedCredentials):
            key_to_decrypt = credential_secret
        else:
            key_to_decrypt = current_secret

        result["flows"]["credentials"] = to_json(
            self.cipher.reencrypt(source, key_to_decrypt, credential_secret)
        )
        return result

    async def upload_snapshot(
        self,
        owner: SnapshotOwnerEntity,
        payload: SnapshotPayload,
        credential_secret: str | None,
        user: User,
    ) -> Snapshot:
        """Store an uploaded snapshot against an instance or a device.

        Raises:
            MissingCredentialSecretError: Encrypted credentials were uploaded without a secret
            CredentialDecryptionError: The supplied secret does not decrypt the credentials
            InvalidSnapshotOwnerError: ``owner`` is neither an instance nor a device
        """
        credentials = parse_credentials(payload.flows.credentials)
        if isinstance(credentials, EncryptedCredentials):
            if not credential_secret:
                raise MissingCredentialSecretError()
            # Round trip fails loudly on a wrong secret
            self.cipher.reencrypt(credentials, credential_secret, credential_secret)

        secret = credential_secret or owner.credential_secret
        match owner:
            case Instance():
                owner_ids: dict[str, Any] = {"instance_id": owner.id}
            case Device():
                owner_ids = {"device_id": owner.id}
            case _:
                raise InvalidSnapshotOwnerError("Invalid owner type")

        stored = (
            credentials
            if isinstance(credentials, EncryptedCredentials)
            else self.cipher.encrypt(credentials.values, secret)
        )
        snapshot = Snapshot(
            name=payload.name,
            description=payload.description or "",
            credential_secret=secret,
            settings={
                "settings": dict(payload.settings.settings),
                "env": strip_platform_env(payload.settings.env),
                "modules": dict(payload.settings.modules),
            },
            flows={"flows": list(payload.flows.flows), "credentials": to_json(stored)},
            user_id=user.id,
            **owner_ids,
        )
        snapshot = await self.snapshot_repo.create(snapshot)
        logger.info(f"Uploaded snapshot {snapshot.id} to {type(owner).__name__.lower()} {owner.id}")
        return snapshot

    async def copy_snapshot(
        self,
        source: Snapshot,
        target: Instance,
        user: User,
        import_snapshot: bool = False,
        set_as_target: bool = False,
        name: str | None = None,
        description: str | None = None,
    ) -> Snapshot:
        """Copy a snapshot into a new snapshot owned by ``target``.

        Credentials are decrypted with the source snapshot's secret and
        re-encrypted with the target instance's secret.

        Args:
            source: Snapshot to copy
            target: Instance owning the copy
            user: User performing the copy
            import_snapshot: Apply the copy to the target's live state
            set_as_target: Make the copy the target of the target's devices
            name: Name of the copy, defaults to the source name
            description: Description of the copy, defaults to the source description

        Raises:
            InvalidSnapshotOwnerError: If the source snapshot's owner cannot be loaded
        """
        owner = await self.resolve_owner(source)
        exported = await self.export_snapshot(source, target.credential_secret, owner=owner)
        if exported is None:
            raise InvalidSnapshotOwnerError(f"Owner of snapshot {source.id} could not be resolved")

        payload = SnapshotPayload(
            name=name or source.name,
            description=description if description is not None else source.description,
            flows=exported["flows"],
            settings=exported["settings"],
        )
        copy = await self.upload_snapshot(target, payload, target.credential_secret, user)

        if import_snapshot:
            await self.apply_to_instance(target, copy)
        if set_as_target:
            await self.set_device_target(target, copy)
        return copy

    async def apply_to_instance(self, instance: Instance, snapshot: Snapshot) -> Instance:
        """Replace the live state of an instance with a snapshot."""
        flows = snapshot.flows or {}
        secret = await self.effective_secret(snapshot)
        credentials = self.cipher.reencrypt(
            parse_credentials(flows.get("credentials")), secret, instance.credential_secret
        )
        stored = snapshot.settings or {}
        live = {
            **(instance.settings or {}),
            "settings": dict(stored.get("settings") or {}),
            "env": env_map_to_list(stored.get("env")),
            "modules": dict(stored.get("modules") or {}),
        }
        instance = await self.instance_repo.replace_live_state(
            instance, list(flows.get("flows") or []), to_json(credentials), live
        )
        logger.info(f"Applied snapshot {snapshot.id} to instance {instance.id}")
        return instance

    @staticmethod
    def get_live_settings(instance: Instance) -> dict[str, Any]:
        """Settings the instance runtime should apply, with platform variables injected."""
        live = instance.settings or {}
        env = with_platform_env(instance_platform_env(instance), live.get("env"))
        return {**live, "env": env}

    async def set_device_target(self, instance: Instance, snapshot: Snapshot) -> int:
        """Make a snapshot the target of every device attached to an instance.

        Returns:
            Number of devices notified
        """
        devices = await self.instance_repo.set_device_target(instance, snapshot.id)
        for device in devices:
            await self.device_service.send_update_command(device)
        return len(devices)

    async def delete_snapshot(self, snapshot: Snapshot) -> bool:
        """Delete a snapshot, clearing device targets that point at it.

        Devices that lose their target are told to run no snapshot. When the
        snapshot was an instance's device target, every device of that
        instance is told.
        """
        retargeted, instances = await self.snapshot_repo.delete_clearing_targets(snapshot)
        notified = 0
        for instance in instances:
            notified += await self.device_service.send_command_to_instance_devices(
                instance, "update", {"snapshot": None}
            )
        covered = {instance.id for instance in instances}
        for device in retargeted:
            if device.instance_id in covered:
                continue
            await self.device_service.dispatcher.send_command(
                device.team_id,
                device.id,  # type: ignore[arg-type]
                "update",
                {"snapshot": None},
            )
            notified += 1
        logger.info(f"Deleted snapshot, told {notified} device(s) to clear their target")
        return True
