"""Service layer for device settings, credentials and commands."""

import hashlib
import json
from typing import Any

from snapline.models import Device, Instance
from snapline.models.base import generate_credential_secret
from snapline.repositories.device_repository import DeviceRepository
from snapline.repositories.instance_repository import InstanceRepository
from snapline.repositories.snapshot_repository import SnapshotRepository
from snapline.services.device_commands import DeviceCommandDispatcher
from snapline.services.environment import (
    EnvList,
    device_platform_env,
    strip_platform_env_list,
    with_platform_env,
)
from snapline.utils.logger import logger


def settings_hash(settings: dict[str, Any]) -> str:
    """Stable hash a device compares to know whether its settings changed."""
    return hashlib.sha256(json.dumps(settings, sort_keys=True).encode("utf-8")).hexdigest()


class DeviceService:
    """Service for device-side operations."""

    def __init__(
        self,
        device_repo: DeviceRepository,
        instance_repo: InstanceRepository,
        snapshot_repo: SnapshotRepository,
        dispatcher: DeviceCommandDispatcher,
    ):
        """Initialize device service.

        Args:
            device_repo: Device repository instance
            instance_repo: Instance repository instance
            snapshot_repo: Snapshot repository instance
            dispatcher: Command dispatcher used to notify devices
        """
        self.device_repo = device_repo
        self.instance_repo = instance_repo
        self.snapshot_repo = snapshot_repo
        self.dispatcher = dispatcher

    async def get_live_settings(self, device: Device) -> dict[str, Any]:
        """Settings the device runtime should apply, with platform variables injected."""
        instance = await self.instance_repo.get_optional(device.instance_id)
        active = await self.snapshot_repo.active_for_device(device)
        env = with_platform_env(
            device_platform_env(device, instance, active), device.settings.get("env")
        )
        return {**device.settings, "env": env}

    async def update_settings(self, device: Device, env: EnvList) -> Device:
        """Replace the device's env, dropping reserved variables, and notify it."""
        device = await self.device_repo.update(
            device, {"settings": {**device.settings, "env": strip_platform_env_list(env)}}
        )
        await self.send_update_command(device)
        return device

    async def refresh_credentials(self, device: Device) -> str:
        """Rotate the device's credential secret and return the new one."""
        secret = generate_credential_secret()
        await self.device_repo.update(device, {"credential_secret": secret})
        logger.info(f"Rotated credential secret of device {device.id}")
        return secret

    async def send_update_command(self, device: Device) -> None:
        """Tell a device to fetch its target snapshot and settings."""
        payload = {
            "snapshot": device.target_snapshot_id,
            "settings": settings_hash(device.settings),
            "project": str(device.instance_id) if device.instance_id else None,
        }
        await self.dispatcher.send_command(device.team_id, device.id, "update", payload)  # type: ignore[arg-type]

    async def send_command_to_instance_devices(
        self, instance: Instance, command: str, payload: dict[str, Any]
    ) -> int:
        """Send one command to every device attached to an instance.

        Returns:
            Number of devices addressed
        """
        devices = await self.instance_repo.get_devices(instance)
        for device in devices:
            await self.dispatcher.send_command(device.team_id, device.id, command, payload)  # type: ignore[arg-type]
        return len(devices)
