"""Async HTTP client for the launcher running next to each instance."""

from typing import Protocol

import httpx

from snapline.exceptions.domain import LauncherConnectionError, LauncherError
from snapline.models import Instance
from snapline.settings import settings
from snapline.utils.logger import logger


class InstanceRuntime(Protocol):
    """Runtime operations the deploy orchestrator needs from an instance."""

    async def restart_flows(self, instance: Instance) -> None: ...


class LauncherClient:
    """Sends commands to ``POST {instance.url}/flowforge/command``.

    Args:
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._client = httpx.AsyncClient(timeout=timeout or settings.launcher_timeout)

    async def send_command(self, instance: Instance, command: str) -> None:
        """POST a launcher command.

        Raises:
            LauncherConnectionError: If the launcher cannot be reached.
            LauncherError: If the instance has no URL or the launcher rejects the command.
        """
        if not instance.url:
            raise LauncherError(f"Instance {instance.id} has no launcher URL")

        url = f"{instance.url.rstrip('/')}/flowforge/command"
        try:
            response = await self._client.post(url, json={"cmd": command})
        except httpx.ConnectError as e:
            raise LauncherConnectionError(f"Cannot connect to launcher at {instance.url}") from e
        except httpx.TimeoutException as e:
            raise LauncherConnectionError(f"Launcher at {instance.url} timed out") from e

        if response.status_code != 200:
            logger.error(f"Launcher error: {response.status_code} - {response.text}")
            raise LauncherError(f"Launcher command '{command}' failed: {response.text}")

    async def restart_flows(self, instance: Instance) -> None:
        """Restart the Node-RED flows of an instance."""
        logger.info(f"Restarting flows of instance {instance.id}")
        await self.send_command(instance, "restart")

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "LauncherClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
