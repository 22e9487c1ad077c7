"""
Device command dispatch.

Commands are published to a topic exchange with the routing key
``<team_id>.<device_id>.command``. Delivery is fire-and-forget: devices may
be offline and nothing here waits for an acknowledgement.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

import aio_pika
from aio_pika.exceptions import AMQPException

from snapline.settings import settings
from snapline.utils.logger import logger

if TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractRobustConnection


class DeviceCommandDispatcher(Protocol):
    """Anything able to deliver a command to a device."""

    async def send_command(
        self, team_id: int | None, device_id: int, command: str, payload: dict[str, Any]
    ) -> None: ...


def command_routing_key(team_id: int | None, device_id: int) -> str:
    return f"{team_id}.{device_id}.command"


class AmqpDeviceCommandDispatcher:
    """Publishes device commands to RabbitMQ.

    Args:
        amqp_url: Optional AMQP URL override. Falls back to ``settings.amqp_url``.
        exchange_name: Optional exchange override.
    """

    def __init__(self, amqp_url: str | None = None, exchange_name: str | None = None) -> None:
        self._amqp_url = amqp_url
        self._exchange_name = exchange_name or settings.device_command_exchange
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None

    async def startup(self) -> None:
        """Open a persistent AMQP connection and declare the command exchange."""
        url = self._amqp_url or settings.amqp_url
        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name, aio_pika.ExchangeType.TOPIC, durable=True
        )
        logger.info(f"Device command exchange '{self._exchange_name}' ready")

    async def shutdown(self) -> None:
        """Close the persistent AMQP connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None

    async def send_command(
        self, team_id: int | None, device_id: int, command: str, payload: dict[str, Any]
    ) -> None:
        """Publish one command. Failures are logged, never raised."""
        if self._exchange is None:
            logger.error(
                f"Device command exchange not initialized, dropping '{command}' "
                f"for device {device_id}; was startup() called?"
            )
            return

        routing_key = command_routing_key(team_id, device_id)
        try:
            await self._exchange.publish(
                aio_pika.Message(
                    body=json.dumps({"command": command, **payload}, default=str).encode(),
                    content_type="application/json",
                ),
                routing_key=routing_key,
            )
            logger.debug(f"Sent '{command}' to device {device_id} ({routing_key})")
        except AMQPException as e:
            logger.error(f"Failed to send '{command}' to device {device_id}: {e}")


class NullDeviceCommandDispatcher:
    """Dispatcher used when device commands are disabled."""

    async def send_command(
        self, team_id: int | None, device_id: int, command: str, payload: dict[str, Any]
    ) -> None:
        logger.debug(f"Device commands disabled, skipping '{command}' for device {device_id}")
