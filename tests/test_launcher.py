"""Tests for the instance launcher client."""

import json
from uuid import uuid4

import httpx
import pytest

from snapline.exceptions.domain import LauncherConnectionError, LauncherError
from snapline.models import Instance
from snapline.services.launcher import LauncherClient


def _client_with(handler) -> LauncherClient:
    client = LauncherClient(timeout=1.0)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.fixture
def instance() -> Instance:
    return Instance(id=uuid4(), name="prod", url="http://prod.local:2880/")


class TestLauncherClient:
    @pytest.mark.asyncio
    async def test_restart_posts_command(self, instance):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async with _client_with(handler) as client:
            await client.restart_flows(instance)

        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == "http://prod.local:2880/flowforge/command"
        assert json.loads(request.content) == {"cmd": "restart"}

    @pytest.mark.asyncio
    async def test_rejected_command(self, instance):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, text="busy")

        async with _client_with(handler) as client:
            with pytest.raises(LauncherError, match="busy"):
                await client.send_command(instance, "restart")

    @pytest.mark.asyncio
    async def test_unreachable_launcher(self, instance):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client_with(handler) as client:
            with pytest.raises(LauncherConnectionError):
                await client.restart_flows(instance)

    @pytest.mark.asyncio
    async def test_timeout(self, instance):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        async with _client_with(handler) as client:
            with pytest.raises(LauncherConnectionError, match="timed out"):
                await client.restart_flows(instance)

    @pytest.mark.asyncio
    async def test_instance_without_url(self):
        async with _client_with(lambda request: httpx.Response(200)) as client:
            with pytest.raises(LauncherError, match="no launcher URL"):
                await client.restart_flows(Instance(id=uuid4(), name="bare"))
