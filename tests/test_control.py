"""Tests for the MCP control server."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from embedded_redis.control import create_server
from embedded_redis.variants import RedisServer


@pytest.mark.asyncio
async def test_registers_instance_tools() -> None:
    server = create_server(RedisServer(6379, executable="/opt/redis/bin/redis-server"), port=8999)

    tools = await server.list_tools()

    assert {tool.name for tool in tools} == {
        "start_instance",
        "stop_instance",
        "instance_status",
        "get_output",
    }


def test_server_settings() -> None:
    server = create_server(RedisServer(6379, executable="/opt/redis/bin/redis-server"), port=8999)

    assert server.name == "embedded-redis"
    assert server.settings.port == 8999
    assert server.settings.host == "127.0.0.1"


async def _call(server, name: str, arguments: dict | None = None) -> dict:
    result = await server.call_tool(name, arguments or {})
    # Newer SDKs return (content, structured_output).
    if isinstance(result, tuple):
        result = result[0]
    return json.loads(result[0].text)


@pytest.mark.asyncio
async def test_instance_status_tool() -> None:
    instance = RedisServer(6390, executable="/opt/redis/bin/redis-server")
    server = create_server(instance)

    status = await _call(server, "instance_status")

    assert status["active"] is False
    assert status["status"] == "idle"
    assert status["ports"] == [6390]


@pytest.mark.asyncio
async def test_start_failure_is_reported(tmp_path: Path) -> None:
    instance = RedisServer(6391, executable=tmp_path / "missing" / "redis-server")
    server = create_server(instance)

    result = await _call(server, "start_instance")

    assert result["status"] == "error"
    assert "Failed to start" in result["error"]
    assert instance.is_active() is False


@pytest.mark.asyncio
async def test_start_and_stop_tools(ready_server: Path) -> None:
    instance = RedisServer(6392, executable=ready_server)
    server = create_server(instance, stop_timeout=5)

    started = await _call(server, "start_instance")
    try:
        assert started["status"] == "active"
        again = await _call(server, "start_instance")
        assert again["status"] == "already_running"
    finally:
        stopped = await _call(server, "stop_instance")

    assert stopped["status"] == "idle"
    assert instance.is_active() is False
