"""MCP server exposing the supervised Redis instance over HTTP."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from embedded_redis.config import DEFAULT_CONTROL_PORT
from embedded_redis.errors import AlreadyRunning, SupervisorError
from embedded_redis.instance import RedisInstance


def create_server(
    instance: RedisInstance,
    port: int = DEFAULT_CONTROL_PORT,
    stop_timeout: float | None = None,
) -> FastMCP:
    """Create the MCP control server for one Redis instance."""

    mcp = FastMCP(
        name="embedded-redis",
        instructions=(
            "Controls a single locally supervised Redis process. "
            "Use instance_status to see whether it is up and which ports it "
            "serves, start_instance / stop_instance to change that, and "
            "get_output to read its recent stderr."
        ),
        host="127.0.0.1",
        port=port,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # Tool: start_instance
    # ------------------------------------------------------------------
    @mcp.tool()
    async def start_instance() -> dict:
        """Start the Redis process and wait until it accepts connections.

        Returns an error entry if the instance is already running, if the
        binary cannot be launched, or if it exits before becoming ready.
        """
        try:
            await instance.start()
        except AlreadyRunning as exc:
            return {"name": instance.name, "status": "already_running", "error": str(exc)}
        except SupervisorError as exc:
            return {"name": instance.name, "status": "error", "error": str(exc)}
        return instance.describe().to_dict()

    # ------------------------------------------------------------------
    # Tool: stop_instance
    # ------------------------------------------------------------------
    @mcp.tool()
    async def stop_instance(force: bool = False) -> dict:
        """Stop the Redis process and wait for it to exit.

        Args:
            force: If True, send SIGKILL instead of SIGTERM.
        """
        try:
            await instance.stop(force=force, timeout=stop_timeout)
        except SupervisorError as exc:
            return {"name": instance.name, "status": "error", "error": str(exc)}
        return instance.describe().to_dict()

    # ------------------------------------------------------------------
    # Tool: instance_status
    # ------------------------------------------------------------------
    @mcp.tool()
    async def instance_status() -> dict:
        """Report whether Redis is active, its PID, ports and uptime."""
        info = instance.describe().to_dict()
        info["active"] = instance.is_active()
        return info

    # ------------------------------------------------------------------
    # Tool: get_output
    # ------------------------------------------------------------------
    @mcp.tool()
    async def get_output(tail: int = 50) -> dict:
        """Get the most recent stderr lines written by the Redis process.

        Args:
            tail: Number of lines to return. Defaults to 50.
        """
        return {
            "name": instance.name,
            "status": instance.status.value,
            "pid": instance.pid,
            "stderr": instance.output(tail),
            "stderr_seq": instance.stderr_buf.seq,
        }

    return mcp
