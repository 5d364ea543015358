"""MCP control surface for a supervised Redis instance.

Exposes four MCP tools:
  - start_instance:  Start Redis and wait until it is ready
  - stop_instance:   Stop Redis (SIGTERM, or SIGKILL with force)
  - instance_status: Active flag, PID, ports and uptime
  - get_output:      Recent stderr lines from the Redis process

Can run standalone:
    python -m embedded_redis
"""

from embedded_redis.control.server import create_server

__all__ = ["create_server"]
