"""Supervise a Redis server binary as a child process.

Start it, wait until it reports that it accepts connections, keep its
stderr drained while it runs, and stop it again.
"""

from embedded_redis.errors import (
    AlreadyRunning,
    ProcessSpawnFailure,
    ReadinessTimeout,
    ShutdownInterrupted,
    SupervisorError,
)
from embedded_redis.instance import RedisInstance
from embedded_redis.models import InstanceInfo, InstanceStatus
from embedded_redis.variants import RedisSentinel, RedisServer

__all__ = [
    "AlreadyRunning",
    "InstanceInfo",
    "InstanceStatus",
    "ProcessSpawnFailure",
    "ReadinessTimeout",
    "RedisInstance",
    "RedisSentinel",
    "RedisServer",
    "ShutdownInterrupted",
    "SupervisorError",
]
