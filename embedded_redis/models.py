from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any


class InstanceStatus(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    FAILED = "failed"      # readiness was never reached; may be started again


@dataclass
class InstanceInfo:
    """Point-in-time snapshot of a supervised instance."""

    name: str
    command: list[str]
    cwd: str
    ports: list[int]
    status: InstanceStatus
    pid: int | None = None
    exit_code: int | None = None
    start_time: float | None = None
    stop_time: float | None = None
    uptime_seconds: float | None = None
    logfile: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
