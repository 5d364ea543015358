from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from embedded_redis.instance import RedisInstance
from embedded_redis.variants import DEFAULT_PORT, DEFAULT_SENTINEL_PORT, RedisSentinel, RedisServer

DEFAULT_CONTROL_PORT = 8902


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


def _path_env(name: str) -> Path | None:
    raw = os.getenv(name, "").strip()
    return Path(raw).expanduser() if raw else None


@dataclass(frozen=True)
class Config:
    redis_executable: Path | None = None
    redis_port: int = DEFAULT_PORT
    redis_logfile: Path | None = None
    sentinel_config: Path | None = None
    control_port: int = DEFAULT_CONTROL_PORT
    stop_timeout: float | None = None
    log_level: str = "INFO"

    def build_instance(self) -> RedisInstance:
        """Create the supervised instance this configuration describes.

        REDIS_SENTINEL_CONFIG switches from a plain server to a sentinel;
        REDIS_PORT is then the sentinel's port.
        """
        if self.sentinel_config is not None:
            return RedisSentinel(
                self.sentinel_config,
                self.redis_port,
                executable=self.redis_executable,
                logfile=self.redis_logfile,
            )
        return RedisServer(
            self.redis_port,
            executable=self.redis_executable,
            logfile=self.redis_logfile,
        )

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        sentinel_config = _path_env("REDIS_SENTINEL_CONFIG")
        default_port = DEFAULT_SENTINEL_PORT if sentinel_config else DEFAULT_PORT

        return cls(
            redis_executable=_path_env("REDIS_EXECUTABLE"),
            redis_port=_int_env("REDIS_PORT", default_port),
            redis_logfile=_path_env("REDIS_LOGFILE"),
            sentinel_config=sentinel_config,
            control_port=_int_env("CONTROL_PORT", DEFAULT_CONTROL_PORT),
            stop_timeout=_float_env("STOP_TIMEOUT"),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
