"""Concrete Redis flavours: how each is launched and how it says it is ready."""

from __future__ import annotations

import re
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from embedded_redis.instance import RedisInstance

DEFAULT_PORT = 6379
DEFAULT_SENTINEL_PORT = 26379

# "The server is now ready to accept connections" (<= 6.x) and
# "Ready to accept connections tcp" (7.x).
REDIS_READY_PATTERN = re.compile(r"ready to accept connections", re.IGNORECASE)
# "Sentinel runid is ..." (<= 5.x) and "Sentinel ID is ..." (6.x+).
SENTINEL_READY_PATTERN = re.compile(r"Sentinel (?:runid|ID) is")


def resolve_executable(explicit: str | Path | None, default_name: str = "redis-server") -> str:
    """Pick the server binary.

    An explicit path wins (made absolute); otherwise ``default_name`` is
    looked up on PATH. When nothing is found the bare name is returned and
    the failure surfaces when the process is spawned.
    """
    if explicit is not None:
        return str(Path(explicit).expanduser().absolute())
    found = shutil.which(default_name)
    return found or default_name


class RedisServer(RedisInstance):
    """A standalone ``redis-server`` listening on one port.

    The ready marker is read from stdout unless ``logfile`` is given, in
    which case Redis is told to log there and the file is scanned instead.
    """

    ready_pattern = REDIS_READY_PATTERN

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        *,
        executable: str | Path | None = None,
        config_file: str | Path | None = None,
        logfile: str | Path | None = None,
        extra_args: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        args = [resolve_executable(executable, "redis-server")]
        if config_file is not None:
            args.append(str(Path(config_file).absolute()))
        args += ["--port", str(port)]
        if logfile is not None:
            logfile = Path(logfile).absolute()
            args += ["--logfile", str(logfile)]
        args.extend(extra_args)
        kwargs.setdefault("name", f"redis-server:{port}")
        super().__init__(args, [port], logfile, **kwargs)


class RedisSentinel(RedisInstance):
    """A Redis Sentinel. Sentinel refuses to run without a writable config file."""

    ready_pattern = SENTINEL_READY_PATTERN

    def __init__(
        self,
        config_file: str | Path,
        port: int = DEFAULT_SENTINEL_PORT,
        *,
        executable: str | Path | None = None,
        logfile: str | Path | None = None,
        extra_args: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        args = [
            resolve_executable(executable, "redis-server"),
            str(Path(config_file).absolute()),
            "--sentinel",
            "--port", str(port),
        ]
        if logfile is not None:
            logfile = Path(logfile).absolute()
            args += ["--logfile", str(logfile)]
        args.extend(extra_args)
        kwargs.setdefault("name", f"redis-sentinel:{port}")
        super().__init__(args, [port], logfile, **kwargs)
