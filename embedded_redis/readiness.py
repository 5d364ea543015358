"""Readiness detection: where the ready marker is read from, and the scan itself."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO, Protocol

log = logging.getLogger(__name__)


class LineSource(Protocol):
    """Anything that yields text lines until it ends (``None``)."""

    async def readline(self) -> str | None: ...

    def close(self) -> None: ...


class LogFileLineSource:
    """Reads a log file from its first line while the child keeps writing it.

    Reaching the end of the file only ends the stream once the child has
    exited; until then the file is re-polled every ``poll_interval`` seconds.
    The file is opened on the first ``readline()`` and all file I/O runs in a
    worker thread, so a slow disk never stalls the event loop.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        child_exited: Callable[[], bool],
        poll_interval: float = 0.1,
    ) -> None:
        self.path = Path(path)
        self._child_exited = child_exited
        self._poll_interval = poll_interval
        self._partial = b""
        self._file: BinaryIO | None = None

    async def readline(self) -> str | None:
        if self._file is None:
            self._file = await asyncio.to_thread(open, self.path, "rb")
        while True:
            # Sample before reading so output written just before exit is not lost.
            exited = self._child_exited()
            chunk = await asyncio.to_thread(self._file.readline)
            if chunk:
                self._partial += chunk
                if chunk.endswith(b"\n"):
                    return self._take_partial()
                continue
            if exited:
                return self._take_partial() if self._partial else None
            await asyncio.sleep(self._poll_interval)

    def _take_partial(self) -> str:
        raw, self._partial = self._partial, b""
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def close(self) -> None:
        if self._file is not None and not self._file.closed:
            self._file.close()


async def wait_for_log_file(path: str | Path, interval: float = 1.0) -> Path:
    """Poll until ``path`` exists. There is no deadline."""
    target = Path(path)
    attempts = 0
    while not target.exists():
        if attempts % 30 == 0:
            log.info("Waiting for log file %s to appear", target)
        attempts += 1
        await asyncio.sleep(interval)
    if attempts:
        log.debug("Log file %s appeared after %d poll(s)", target, attempts)
    return target


async def scan_for_marker(
    source: LineSource,
    pattern: re.Pattern[str],
    *,
    name: str = "redis",
) -> str | None:
    """Read ``source`` until a line matches ``pattern``.

    Returns the matching line, or None when the source ended first.
    """
    seen = 0
    while True:
        line = await source.readline()
        if line is None:
            log.debug("%s: readiness source ended after %d line(s) without a match", name, seen)
            return None
        seen += 1
        log.debug("%s> %s", name, line)
        if pattern.search(line):
            return line
