"""Output drain: keeps a child's stderr pipe empty for its whole lifetime."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from embedded_redis.pipes import PipeReader

log = logging.getLogger(__name__)

# Child stderr lines are logged here so callers can route them separately.
child_log = logging.getLogger("embedded_redis.child")


@dataclass
class RingBuffer:
    """Bounded buffer of the most recent output lines, tracked by sequence number."""

    max_lines: int = 2000
    _lines: deque[str] = field(init=False, repr=False)
    _seq: int = 0  # monotonic, one per appended line

    def __post_init__(self) -> None:
        self._lines = deque(maxlen=self.max_lines)

    def append(self, line: str) -> None:
        self._lines.append(line)
        self._seq += 1

    @property
    def seq(self) -> int:
        return self._seq

    def tail(self, num_lines: int = 50) -> str:
        """Return the last ``num_lines`` lines joined by newlines."""
        if num_lines <= 0:
            return ""
        lines = list(self._lines)[-num_lines:]
        return "\n".join(lines)

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)


class OutputDrain:
    """Reads a child's diagnostic stream line by line until it ends.

    Each line is passed to ``sink``. The drain stops at end of data, on a
    read error (logged, never raised) or when its task is cancelled.
    ``request_stop()`` only marks the child as shutting down: the pipe keeps
    being read until the child closes it, so output written while exiting
    is kept. Whatever the reason, the underlying pipe is closed exactly once.
    """

    def __init__(
        self,
        source: PipeReader,
        sink: Callable[[str], None],
        *,
        name: str = "redis",
    ) -> None:
        self._source = source
        self._sink = sink
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._stop_requested = False
        self.lines_read = 0

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"Drain for '{self._name}' was already started")
        self._task = asyncio.create_task(self._run(), name=f"{self._name}-stderr-drain")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Mark the child as shutting down. Reading continues until end of data."""
        self._stop_requested = True

    async def join(self, timeout: float | None = None) -> None:
        """Wait for the drain to finish, cancelling it after ``timeout`` seconds."""
        task = self._task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            log.warning(
                "%s: stderr drain still blocked after %.1fs, cancelling",
                self._name, timeout,
            )
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    async def _run(self) -> None:
        try:
            while True:
                line = await self._source.readline()
                if line is None:
                    break
                self.lines_read += 1
                self._sink(line)
        except (OSError, ValueError) as exc:
            level = logging.DEBUG if self._stop_requested else logging.WARNING
            log.log(level, "%s: stderr drain stopped on read error: %s", self._name, exc)
        except Exception:
            log.exception("%s: stderr sink failed, draining stopped", self._name)
        finally:
            self._source.close()
            log.debug("%s: stderr drain finished after %d line(s)", self._name, self.lines_read)


def logging_sink(name: str) -> Callable[[str], None]:
    """Default drain sink: log each line on the ``embedded_redis.child`` logger."""

    def sink(line: str) -> None:
        child_log.info("[%s] %s", name, line)

    return sink
