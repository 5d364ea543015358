"""Redis instance supervisor — starts one server process, waits until it is
ready, keeps its stderr drained and stops it again."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path

from embedded_redis.drain import OutputDrain, RingBuffer, logging_sink
from embedded_redis.errors import (
    AlreadyRunning,
    ProcessSpawnFailure,
    ReadinessTimeout,
    ShutdownInterrupted,
)
from embedded_redis.models import InstanceInfo, InstanceStatus
from embedded_redis.pipes import ChildPipe, PipeReader
from embedded_redis.readiness import LineSource, LogFileLineSource, scan_for_marker, wait_for_log_file

log = logging.getLogger(__name__)

# How long a process that never became ready gets to exit after SIGTERM.
ABANDON_KILL_TIMEOUT = 10.0


class RedisInstance(ABC):
    """Lifecycle of a single supervised server process.

    ``idle -> starting -> active -> stopping -> idle``, with ``failed`` as the
    exit from ``starting`` when the ready marker never shows up. ``start()``
    and ``stop()`` are serialised by a per-instance lock; ``is_active()`` and
    ``ports()`` never wait on it.

    Subclasses supply ``ready_pattern``, the regex searched for in each line
    of the readiness source (stdout, or ``logfile`` when one is given).
    """

    def __init__(
        self,
        args: Sequence[str],
        ports: Sequence[int],
        logfile: str | Path | None = None,
        *,
        name: str | None = None,
        log_poll_interval: float = 1.0,
        tail_poll_interval: float = 0.1,
        drain_join_timeout: float = 5.0,
        sink: Callable[[str], None] | None = None,
        output_lines: int = 2000,
    ) -> None:
        if not args:
            raise ValueError("args must start with the server executable")
        command = [str(a) for a in args]
        # A path-like executable must not be resolved against the child's cwd.
        if os.sep in command[0]:
            command[0] = str(Path(command[0]).absolute())
        self._args = command
        self._ports = [int(p) for p in ports]
        self._logfile = Path(logfile) if logfile is not None else None
        self.name = name or Path(command[0]).name

        self._log_poll_interval = log_poll_interval
        self._tail_poll_interval = tail_poll_interval
        self._drain_join_timeout = drain_join_timeout
        self._sink = sink or logging_sink(self.name)
        self.stderr_buf = RingBuffer(max_lines=output_lines)

        self._lock = asyncio.Lock()
        self._active = False
        self._status = InstanceStatus.IDLE
        self._process: asyncio.subprocess.Process | None = None
        self._drain: OutputDrain | None = None
        self._exit_code: int | None = None
        self._start_time: float | None = None
        self._stop_time: float | None = None

    @property
    @abstractmethod
    def ready_pattern(self) -> re.Pattern[str]:
        ...

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_active(self) -> bool:
        return self._active

    def ports(self) -> list[int]:
        return list(self._ports)

    @property
    def command(self) -> list[str]:
        return list(self._args)

    @property
    def cwd(self) -> str:
        return str(Path(self._args[0]).parent)

    @property
    def logfile(self) -> Path | None:
        return self._logfile

    @property
    def status(self) -> InstanceStatus:
        return self._status

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def exit_code(self) -> int | None:
        """Exit status of the last process this instance reaped."""
        return self._exit_code

    def output(self, tail: int = 50) -> str:
        """Most recent stderr lines of the current (or last) process."""
        return self.stderr_buf.tail(tail)

    def describe(self) -> InstanceInfo:
        uptime = None
        if self._status == InstanceStatus.ACTIVE and self._start_time:
            uptime = round(time.time() - self._start_time, 1)
        elif self._start_time and self._stop_time:
            uptime = round(self._stop_time - self._start_time, 1)
        return InstanceInfo(
            name=self.name,
            command=self.command,
            cwd=self.cwd,
            ports=self.ports(),
            status=self._status,
            pid=self.pid,
            exit_code=self._exit_code,
            start_time=self._start_time,
            stop_time=self._stop_time,
            uptime_seconds=uptime,
            logfile=str(self._logfile) if self._logfile else None,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the server and return once it printed its ready marker.

        Raises AlreadyRunning, ProcessSpawnFailure or ReadinessTimeout. A
        process that never became ready is terminated before the error is
        raised.
        """
        async with self._lock:
            if self._active:
                raise AlreadyRunning(
                    f"Redis instance '{self.name}' is already running (pid={self.pid})"
                )
            self._status = InstanceStatus.STARTING
            self.stderr_buf.clear()
            self._exit_code = None
            self._stop_time = None

            try:
                process, stdout = await self._spawn()
            except ProcessSpawnFailure:
                self._status = InstanceStatus.IDLE
                raise

            self._process = process
            self._start_time = time.time()
            log.info("Started %s (pid=%s), waiting for readiness", self.name, process.pid)

            try:
                ready_line = await self._await_ready(process, stdout)
            except asyncio.CancelledError:
                log.warning("%s: start cancelled, killing pid %s", self.name, process.pid)
                await asyncio.shield(self._abandon(process, signal.SIGKILL))
                raise
            except Exception as exc:
                log.error("%s: reading its output failed: %s", self.name, exc)
                await self._abandon(process)
                raise ReadinessTimeout(
                    f"Can't start {self.name}: reading its output failed: {exc}",
                    exit_code=self._exit_code,
                    output=self.output(20),
                ) from exc

            if ready_line is None:
                await self._abandon(process)
                raise ReadinessTimeout(
                    f"Can't start {self.name}: output ended before it was ready",
                    exit_code=self._exit_code,
                    output=self.output(20),
                )

            self._active = True
            self._status = InstanceStatus.ACTIVE
            log.info("%s is ready on port(s) %s", self.name, self._ports)

    async def stop(self, *, force: bool = False, timeout: float | None = None) -> None:
        """Terminate the server and wait until it has exited.

        Does nothing unless the instance is active. ``force`` sends SIGKILL
        straight away; with ``timeout`` SIGTERM escalates to SIGKILL once it
        expires. Without one, the wait is unbounded.
        """
        async with self._lock:
            if not self._active:
                return
            process = self._process
            if process is None:
                log.warning("%s: marked active without a process, resetting", self.name)
                self._active = False
                self._status = InstanceStatus.IDLE
                return
            self._status = InstanceStatus.STOPPING

            if self._drain is not None and self._drain.running:
                self._drain.request_stop()

            log.info("Stopping %s (pid=%s)", self.name, process.pid)
            _signal_group(process, signal.SIGKILL if force else signal.SIGTERM)
            try:
                exit_code = await self._wait_for_exit(process, timeout)
            except asyncio.CancelledError as exc:
                raise ShutdownInterrupted(
                    f"Interrupted while waiting for {self.name} (pid={process.pid}) to exit"
                ) from exc

            if self._drain is not None:
                await self._drain.join(self._drain_join_timeout)
                self._drain = None

            self._exit_code = exit_code
            self._stop_time = time.time()
            self._process = None
            self._active = False
            self._status = InstanceStatus.IDLE
            log.info("%s stopped (exit code %s)", self.name, exit_code)

    async def __aenter__(self) -> RedisInstance:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _spawn(self) -> tuple[asyncio.subprocess.Process, PipeReader | None]:
        """Create the process, start draining its stderr, return its stdout reader."""
        err_pipe = ChildPipe.create()
        out_pipe = ChildPipe.create() if self._logfile is None else None
        try:
            process = await asyncio.create_subprocess_exec(
                *self._args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=out_pipe.write_fd if out_pipe else asyncio.subprocess.DEVNULL,
                stderr=err_pipe.write_fd,
                cwd=self.cwd,
                # Own process group so the whole tree can be signalled.
                start_new_session=True,
            )
        except OSError as exc:
            err_pipe.discard()
            if out_pipe is not None:
                out_pipe.discard()
            raise ProcessSpawnFailure(f"Failed to start {self.name}: {exc}") from exc

        err_pipe.close_write_end()
        if out_pipe is not None:
            out_pipe.close_write_end()

        stderr = await err_pipe.open_reader(f"{self.name}-stderr")
        self._drain = OutputDrain(stderr, self._on_stderr_line, name=self.name)
        self._drain.start()

        stdout = await out_pipe.open_reader(f"{self.name}-stdout") if out_pipe else None
        return process, stdout

    def _on_stderr_line(self, line: str) -> None:
        self.stderr_buf.append(line)
        self._sink(line)

    async def _await_ready(
        self,
        process: asyncio.subprocess.Process,
        stdout: PipeReader | None,
    ) -> str | None:
        source: LineSource
        if self._logfile is not None:
            await wait_for_log_file(self._logfile, self._log_poll_interval)
            source = LogFileLineSource(
                self._logfile,
                child_exited=lambda: process.returncode is not None,
                poll_interval=self._tail_poll_interval,
            )
        elif stdout is not None:
            source = stdout
        else:
            log.error("%s: no stdout pipe to read the ready marker from", self.name)
            return None

        try:
            return await scan_for_marker(source, self.ready_pattern, name=self.name)
        finally:
            source.close()

    async def _abandon(
        self,
        process: asyncio.subprocess.Process,
        sig: signal.Signals = signal.SIGTERM,
    ) -> None:
        """Reap a process that never became ready and keep its stderr."""
        if process.returncode is None:
            log.warning(
                "%s: sending %s to pid %s, it never became ready",
                self.name, sig.name, process.pid,
            )
            _signal_group(process, sig)
        self._exit_code = await self._wait_for_exit(process, ABANDON_KILL_TIMEOUT)
        if self._drain is not None:
            await self._drain.join(self._drain_join_timeout)
            self._drain = None
        self._process = None
        self._stop_time = time.time()
        self._status = InstanceStatus.FAILED

    async def _wait_for_exit(
        self,
        process: asyncio.subprocess.Process,
        timeout: float | None,
    ) -> int:
        if timeout is None:
            return await process.wait()
        try:
            return await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning(
                "%s (pid=%s) did not exit within %.1fs, sending SIGKILL",
                self.name, process.pid, timeout,
            )
            _signal_group(process, signal.SIGKILL)
            return await process.wait()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, ports={self._ports}, "
            f"status={self._status.value})"
        )


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the child's process group, ignoring a child that is already gone."""
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, sig)
    except (ProcessLookupError, PermissionError):
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass
