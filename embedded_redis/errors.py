"""Exceptions raised by the Redis instance supervisor."""

from __future__ import annotations


class SupervisorError(Exception):
    """Base class for every failure surfaced by ``RedisInstance``."""


class AlreadyRunning(SupervisorError):
    """``start()`` was called on an instance that is already active."""


class ProcessSpawnFailure(SupervisorError):
    """The operating system refused to create the child process."""


class ReadinessTimeout(SupervisorError):
    """The readiness stream ended before the ready marker was seen.

    ``exit_code`` is the child's exit status when it had already exited,
    ``output`` holds the most recent diagnostic (stderr) text.
    """

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output

    def __str__(self) -> str:
        text = super().__str__()
        if self.exit_code is not None:
            text += f" (exit code {self.exit_code})"
        if self.output:
            text += f"\n--- recent stderr ---\n{self.output}"
        return text


class ShutdownInterrupted(SupervisorError):
    """Waiting for the child to exit during ``stop()`` was cancelled."""
