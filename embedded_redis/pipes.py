"""OS pipes bridged into asyncio line readers.

The supervisor creates the child's stdout/stderr pipes itself instead of
relying on ``asyncio.subprocess.PIPE`` so that each reader owns its read
transport and can close it independently of the process object.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

# Lines longer than this make readline() raise ValueError.
LINE_LIMIT = 1024 * 1024


@dataclass
class ChildPipe:
    """Both ends of an ``os.pipe()`` destined for one child stream."""

    read_fd: int
    write_fd: int
    _write_closed: bool = field(default=False, repr=False)

    @classmethod
    def create(cls) -> ChildPipe:
        read_fd, write_fd = os.pipe()
        return cls(read_fd=read_fd, write_fd=write_fd)

    def close_write_end(self) -> None:
        """Drop the parent's copy of the write end once the child holds it."""
        if not self._write_closed:
            self._write_closed = True
            os.close(self.write_fd)

    def discard(self) -> None:
        """Close both ends (spawn failed, nobody will read)."""
        self.close_write_end()
        os.close(self.read_fd)

    async def open_reader(self, name: str) -> PipeReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=LINE_LIMIT)
        protocol = asyncio.StreamReaderProtocol(reader)
        pipe = os.fdopen(self.read_fd, "rb", buffering=0)
        try:
            transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
        except Exception:
            pipe.close()
            raise
        return PipeReader(name=name, reader=reader, transport=transport)


@dataclass
class PipeReader:
    """Line reader over the parent's end of a child pipe."""

    name: str
    reader: asyncio.StreamReader
    transport: asyncio.ReadTransport
    _closed: bool = field(default=False, repr=False)

    async def readline(self) -> str | None:
        """Return the next line without its line ending, or None at EOF."""
        raw = await self.reader.readline()
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the read transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self.transport.close()
        except Exception as exc:
            log.debug("Ignoring error while closing %s pipe: %s", self.name, exc)
