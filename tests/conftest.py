"""Shared fixtures: fake redis-server executables written per test."""

from __future__ import annotations

import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

READY_LINE = "1:M 01 Jan 2025 00:00:00.000 * Ready to accept connections tcp"

# Prints a banner and the ready marker on stdout, then idles until signalled.
READY_SERVER = f"""
import time
print("1:C 01 Jan 2025 00:00:00.000 # oO0OoO0OoO0Oo Redis is starting oO0OoO0OoO0Oo", flush=True)
print("1:M 01 Jan 2025 00:00:00.000 * Server initialized", flush=True)
print({READY_LINE!r}, flush=True)
while True:
    time.sleep(1)
"""


@pytest.fixture
def make_server(tmp_path: Path) -> Callable[..., Path]:
    """Write ``body`` as an executable Python script and return its path.

    The script lives in ``tmp_path / "bin"``, which is also the working
    directory the supervisor gives it.
    """

    def make(body: str, name: str = "redis-server") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(0o755)
        return path

    return make


@pytest.fixture
def ready_server(make_server: Callable[..., Path]) -> Path:
    return make_server(READY_SERVER)
