"""Shared test fixtures for the shellrelay test suite.

Provides a real ``/bin/sh`` backed Service, an in-memory stream pair for
driving the connection handler, and the shutdown event.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Callable

import pytest

from shellrelay.endpoint.service import Service


# ---------------------------------------------------------------------------
# In-memory streams
# ---------------------------------------------------------------------------


class FakeWriter:
    """Collects everything the handler writes to the client."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.buffer = bytearray()
        self.closed = False
        self._fail_after = fail_after
        self._writes = 0

    def write(self, data: bytes) -> None:
        self._writes += 1
        if self._fail_after is not None and self._writes > self._fail_after:
            raise ConnectionResetError("connection reset by peer")
        self.buffer.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    def get_extra_info(self, name: str, default: object = None) -> object:
        if name == "peername":
            return ("127.0.0.1", 40000)
        return default

    @property
    def text(self) -> str:
        return self.buffer.decode()


def make_reader(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    """A StreamReader pre-fed with ``data``. Must be called inside a loop."""
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


# ---------------------------------------------------------------------------
# Service Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sh_path() -> str:
    """Absolute path of a POSIX shell, skipping when none is available."""
    if os.path.exists("/bin/sh"):
        return "/bin/sh"
    path = shutil.which("sh")
    if path is None:
        pytest.skip("no POSIX shell available")
    return path


@pytest.fixture
def spool_dir(tmp_path):
    """A private directory for spool files so leftovers can be detected."""
    d = tmp_path / "spool"
    d.mkdir()
    return d


@pytest.fixture
def make_service(sh_path: str, spool_dir) -> Callable[..., Service]:
    """Factory for Services bound to an ephemeral loopback port."""

    def _make(exports: dict[str, str] | None = None, **kwargs: object) -> Service:
        kwargs.setdefault("spool_dir", spool_dir)
        return Service.make(sh_path, "127.0.0.1", 0, exports or {}, **kwargs)

    return _make


@pytest.fixture
def service(make_service: Callable[..., Service]) -> Service:
    """A Service running /bin/sh with a single export."""
    return make_service({"RELAY_TEST": "1"})


@pytest.fixture
def shutdown() -> asyncio.Event:
    return asyncio.Event()
