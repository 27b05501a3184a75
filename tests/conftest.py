"""Shared fixtures and the in-memory transport used across the test suite."""

from __future__ import annotations

from typing import Callable

import anyio
import pytest

from cardreader.protocol import READY_LINE

DEVICE_REPLIES = {
    "STATE:READ": "STATE=READ",
    "STATE:STOP": "STATE=STOP",
    "WRITE:": "WRITE:OK",
}


class FakeTransport:
    """Scripted card reader: answers commands from a prefix -> reply table."""

    def __init__(self, replies: dict[str, str] | None = None, banner: str | None = READY_LINE) -> None:
        self.replies = dict(DEVICE_REPLIES) if replies is None else replies
        self.banner = banner
        self.written: list[str] = []
        self.opened: int = 0
        self.closed: bool = False
        self._open = False
        self._send, self._recv = anyio.create_memory_object_stream(max_buffer_size=100)

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True
        self.opened += 1
        if self.banner is not None:
            self.inject(self.banner)

    def write(self, data: bytes) -> None:
        text = data.decode("ascii")
        self.written.append(text)
        for prefix, reply in self.replies.items():
            if text.startswith(prefix):
                self.inject(reply)
                break

    def inject(self, line: str) -> None:
        """Deliver a line as if the device had sent it."""
        self._send.send_nowait(line)

    async def read_loop(self, on_line: Callable[[str], None]) -> None:
        async for line in self._recv:
            on_line(line)

    def close(self) -> None:
        self._open = False
        self.closed = True


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to other tasks until ``predicate`` holds."""
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.005)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake() -> FakeTransport:
    return FakeTransport()
