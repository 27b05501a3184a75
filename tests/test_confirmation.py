"""Tests for ConfirmationWaiter."""

from __future__ import annotations

import anyio
import pytest

from cardreader.confirmation import ConfirmationWaiter
from cardreader.errors import ConfirmationTimeout, WriteConfirmationTimeout

from conftest import wait_for

pytestmark = pytest.mark.anyio


class TestFeed:
    """Tests for ConfirmationWaiter.feed outside of a wait."""

    async def test_nothing_armed(self) -> None:
        waiter = ConfirmationWaiter()
        assert waiter.pending is None
        assert waiter.feed("WRITE:OK") is False


class TestConfirm:
    """Tests for ConfirmationWaiter.confirm."""

    async def test_reply_during_send_is_not_missed(self) -> None:
        waiter = ConfirmationWaiter()
        results = []
        await waiter.confirm("STATE=READ", 0.5, send=lambda: results.append(waiter.feed("STATE=READ")))
        assert results == [True]
        assert waiter.pending is None

    async def test_resolves_on_later_line(self) -> None:
        waiter = ConfirmationWaiter()
        async with anyio.create_task_group() as tg:
            tg.start_soon(waiter.confirm, "WRITE:OK", 1.0)
            await wait_for(lambda: waiter.pending == "WRITE:OK")
            assert waiter.feed("SCAN:1234") is False
            assert waiter.feed("WRITE:OK") is True
        assert waiter.pending is None

    async def test_timeout_raises_with_reason(self) -> None:
        waiter = ConfirmationWaiter()
        with pytest.raises(ConfirmationTimeout) as exc_info:
            await waiter.confirm("WRITE:OK", 0.05, reason="Write timed out.")
        assert str(exc_info.value) == "Write timed out."
        assert exc_info.value.expected == "WRITE:OK"
        assert exc_info.value.timeout == 0.05
        assert waiter.pending is None

    async def test_prefix_is_not_a_match(self) -> None:
        waiter = ConfirmationWaiter()
        with pytest.raises(ConfirmationTimeout):
            await waiter.confirm("WRITE:OK", 0.05, send=lambda: waiter.feed("WRITE:OK!"))

    async def test_custom_error_type(self) -> None:
        waiter = ConfirmationWaiter()
        with pytest.raises(WriteConfirmationTimeout):
            await waiter.confirm("WRITE:OK", 0.01, error=WriteConfirmationTimeout)

    async def test_late_line_after_timeout_is_ignored(self) -> None:
        waiter = ConfirmationWaiter()
        with pytest.raises(ConfirmationTimeout):
            await waiter.confirm("STATE=STOP", 0.01)
        assert waiter.feed("STATE=STOP") is False

    async def test_overlapping_waits_are_queued_in_order(self) -> None:
        waiter = ConfirmationWaiter()
        sent = []
        async with anyio.create_task_group() as tg:
            tg.start_soon(waiter.confirm, "A", 1.0, lambda: sent.append("a"))
            await wait_for(lambda: waiter.pending == "A")
            tg.start_soon(waiter.confirm, "B", 1.0, lambda: sent.append("b"))
            await anyio.sleep(0.01)

            # B is not sent or armed while A is outstanding
            assert sent == ["a"]
            assert waiter.feed("B") is False

            assert waiter.feed("A") is True
            await wait_for(lambda: waiter.pending == "B")
            assert sent == ["a", "b"]
            assert waiter.feed("B") is True
