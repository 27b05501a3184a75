"""
Confirmation Waiting

Single-slot request/confirmation matching for the card reader protocol.

Every command that needs an answer from the device (state changes, LCD
writes, the initial ready banner) arms one expected literal line, sends the
command and waits for that exact line with a deadline. Only one expectation is
ever armed: callers that overlap are queued on a FIFO lock and served in call
order, the same way the outgoing message queue only services its next entry
once the previous one is acknowledged.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Type

import anyio

from .errors import ConfirmationTimeout

logger = logging.getLogger(__name__)


@dataclass
class PendingConfirmation:
    """The expectation currently armed in the slot."""
    expected: str
    reason: str
    armed_at: float
    event: anyio.Event = field(default_factory=anyio.Event)


class ConfirmationWaiter:
    """
    Matches inbound lines against the one outstanding expectation.

    The read side calls :meth:`feed` for every line; command senders call
    :meth:`confirm`.
    """

    def __init__(self):
        self._slot: Optional[PendingConfirmation] = None
        self._lock = anyio.Lock()

    @property
    def pending(self) -> Optional[str]:
        """Expected literal of the armed confirmation, or None."""
        return self._slot.expected if self._slot else None

    def feed(self, line: str) -> bool:
        """
        Offer an inbound line to the armed confirmation.

        Args:
            line: A complete line received from the device

        Returns:
            True if the line resolved the pending confirmation
        """
        slot = self._slot
        if slot is None or line != slot.expected:
            return False

        self._slot = None
        slot.event.set()
        logger.debug(f"Confirmed '{line}' after {anyio.current_time() - slot.armed_at:.3f}s")
        return True

    async def confirm(
        self,
        expected: str,
        timeout: float,
        send: Optional[Callable[[], None]] = None,
        reason: str = "Timed out.",
        error: Type[ConfirmationTimeout] = ConfirmationTimeout,
    ) -> None:
        """
        Arm an expectation, send the command and wait for the confirmation.

        The expectation is armed before ``send`` runs so a fast reply can not
        slip past us.

        Args:
            expected: Literal line that confirms the command
            timeout: Seconds to wait for it
            send: Callable that writes the command to the transport
            reason: Message carried by the timeout error
            error: Exception type raised on timeout

        Raises:
            ConfirmationTimeout: (or the given subclass) if nothing matched in time
        """
        async with self._lock:
            slot = PendingConfirmation(expected=expected, reason=reason, armed_at=anyio.current_time())
            self._slot = slot
            try:
                if send is not None:
                    send()
                with anyio.move_on_after(timeout):
                    await slot.event.wait()
            finally:
                if self._slot is slot:
                    self._slot = None

            if not slot.event.is_set():
                raise error(reason, expected=expected, timeout=timeout)
