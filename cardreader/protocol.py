"""
Card Reader Protocol Implementation

Text request/response protocol for the card reader with LCD.

This module provides the session that talks to the device:
- Waiting for the READY:CREDR banner after the port is opened
- STATE:READ / STATE:STOP commands with their STATE=... confirmations
- Turning unsolicited SCAN:<uid> lines into LCD updates
- Routing every inbound line through a single in-order dispatcher
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
from anyio.abc import ObjectReceiveStream, ObjectSendStream

from .confirmation import ConfirmationWaiter
from .display import Display, WRITE_TIMEOUT
from .errors import (
    ConfirmationTimeout,
    ConnectionTimeout,
    NotConnectedError,
    StateConfirmationTimeout,
)
from .transport import LineTransport, SerialTransport

logger = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 57600
READY_LINE = "READY:CREDR"
READY_TIMEOUT = 5.0  # seconds
SET_STATE_TIMEOUT = 0.1  # seconds
SCAN_DWELL = 3.0  # seconds the scanned uid stays on the LCD
SCAN_PREFIX = "SCAN:"
MAX_LINE_BUFFER = 100


class OperatingState(Enum):
    STOPPED = "stopped"
    READING = "reading"


# Wire names are fixed by the firmware, independent of the enum member names
STATE_WIRE_NAMES: Dict[OperatingState, str] = {
    OperatingState.STOPPED: "STOP",
    OperatingState.READING: "READ",
}

TransportFactory = Callable[[str, int], LineTransport]


class CardReader:
    """
    Session with one card reader.

    Owns the transport, the current operating state and the confirmation
    slot. ``connect()`` starts a task group with two tasks: the transport
    read loop (producer) and the line dispatcher (consumer), joined by a
    memory channel so lines are handled one at a time in arrival order.

    Usage::

        reader = CardReader()
        await reader.start("/dev/ttyUSB0")
        ...
        await reader.disconnect()
    """

    def __init__(
        self,
        baud: int = DEFAULT_BAUD_RATE,
        set_state_timeout: float = SET_STATE_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
        ready_timeout: float = READY_TIMEOUT,
        dwell: float = SCAN_DWELL,
        transport_factory: TransportFactory = SerialTransport,
        on_line_in: Optional[Callable[[str], None]] = None,
        on_line_out: Optional[Callable[[str], None]] = None,
        on_info: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the session without touching any port.

        Args:
            baud: Baud rate used by connect() when none is given (default: 57600)
            set_state_timeout: Seconds to wait for STATE=... confirmations
            write_timeout: Seconds to wait for WRITE:OK
            ready_timeout: Seconds to wait for READY:CREDR after opening the port
            dwell: Seconds a scanned uid stays on the LCD
            transport_factory: Called as ``factory(path, baud)`` to build the transport
            on_line_in: Debug hook for every inbound line
            on_line_out: Debug hook for every outbound command
            on_info: Debug hook for informational events
        """
        self.baud = baud
        self.set_state_timeout = set_state_timeout
        self.ready_timeout = ready_timeout
        self.dwell = dwell
        self.transport_factory = transport_factory
        self.on_line_in = on_line_in or (lambda line: None)
        self.on_line_out = on_line_out or (lambda line: None)
        self.on_info = on_info or (lambda message: None)

        self.state: Optional[OperatingState] = None
        self.ready = False
        self.transport: Optional[LineTransport] = None
        self.waiter = ConfirmationWaiter()
        self.display = Display(self, write_timeout=write_timeout)

        self._tg: Optional[Any] = None
        self._scan_active = False

    @property
    def connected(self) -> bool:
        return self.transport is not None and self.transport.is_open

    # ----- Lifecycle -----------------------------------------------------

    async def start(self, path: str, baud: Optional[int] = None) -> None:
        """
        Connect, show the ready screen and start reading cards.

        Display or state timeouts are logged and do not abort start-up; a
        missing READY banner does.

        Raises:
            ConnectionTimeout: If the device never reported ready
        """
        await self.connect(path, baud)
        await self._attempt(self.display.show_screen("ready"))
        await self._attempt(self.set_state(OperatingState.READING))

    async def connect(self, path: str, baud: Optional[int] = None) -> LineTransport:
        """
        Open the transport and wait for the READY:CREDR banner.

        Args:
            path: Serial port to open
            baud: Baud rate, defaults to the session's baud

        Returns:
            The open transport

        Raises:
            ConnectionTimeout: If the banner did not arrive within ``ready_timeout``.
                The transport is left open; call disconnect() to release it.
        """
        if self._tg is not None:
            await self.disconnect()

        baud = baud or self.baud
        self.transport = self.transport_factory(path, baud)
        self.transport.open()

        send_chan, recv_chan = anyio.create_memory_object_stream(max_buffer_size=MAX_LINE_BUFFER)
        self._tg = await anyio.create_task_group().__aenter__()
        try:
            self._tg.start_soon(self._read_task, self.transport, send_chan)
            self._tg.start_soon(self._dispatch_loop, recv_chan)

            await self.waiter.confirm(READY_LINE, self.ready_timeout, reason="Connection timed out.")
        except ConfirmationTimeout as e:
            logger.error(f"❌ {e}")
            raise ConnectionTimeout(f"No {READY_LINE} from {path} within {self.ready_timeout}s") from e
        except BaseException:
            await self._cancel_task_group_safely()
            raise

        logger.info(f"✅ Connected to device on {path}")
        self.ready = True
        return self.transport

    async def disconnect(self) -> None:
        """Stop the reader tasks and close the transport. Safe to call twice."""
        try:
            await self._cancel_task_group_safely()
        finally:
            if self.transport is not None:
                self.transport.close()
                self.transport = None
            self.ready = False
            self.state = None
            self._scan_active = False

    async def _cancel_task_group_safely(self):
        if self._tg is not None:
            tg, self._tg = self._tg, None
            tg.cancel_scope.cancel()
            await tg.__aexit__(None, None, None)
            logger.debug("Reader tasks stopped")

    async def __aenter__(self) -> "CardReader":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    # ----- Commands ------------------------------------------------------

    def write(self, data: str) -> None:
        """
        Send a raw command string. No confirmation is awaited.

        Raises:
            NotConnectedError: If connect() has not opened a transport
        """
        if self.transport is None:
            raise NotConnectedError("Not connected")
        self.on_line_out(data)
        logger.debug(f"-> {data!r}")
        self.transport.write(data.encode("ascii", errors="replace"))

    async def set_state(self, state: OperatingState) -> OperatingState:
        """
        Ask the device to change operating state.

        The new state is only committed once the device confirms it.

        Raises:
            StateConfirmationTimeout: If STATE=<name> did not arrive in time.
                The current state is left unchanged.
        """
        name = STATE_WIRE_NAMES[state]
        try:
            await self.waiter.confirm(
                f"STATE={name}",
                self.set_state_timeout,
                send=lambda: self.write(f"STATE:{name}"),
                reason="Set state timed out.",
                error=StateConfirmationTimeout,
            )
        except StateConfirmationTimeout as e:
            logger.error(f"❌ {e}")
            raise

        self.state = state
        self.on_info("Successfully set state.")
        return state

    # ----- Inbound lines -------------------------------------------------

    def on_line(self, line: str) -> None:
        """
        Handle one inbound line.

        Pending confirmations take precedence; otherwise SCAN:<uid> while
        reading starts the scan sequence. Anything else is dropped.
        """
        self.on_line_in(line)

        if self.waiter.feed(line):
            return

        if (
            self._tg is not None
            and self.state is OperatingState.READING
            and not self._scan_active
            and line.startswith(SCAN_PREFIX)
        ):
            uid = line[len(SCAN_PREFIX):]
            self._scan_active = True
            self._tg.start_soon(self._handle_scan, uid)
            return

        logger.debug(f"Ignoring line {line!r} in state {self.state}")

    async def _handle_scan(self, uid: str):
        """Stop reading, show the uid, wait, then resume reading."""
        logger.info(f"💳 Card scanned: {uid}")
        try:
            await self._attempt(self.set_state(OperatingState.STOPPED))
            await self._attempt(self.display.show_text(uid))

            await anyio.sleep(self.dwell)

            await self._attempt(self.set_state(OperatingState.READING))
            await self._attempt(self.display.show_screen("ready"))
        finally:
            self._scan_active = False

    @staticmethod
    async def _attempt(command: Awaitable[Any]) -> None:
        """Await a confirmed command, continuing past its (already logged) timeout."""
        try:
            await command
        except ConfirmationTimeout:
            pass

    # ----- Tasks ---------------------------------------------------------

    async def _read_task(self, transport: LineTransport, send_chan: ObjectSendStream[str]):
        """Producer: push lines from the transport onto the channel."""
        def on_line_fast(line: str) -> None:
            try:
                send_chan.send_nowait(line)
            except anyio.WouldBlock:
                logger.warning(f"Line buffer full, dropping {line!r}")

        async with send_chan:
            await transport.read_loop(on_line_fast)

    async def _dispatch_loop(self, recv_chan: ObjectReceiveStream[str]):
        """Consumer: hand lines to on_line strictly in arrival order."""
        async with recv_chan:
            async for line in recv_chan:
                self.on_line(line)
