"""
Card Reader Transport

Serial byte stream to the card reader, delivered to the protocol layer as
complete ``\\r\\n``-delimited text lines.
"""

import logging
from typing import Callable, Protocol

import anyio
import serial

logger = logging.getLogger(__name__)

LINE_DELIMITER = b"\r\n"
POLL_INTERVAL = 0.01  # 10ms responsive sleep


class LineTransport(Protocol):
    """
    Interface the protocol layer needs from a transport.

    Any object providing these members can stand in for the serial port,
    which is how the test suite drives the protocol without hardware.
    """

    @property
    def is_open(self) -> bool:
        ...

    def open(self) -> None:
        ...

    def write(self, data: bytes) -> None:
        ...

    async def read_loop(self, on_line: Callable[[str], None]) -> None:
        ...

    def close(self) -> None:
        ...


class SerialTransport:
    """
    pyserial-backed line transport.

    Usage::

        transport = SerialTransport("/dev/ttyUSB0", 57600)
        transport.open()
        transport.write(b"STATE:READ")
        await transport.read_loop(print)
    """

    def __init__(self, port: str, baud: int = 57600, encoding: str = "ascii"):
        """
        Initialize the transport without opening the port.

        Args:
            port: Serial port (e.g., 'COM9', '/dev/ttyUSB0')
            baud: Baud rate (default: 57600)
            encoding: Text encoding of the device lines
        """
        self.port = port
        self.baud = baud
        self.encoding = encoding
        self.serial = None
        self.incoming_buffer = bytearray()

    @property
    def is_open(self) -> bool:
        return self.serial is not None and self.serial.is_open

    def open(self) -> None:
        """
        Open the serial port.

        DTR/RTS are released before opening so the board is not reset by the
        act of connecting.
        """
        self.serial = serial.Serial()
        self.serial.port = self.port
        self.serial.baudrate = self.baud
        self.serial.timeout = 0
        self.serial.dtr = False
        self.serial.rts = False
        self.serial.open()
        logger.info(f"Opened {self.port} at {self.baud} baud")

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise serial.SerialException(f"Port {self.port} is not open")
        self.serial.write(data)
        self.serial.flush()

    async def read_loop(self, on_line: Callable[[str], None]) -> None:
        """
        Poll the port and hand every complete line to ``on_line``.

        Runs until cancelled or until the port fails. Serial errors propagate
        to the caller after being logged.
        """
        logger.debug("Read loop started")
        try:
            while self.is_open:
                if self.serial.in_waiting > 0:
                    data = self.serial.read(self.serial.in_waiting)
                    if data:
                        self._process_incoming_data(data, on_line)
                else:
                    await anyio.sleep(POLL_INTERVAL)
        except serial.SerialException as e:
            logger.error(f"Read loop error: {e}")
            raise
        finally:
            logger.debug("Read loop stopped")

    def _process_incoming_data(self, data: bytes, on_line: Callable[[str], None]) -> None:
        """Split buffered bytes into lines, keeping any partial tail."""
        self.incoming_buffer.extend(data)

        while True:
            delimiter_index = self.incoming_buffer.find(LINE_DELIMITER)
            if delimiter_index == -1:
                break

            raw_line = bytes(self.incoming_buffer[:delimiter_index])
            del self.incoming_buffer[:delimiter_index + len(LINE_DELIMITER)]

            on_line(raw_line.decode(self.encoding, errors="replace"))

    def close(self) -> None:
        if self.serial is not None and self.serial.is_open:
            self.serial.dtr = False
            self.serial.rts = False
            self.serial.close()
            logger.info(f"Closed {self.port}")
        self.serial = None
        self.incoming_buffer.clear()
