"""
Card Reader Connection Library

Client for the serial card reader with a 2x16 character LCD.

This library provides:
- Line transport over pyserial with CRLF framing
- Confirmed commands (READY, STATE, WRITE) with per-command timeouts
- READ/STOP operating state management and scan handling
- Named LCD screens with left/right/center alignment
- Port discovery and connection helpers
"""

from .confirmation import ConfirmationWaiter
from .connection import connect_card_reader, find_card_reader_ports, select_port
from .display import Align, Display, Line, Screen, align_line, format_lines
from .errors import (
    CardReaderError,
    ConfirmationTimeout,
    ConnectionTimeout,
    NotConnectedError,
    StateConfirmationTimeout,
    UnknownScreenError,
    WriteConfirmationTimeout,
)
from .protocol import CardReader, OperatingState
from .transport import SerialTransport

__version__ = "1.0.0"
__all__ = [
    "CardReader",
    "OperatingState",
    "ConfirmationWaiter",
    "Display",
    "Screen",
    "Line",
    "Align",
    "align_line",
    "format_lines",
    "SerialTransport",
    "connect_card_reader",
    "find_card_reader_ports",
    "select_port",
    "CardReaderError",
    "ConfirmationTimeout",
    "ConnectionTimeout",
    "NotConnectedError",
    "StateConfirmationTimeout",
    "UnknownScreenError",
    "WriteConfirmationTimeout",
]
