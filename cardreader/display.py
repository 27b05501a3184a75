"""
Card Reader LCD

Named screens for the reader's 2x16 character LCD and the WRITE command that
puts them on the device.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from .errors import UnknownScreenError, WriteConfirmationTimeout

if TYPE_CHECKING:
    from .protocol import CardReader

logger = logging.getLogger(__name__)

LCD_WIDTH = 16
LCD_LINES = 2
WRITE_TIMEOUT = 0.2  # seconds
WRITE_PREFIX = "WRITE:"
WRITE_OK = "WRITE:OK"


class Align(Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


@dataclass(frozen=True)
class Line:
    """One line of LCD text."""
    text: str
    align: Align = Align.LEFT


@dataclass(frozen=True)
class Screen:
    """Two optional lines; a missing line is shown blank."""
    line1: Optional[Line] = None
    line2: Optional[Line] = None


READY_SCREEN = Screen(
    line1=Line("Ready!", Align.CENTER),
    line2=Line("Present card:", Align.CENTER),
)


def align_line(line: Optional[Line]) -> str:
    """
    Fit a line into exactly LCD_WIDTH characters.

    Text is truncated without ellipsis. For centered text an odd amount of
    padding puts the extra space on the right.
    """
    if line is None:
        return " " * LCD_WIDTH

    text = line.text[:LCD_WIDTH]
    if line.align is Align.RIGHT:
        return text.rjust(LCD_WIDTH)
    if line.align is Align.CENTER:
        deficit = LCD_WIDTH - len(text)
        left = deficit // 2
        return " " * left + text + " " * (deficit - left)
    return text.ljust(LCD_WIDTH)


def format_lines(screen: Screen) -> str:
    """Render both lines of a screen as one LCD_WIDTH * 2 character block."""
    return align_line(screen.line1) + align_line(screen.line2)


class Display:
    """
    Screen registry bound to a card reader.

    The ``ready`` screen is always registered; it is what the reader shows
    while waiting for a card.
    """

    def __init__(self, reader: "CardReader", write_timeout: float = WRITE_TIMEOUT):
        self.reader = reader
        self.write_timeout = write_timeout
        self.screens: Dict[str, Screen] = {"ready": READY_SCREEN}

    def register_screen(self, name: str, screen: Screen) -> None:
        self.screens[name] = screen

    def render_screen(self, name: str) -> str:
        """
        Build the WRITE command for a registered screen.

        Raises:
            UnknownScreenError: If no screen was registered under ``name``
        """
        screen = self.screens.get(name)
        if screen is None:
            raise UnknownScreenError(name)
        return WRITE_PREFIX + format_lines(screen)

    async def show_screen(self, name: str) -> None:
        """Put a registered screen on the LCD and wait for WRITE:OK."""
        await self._send(self.render_screen(name))

    async def show_text(self, line1: str, line2: Optional[str] = None, align: Align = Align.CENTER) -> None:
        """Show ad-hoc text without registering a screen."""
        screen = Screen(
            line1=Line(line1, align),
            line2=Line(line2, align) if line2 is not None else None,
        )
        await self._send(WRITE_PREFIX + format_lines(screen))

    async def write_raw(self, payload: str) -> None:
        """Send a payload to the LCD as-is, without any alignment or padding."""
        await self._send(WRITE_PREFIX + payload)

    async def _send(self, command: str) -> None:
        try:
            await self.reader.waiter.confirm(
                WRITE_OK,
                self.write_timeout,
                send=lambda: self.reader.write(command),
                reason="Write timed out.",
                error=WriteConfirmationTimeout,
            )
        except WriteConfirmationTimeout as e:
            logger.error(f"❌ {e}")
            raise
        self.reader.on_info("Successfully wrote to LCD.")
