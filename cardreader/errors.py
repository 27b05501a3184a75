"""
Card Reader Errors

Exception types raised by the card reader protocol layer.
"""


class CardReaderError(Exception):
    """Base exception for all card reader errors."""


class NotConnectedError(CardReaderError):
    """Raised when a command is written before a transport is open."""


class ConnectionTimeout(CardReaderError, ConnectionError):
    """Raised when the device does not announce itself within the grace period."""


class ConfirmationTimeout(CardReaderError):
    """
    Raised when an expected confirmation line does not arrive in time.

    Attributes:
        expected: The literal line that was being waited for
        timeout: How long we waited, in seconds
    """

    def __init__(self, reason: str, expected: str = "", timeout: float = 0.0):
        super().__init__(reason)
        self.reason = reason
        self.expected = expected
        self.timeout = timeout


class StateConfirmationTimeout(ConfirmationTimeout):
    """Raised when a STATE command is not confirmed."""


class WriteConfirmationTimeout(ConfirmationTimeout):
    """Raised when a WRITE command is not confirmed."""


class UnknownScreenError(CardReaderError, KeyError):
    """Raised when a screen name has not been registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Screen {self.name} does not exist."
