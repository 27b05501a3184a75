"""
Card Reader Connection Utilities

Utilities for finding and connecting to card reader devices.
"""

import logging
from typing import Any, List, Optional

import serial
import serial.tools.list_ports

from .errors import ConnectionTimeout
from .protocol import DEFAULT_BAUD_RATE, CardReader

logger = logging.getLogger(__name__)


def find_card_reader_ports() -> List[str]:
    """
    List the serial ports a card reader could be attached to.

    Returns:
        Port names in the order the OS reports them
    """
    available_ports = serial.tools.list_ports.comports()
    logger.debug(f"Found {len(available_ports)} total serial ports")
    return [port.device for port in available_ports]


def select_port(ports: List[str]) -> Optional[str]:
    """
    Pick the port to use from a discovered list.

    Returns:
        None when no ports exist, otherwise the first port
    """
    if not ports:
        logger.error("❌ No serial ports detected.")
        return None

    if len(ports) == 1:
        logger.info(f"🔍 Found serial port {ports[0]}")
    else:
        logger.info(f"ℹ️  Found {len(ports)} serial ports, using first one: {ports[0]}")
    return ports[0]


def get_port_info(port: str) -> dict:
    """
    Get detailed information about a serial port.

    Args:
        port: Serial port name

    Returns:
        Dictionary with port information
    """
    for p in serial.tools.list_ports.comports():
        if p.device == port:
            return {
                'device': p.device,
                'description': p.description,
                'manufacturer': p.manufacturer,
                'vid': f"0x{p.vid:04x}" if p.vid else None,
                'pid': f"0x{p.pid:04x}" if p.pid else None,
                'serial_number': p.serial_number,
            }

    return {'device': port, 'description': 'Port not found'}


async def connect_card_reader(
    port: Optional[str] = None,
    baud: int = DEFAULT_BAUD_RATE,
    retries: int = 0,
    **reader_options: Any,
) -> Optional[CardReader]:
    """
    Connect to a card reader and start reading cards.

    Args:
        port: Specific port to connect to, or None to auto-detect
        baud: Baud rate (default: 57600)
        retries: Extra attempts after a failed connect
        **reader_options: Passed through to CardReader

    Returns:
        Started CardReader instance if successful, None otherwise
    """
    port = port or select_port(find_card_reader_ports())
    if port is None:
        return None

    reader = CardReader(baud=baud, **reader_options)
    for attempt in range(retries + 1):
        logger.info(f"Attempting to connect to {port} (attempt {attempt + 1}/{retries + 1})")
        try:
            await reader.start(port)
            return reader
        except (ConnectionTimeout, serial.SerialException) as e:
            logger.warning(f"Failed to connect to {port}: {e}")
            await reader.disconnect()

    logger.error(f"❌ Failed to connect to card reader on {port}")
    return None
