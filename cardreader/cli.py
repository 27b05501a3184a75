"""
Card Reader Command Line

Connects to a card reader, shows the ready screen and keeps displaying
scanned card ids until interrupted.

    cardreader --port /dev/ttyUSB0 --debug
"""

import argparse
import logging
import sys

import anyio

from .connection import connect_card_reader, find_card_reader_ports, get_port_info
from .display import WRITE_TIMEOUT
from .protocol import DEFAULT_BAUD_RATE, READY_TIMEOUT, SCAN_DWELL, SET_STATE_TIMEOUT

logger = logging.getLogger(__name__)


def debug_log_in(line: str):
    print(f"🟡 DEBUG: '{line}'")


def debug_log_out(line: str):
    print(f"🟣 DEBUG: '{line}'")


def debug_log_info(message: str):
    print(f"🟢 DEBUG: '{message}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Card reader client")
    parser.add_argument("--port", help="Serial port (auto-detect if not specified)")
    parser.add_argument("--baud", type=int, default=DEFAULT_BAUD_RATE, help="Baud rate")
    parser.add_argument("--ready-timeout", type=float, default=READY_TIMEOUT,
                        help="Seconds to wait for the device to report ready")
    parser.add_argument("--state-timeout", type=float, default=SET_STATE_TIMEOUT,
                        help="Seconds to wait for a state change confirmation")
    parser.add_argument("--write-timeout", type=float, default=WRITE_TIMEOUT,
                        help="Seconds to wait for an LCD write confirmation")
    parser.add_argument("--dwell", type=float, default=SCAN_DWELL,
                        help="Seconds a scanned card id stays on the LCD")
    parser.add_argument("--retries", type=int, default=0, help="Extra connection attempts")
    parser.add_argument("--list-ports", action="store_true", help="List available serial ports")
    parser.add_argument("--debug", action="store_true", help="Print every line sent and received")
    return parser


async def async_main(args: argparse.Namespace) -> int:
    hooks = {}
    if args.debug:
        hooks = dict(on_line_in=debug_log_in, on_line_out=debug_log_out, on_info=debug_log_info)

    reader = await connect_card_reader(
        args.port,
        baud=args.baud,
        retries=args.retries,
        ready_timeout=args.ready_timeout,
        set_state_timeout=args.state_timeout,
        write_timeout=args.write_timeout,
        dwell=args.dwell,
        **hooks,
    )
    if reader is None:
        return 1

    async with reader:
        print("📡 Waiting for cards. Ctrl-C to exit.")
        while reader.connected:
            await anyio.sleep(0.1)

    print("🔌 Connection closed")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    if args.list_ports:
        print("Serial ports found:")
        for port in find_card_reader_ports():
            info = get_port_info(port)
            print(f"  📍 {port}")
            if info.get('description'):
                print(f"     Description: {info['description']}")
        return 0

    try:
        return anyio.run(async_main, args)
    except KeyboardInterrupt:
        print("\n⏹️  Stopped by user (Ctrl-C)")
        return 0


if __name__ == "__main__":
    sys.exit(main())
