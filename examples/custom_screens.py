#!/usr/bin/env python3
"""
Card Reader Custom Screens Example

Registers a few extra LCD screens, cycles through them, then hands the
reader back to normal card scanning.

Expected behavior:
- Connects to the card reader (auto-detects the port if --port is omitted)
- Shows each custom screen for two seconds
- Shows the ready screen and waits for cards until Ctrl-C
"""

import os
import sys
import logging
import anyio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cardreader import Align, Line, Screen, connect_card_reader

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

SCREENS = {
    "welcome": Screen(Line("Welcome", Align.CENTER), Line("Door 3", Align.CENTER)),
    "closing": Screen(Line("Closing at", Align.LEFT), Line("18:00", Align.RIGHT)),
    "top-only": Screen(line1=Line("No second line")),
}


async def main(port=None):
    reader = await connect_card_reader(port)
    if reader is None:
        print("❌ No card reader found")
        return 1

    async with reader:
        for name, screen in SCREENS.items():
            reader.display.register_screen(name, screen)

        for name in SCREENS:
            print(f"📺 Showing '{name}'")
            await reader.display.show_screen(name)
            await anyio.sleep(2.0)

        await reader.display.show_screen("ready")
        print("📡 Waiting for cards. Ctrl-C to exit.")
        while reader.connected:
            await anyio.sleep(0.1)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(anyio.run(main, sys.argv[1] if len(sys.argv) > 1 else None))
    except KeyboardInterrupt:
        print("\n⏹️ Stopped by user")
