"""Connect to the configured chain and report status.

Usage:
    python -m chainsync            # connect, print status, exit
    python -m chainsync --follow   # keep running and log new blocks
"""

import argparse
import asyncio
import sys

from loguru import logger

from chainsync.config.constants import TOPIC_NEW_BLOCK
from chainsync.config.settings import get_settings
from chainsync.initialization.logging import setup_logging
from chainsync.services.chain import init_chain_service


async def run(follow: bool) -> int:
    """Start the client, print its status and optionally follow blocks."""
    settings = get_settings()
    service = init_chain_service(settings)
    service.event_bus.subscribe(
        TOPIC_NEW_BLOCK, lambda event: logger.info(f"New block: {event['block']}")
    )

    try:
        connected = await service.start()
        status = service.status()
        print(f"Connected:    {status.connected}")
        print(f"Via:          {status.via or '-'}")
        print(f"Chain ID:     {status.chain_id or '-'}")
        print(f"Owner:        {status.owner_display}")
        print(f"World region: {status.world_region}")

        if connected and follow:
            while service.listener.is_running:
                await asyncio.sleep(1)
        return 0 if connected else 1
    finally:
        await service.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Chain sync client status")
    parser.add_argument("--follow", action="store_true", help="log new blocks until interrupted")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    try:
        sys.exit(asyncio.run(run(args.follow)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
