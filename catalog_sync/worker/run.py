"""Entry point for the polling scrape worker."""

import asyncio
import logging
import signal

from catalog_sync.logging_config import setup_logging
from catalog_sync.worker.scrape_worker import ScrapeWorker

logger = logging.getLogger(__name__)


async def _serve():
    worker = ScrapeWorker()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass
    await worker.run()


def main():
    setup_logging()
    logger.info("Starting scrape worker...")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
