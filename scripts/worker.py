#!/usr/bin/env python3
"""SQS worker script for consuming AMS messages outside Lambda."""

import asyncio
import sys

from ams_consumer.config import get_settings
from ams_consumer.core.exceptions import ConfigurationError
from ams_consumer.utils.logging import setup_logging, get_logger
from ams_consumer.workers.sqs_poller import SQSPoller

logger = get_logger(__name__)


async def main():
    """Main entry point."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)
    try:
        worker = SQSPoller(settings)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
