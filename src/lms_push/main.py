"""
Main entry point for the LMS push producer.

Runs the polling loop:
1. Fetch the next page of registered accounts
2. For each account, fetch its LMS data and compare with the stored snapshot
3. Send a push notification for every new or changed item
4. Persist the fresh snapshots
5. Pause, then continue with the next page (wrapping around at the end)
"""

import asyncio
import logging
import sys
from typing import Optional

from lms_push.config import Settings, get_settings, setup_logging
from lms_push.db import SupabaseSnapshotStore
from lms_push.notify import FcmNotifier
from lms_push.provider import MoodleProvider
from lms_push.services import DataService, ProducerService

logger = logging.getLogger(__name__)


async def poll(
    producer: ProducerService,
    batch_size: int,
    interval: float,
    passes: Optional[int] = None,
) -> None:
    """
    Process batches until the given number of passes is complete.
    
    Args:
        producer: Configured producer service
        batch_size: Accounts per batch
        interval: Seconds to sleep between batches
        passes: Number of full passes over all accounts; None runs forever
    """
    offset = 0
    completed = 0
    
    while passes is None or completed < passes:
        offset = await producer.run_batch(batch_size, offset)
        if offset == 0:
            completed += 1
            logger.info(f"Pass {completed} over all accounts complete")
        await asyncio.sleep(interval)


async def run(settings: Settings, passes: Optional[int] = None) -> None:
    """Wire up the adapters and run the polling loop."""
    store = await SupabaseSnapshotStore.create()
    notifier = FcmNotifier()
    
    async with MoodleProvider(settings) as provider:
        data_service = DataService(provider, store)
        producer = ProducerService(
            provider,
            data_service,
            notifier,
            timezone=settings.timezone,
        )
        try:
            await poll(
                producer,
                settings.batch_size,
                settings.batch_interval_seconds,
                passes,
            )
        finally:
            await notifier.close()


def main() -> int:
    """
    Entry point for the LMS push producer.
    
    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    try:
        # Validate configuration early
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Please check your environment variables.", file=sys.stderr)
        return 1
    
    setup_logging(settings)
    logger.info(f"Starting LMS push producer for {settings.moodle_base_url}")
    
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"Producer failed with error: {e}", exc_info=True)
        return 1
    
    return 0


if __name__ == "__main__":
    sys.exit(main())
