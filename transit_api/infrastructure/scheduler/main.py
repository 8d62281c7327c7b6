"""
Background scheduler for the transport API.

Runs inside the API process (started from the app lifespan when
ENABLE_SCHEDULER is set) or standalone:

    python -m transit_api.infrastructure.scheduler.main
"""

import asyncio
import signal
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from transit_api.core.config import scheduler_logger, settings

# Jobs are re-registered on every start, so the default in-memory job store
# is enough.
scheduler = AsyncIOScheduler(timezone=timezone.utc)


def schedule_purge_expired_otps_job(interval_minutes: int = 10) -> None:
    """
    Schedule the purge_expired_otps job to run every ``interval_minutes``.
    """
    # Import here to avoid circular import issues
    from transit_api.infrastructure.scheduler.jobs import purge_expired_otps

    scheduler_logger.info(
        f"Scheduling 'purge_expired_otps' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        purge_expired_otps,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="purge_expired_otps_job",
        misfire_grace_time=60 * 5,  # 5 minutes grace time
        coalesce=True,
    )
    scheduler_logger.info("'purge_expired_otps' job scheduled successfully.")


def initialize_scheduler() -> None:
    """Register every periodic job."""
    schedule_purge_expired_otps_job(
        interval_minutes=settings.OTP_PURGE_INTERVAL_MINUTES
    )


def start_scheduler() -> None:
    if scheduler.running:
        return
    scheduler.start()
    initialize_scheduler()
    scheduler_logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        scheduler_logger.info("Scheduler stopped")


async def main() -> None:
    """Run the scheduler on its own until SIGINT/SIGTERM."""
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        scheduler_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    scheduler_logger.info("Starting standalone scheduler...")
    try:
        start_scheduler()
        await shutdown_event.wait()
    except Exception as e:
        scheduler_logger.exception(f"Scheduler error: {e}")
        raise
    finally:
        shutdown_scheduler()
        scheduler_logger.info("Scheduler shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
