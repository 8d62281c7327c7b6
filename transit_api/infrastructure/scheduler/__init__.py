from transit_api.infrastructure.scheduler.jobs import purge_expired_otps
from transit_api.infrastructure.scheduler.main import (
    initialize_scheduler,
    scheduler,
    schedule_purge_expired_otps_job,
    shutdown_scheduler,
    start_scheduler,
)

__all__ = [
    "scheduler",
    "purge_expired_otps",
    "schedule_purge_expired_otps_job",
    "initialize_scheduler",
    "start_scheduler",
    "shutdown_scheduler",
]
