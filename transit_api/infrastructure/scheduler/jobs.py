from transit_api.core.config import scheduler_logger
from transit_api.core.db import AsyncSessionLocal
from transit_api.core.db.crud import otp_challenge_db


async def purge_expired_otps() -> int:
    """
    Periodic task that hard-deletes OTP challenges past their expiry.

    Expired challenges can no longer be verified either way; this only keeps
    the table small.

    Returns:
        int: Number of challenges removed.
    """
    async with AsyncSessionLocal.begin() as session:
        scheduler_logger.info("Starting purge of expired OTP challenges")
        removed = await otp_challenge_db.delete_expired(session, commit_self=False)
        scheduler_logger.info(
            f"Completed purge of expired OTP challenges. Removed {removed} record(s)."
        )
    return removed
