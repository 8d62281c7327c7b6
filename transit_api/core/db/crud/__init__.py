from transit_api.core.db.crud.base import BaseDB
from transit_api.core.db.crud.account import AccountDB
from transit_api.core.db.crud.otp import OTPChallengeDB

# Global CRUD instances - use these instead of creating new instances
account_db = AccountDB()
otp_challenge_db = OTPChallengeDB()

__all__ = [
    "BaseDB",
    "AccountDB",
    "OTPChallengeDB",
    "account_db",
    "otp_challenge_db",
]
