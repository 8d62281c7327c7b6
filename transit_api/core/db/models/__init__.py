from transit_api.core.db.models.base import BaseModel
from transit_api.core.db.models.account import Account
from transit_api.core.db.models.otp import OTPChallenge

__all__ = [
    "BaseModel",
    "Account",
    "OTPChallenge",
]
