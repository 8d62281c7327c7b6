from enum import Enum


class AccountRole(str, Enum):
    """Role of an account. Self-registration always yields STUDENT."""

    STUDENT = "student"
    DRIVER = "driver"
    ADMIN = "admin"


class TokenType(str, Enum):
    """Value of the ``type`` claim carried by session tokens."""

    ACCESS = "access"
