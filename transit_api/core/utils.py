"""
Utility functions for the application.

- Secure password hashing using bcrypt
- Password verification against hashed values
- OTP generation and HMAC-based hashing for queryable secure storage
- Email normalization for the institutional domain
"""

from functools import lru_cache
import hashlib
import hmac
import secrets

import bcrypt

from transit_api.core.config import utils_logger

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

OTP_MIN = 100000
OTP_MAX = 999999


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        utils_logger.debug(
            f"Password exceeds {BCRYPT_MAX_BYTES} bytes, truncating for bcrypt"
        )
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a fresh random salt.

    Args:
        password: The plain text password to hash. Cannot be None.

    Returns:
        str: The bcrypt hash (60 characters, ``$2b$`` prefix).

    Raises:
        ValueError: If password is None.

    Examples:
        >>> hashed = hash_password("secret1")
        >>> hashed.startswith("$2b$")
        True
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


@lru_cache(maxsize=1)
def _dummy_hash() -> bytes:
    return bcrypt.hashpw(b"timing-equalizer", bcrypt.gensalt())


def verify_password(password: str | None, hashed_password: str | None) -> bool:
    """
    Verify a password against a bcrypt hash.

    When there is no hash to compare against, a comparison against a dummy
    hash still runs, so a missing account costs the same time as a wrong
    password.

    Args:
        password: The plain text password to verify.
        hashed_password: The stored bcrypt hash, or None when there is no account.

    Returns:
        bool: True if the password matches, False otherwise (including invalid input).

    Examples:
        >>> hashed = hash_password("secret1")
        >>> verify_password("secret1", hashed)
        True
        >>> verify_password("secret2", hashed)
        False
    """
    if password is None:
        return False

    if hashed_password is None:
        bcrypt.checkpw(_password_bytes(password), _dummy_hash())
        return False

    try:
        return bcrypt.checkpw(
            _password_bytes(password), hashed_password.encode("utf-8")
        )
    except (ValueError, AttributeError) as e:
        utils_logger.warning(
            f"Password verification failed due to invalid hash format: {type(e).__name__}"
        )
        return False


def generate_otp_code() -> str:
    """
    Generate a 6-digit OTP drawn uniformly from [100000, 999999].

    Uses ``secrets`` (CSPRNG), never ``random``.
    """
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def mask_otp(otp: str) -> str:
    """
    Mask an OTP code for logging purposes, showing only first and last digit.

    Examples:
        >>> mask_otp("123456")
        '1****6'
        >>> mask_otp("12")
        '12'
    """
    if len(otp) <= 2:
        return otp

    return f"{otp[0]}{'*' * (len(otp) - 2)}{otp[-1]}"


def hmac_hash_otp(otp: str | None, secret: str | None) -> str:
    """
    Hash an OTP using HMAC-SHA256.

    Args:
        otp: The OTP code to hash. Cannot be None or empty.
        secret: The HMAC key. Cannot be None or empty.

    Returns:
        str: 64-character hexadecimal digest.

    Raises:
        ValueError: If otp or secret is None or empty.

    Examples:
        >>> len(hmac_hash_otp("123456", "key"))
        64
    """
    if not otp:
        raise ValueError("OTP cannot be None or empty")
    if not secret:
        raise ValueError("Secret cannot be None or empty")

    return hmac.new(
        secret.encode("utf-8"), otp.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def hmac_verify_otp(
    otp: str | None, hashed_otp: str | None, secret: str | None
) -> bool:
    """
    Compare an OTP with its stored HMAC digest in constant time.

    Returns:
        bool: True on match. False for a mismatch or any empty input.

    Examples:
        >>> digest = hmac_hash_otp("123456", "key")
        >>> hmac_verify_otp("123456", digest, "key")
        True
        >>> hmac_verify_otp("000000", digest, "key")
        False
    """
    if not otp or not hashed_otp or not secret:
        return False

    return hmac.compare_digest(hmac_hash_otp(otp, secret), hashed_otp)


def normalize_email(email: str, domain: str | None = None) -> str:
    """
    Strip and lower-case an email address.

    When ``domain`` is given and the value has no ``@``, it is treated as a
    bare username and the institutional domain is appended.

    Examples:
        >>> normalize_email("  Ali.Khan@CFD.nu.edu.pk ")
        'ali.khan@cfd.nu.edu.pk'
        >>> normalize_email("ua622339", "@cfd.nu.edu.pk")
        'ua622339@cfd.nu.edu.pk'
    """
    value = (email or "").strip().lower()
    if domain and value and "@" not in value:
        value = f"{value}{domain}"
    return value
