"""
Test suite for custom exception types.

Run tests:
    pytest tests/core/exceptions/test_types.py -v
"""

from fastapi import status
import pytest

from transit_api.core.exceptions.types import (
    AccountAlreadyExistsException,
    AccountNotFoundException,
    AppException,
    AuthenticationException,
    ConflictException,
    DatabaseException,
    EmailDeliveryException,
    ForbiddenException,
    InvalidCredentialsException,
    LastAdminException,
    NotFoundException,
    OTPInvalidException,
    OTPNotFoundException,
    TokenExpiredException,
    TokenMalformedException,
    TooManyAttemptsException,
    ValidationException,
)


class TestAppException:

    def test_defaults_to_500(self):
        exc = AppException("Boom")

        assert exc.message == "Boom"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert str(exc) == "Boom"

    def test_custom_status(self):
        exc = AppException("Bad", status_code=418)

        assert exc.status_code == 418
        assert not hasattr(exc, "details")


@pytest.mark.parametrize(
    "exc_class, status_code, message",
    [
        (DatabaseException, 500, "A database error occurred."),
        (ValidationException, 400, "Validation failed."),
        (InvalidCredentialsException, 401, "Invalid credentials"),
        (TokenMalformedException, 401, "Invalid token"),
        (TokenExpiredException, 401, "Token expired"),
        (ForbiddenException, 403, "Access forbidden."),
        (OTPInvalidException, 400, "Invalid OTP"),
        (
            TooManyAttemptsException,
            400,
            "Maximum verification attempts reached. Please request a new OTP.",
        ),
        (EmailDeliveryException, 500, "Failed to send verification email"),
        (AccountNotFoundException, 404, "User not found"),
        (OTPNotFoundException, 404, "OTP not found or expired"),
        (AccountAlreadyExistsException, 409, "Email already registered"),
    ],
)
def test_defaults(exc_class, status_code, message):
    exc = exc_class()

    assert exc.status_code == status_code
    assert exc.message == message
    assert isinstance(exc, AppException)


class TestHierarchy:

    def test_auth_errors_share_base(self):
        for exc_class in (
            InvalidCredentialsException,
            TokenMalformedException,
            TokenExpiredException,
        ):
            assert issubclass(exc_class, AuthenticationException)

    def test_not_found_family(self):
        assert issubclass(AccountNotFoundException, NotFoundException)
        assert issubclass(OTPNotFoundException, NotFoundException)

    def test_conflict_family(self):
        assert issubclass(AccountAlreadyExistsException, ConflictException)
        assert issubclass(LastAdminException, ConflictException)

    def test_message_override_keeps_status(self):
        exc = LastAdminException("Cannot delete the last admin user")

        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.message == "Cannot delete the last admin user"
