from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised when the store fails or times out.

    The message is kept for logs only; handlers never echo it to clients.
    """

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class ValidationException(AppException):
    """Exception raised for bad input shape or content."""

    def __init__(self, message: str = "Validation failed."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialsException(AuthenticationException):
    """Raised for both unknown email and wrong password, with one message."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class TokenMalformedException(AuthenticationException):
    """Exception raised when a token's signature or structure is invalid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredException(AuthenticationException):
    """Exception raised when a token is past its expiry."""

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    def __init__(self, message: str = "Access forbidden."):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class OTPInvalidException(AppException):
    """Exception raised when a submitted OTP does not match."""

    def __init__(self, message: str = "Invalid OTP"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class TooManyAttemptsException(AppException):
    """Exception raised when the OTP attempt cap is reached."""

    def __init__(
        self,
        message: str = "Maximum verification attempts reached. Please request a new OTP.",
    ):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class EmailDeliveryException(AppException):
    """Exception raised when the verification email could not be delivered."""

    def __init__(self, message: str = "Failed to send verification email"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AccountNotFoundException(NotFoundException):
    """Exception raised when an account is not found."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class OTPNotFoundException(NotFoundException):
    """Exception raised when no live OTP challenge exists (never issued or expired)."""

    def __init__(self, message: str = "OTP not found or expired"):
        super().__init__(message)


class ConflictException(AppException):
    """Exception raised when there's a conflict with existing resources."""

    def __init__(self, message: str = "Resource conflict."):
        super().__init__(message, status.HTTP_409_CONFLICT)


class AccountAlreadyExistsException(ConflictException):
    """Exception raised when the email already belongs to an account."""

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


class LastAdminException(ConflictException):
    """Exception raised when an operation would leave no admin account."""

    def __init__(self, message: str = "Cannot remove the last admin user"):
        super().__init__(message)


__all__ = [
    "AppException",
    "DatabaseException",
    "ValidationException",
    "AuthenticationException",
    "InvalidCredentialsException",
    "TokenMalformedException",
    "TokenExpiredException",
    "ForbiddenException",
    "OTPInvalidException",
    "TooManyAttemptsException",
    "EmailDeliveryException",
    "NotFoundException",
    "AccountNotFoundException",
    "OTPNotFoundException",
    "ConflictException",
    "AccountAlreadyExistsException",
    "LastAdminException",
]
