from functools import lru_cache
import logging
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from transit_api.core.logger import init_sentry, setup_logger


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production, test
    APP_NAME: str = "CFD Transport API"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
Backend for the university bus-transport administration system.

## Authentication

Students self-register with an institutional email address. Registration is a
two-step handshake: `POST /api/auth/send-otp` emails a 6-digit code, and
`POST /api/auth/register` exchanges that code (plus a password) for an account
and a **Bearer JWT**. Drivers and admins are provisioned by an admin through
`/api/users`.
"""
    DEBUG: bool = False
    LOG_DIR: str = "logs"

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # JWT settings
    JWT_SECRET_KEY: str = "change_me_jwt_secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 30

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./transit.db"
    DATABASE_POOL_TIMEOUT: int = 10  # seconds

    # Account settings
    INSTITUTION_EMAIL_DOMAIN: str = "@cfd.nu.edu.pk"
    PASSWORD_MIN_LENGTH: int = 6

    # OTP settings
    OTP_EXPIRY_MINUTES: int = 30
    OTP_MAX_ATTEMPTS: int = 5
    OTP_HMAC_SECRET: str = "change_me_otp_hmac_secret"
    OTP_PURGE_INTERVAL_MINUTES: int = 10

    # Brevo (transactional email) settings
    BREVO_API_KEY: str = "your_brevo_api_key"
    BREVO_BASE_URL: str = "https://api.brevo.com/v3"
    BREVO_SENDER_EMAIL: str = "transport@cfd.nu.edu.pk"
    BREVO_SENDER_NAME: str = "CFD Transport System"
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    TEMPLATE_DIR: str = str(Path(__file__).resolve().parent.parent / "templates")

    # Infrastructure flags
    ENABLE_SCHEDULER: bool = True

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    # First admin, consumed only by `manage.py createadmin`
    BOOTSTRAP_ADMIN_NAME: str = "Transport Admin"
    BOOTSTRAP_ADMIN_EMAIL: str | None = None
    BOOTSTRAP_ADMIN_PASSWORD: str | None = None

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Refuse to boot in production with the placeholder secrets."""
        if self.ENVIRONMENT != "production":
            return self

        insecure_defaults: dict[str, str] = {
            "JWT_SECRET_KEY": "change_me_jwt_secret",
            "OTP_HMAC_SECRET": "change_me_otp_hmac_secret",
            "BREVO_API_KEY": "your_brevo_api_key",
        }
        still_default = [
            name
            for name, default_val in insecure_defaults.items()
            if getattr(self, name) == default_val
        ]
        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following secrets still "
                f"have their insecure default values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )
        return self

    @property
    def email_domain(self) -> str:
        """Institutional suffix, always starting with '@' and lower-cased."""
        domain = self.INSTITUTION_EMAIL_DOMAIN.strip().lower()
        return domain if domain.startswith("@") else f"@{domain}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


def _component_logger(name: str, tag: str) -> logging.Logger:
    return setup_logger(
        name=f"{tag}_logger",
        log_file=f"{settings.LOG_DIR}/{name}.log",
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        sentry_tag=tag,
    )


app_logger = _component_logger("app", "app")
database_logger = _component_logger("database", "database")
request_logger = _component_logger("requests", "request")
auth_logger = _component_logger("auth", "auth")
otp_logger = _component_logger("otp", "otp")
brevo_logger = _component_logger("brevo", "brevo")
scheduler_logger = _component_logger("scheduler", "scheduler")
utils_logger = _component_logger("utils", "utils")

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "app_logger",
    "database_logger",
    "request_logger",
    "auth_logger",
    "otp_logger",
    "brevo_logger",
    "scheduler_logger",
    "utils_logger",
]
