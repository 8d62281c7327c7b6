from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware

from transit_api.core.config import Settings, app_logger, settings as default_settings
from transit_api.core.db import dispose_db
from transit_api.core.dependencies import get_async_session
from transit_api.core.exceptions.handlers import (
    app_exception_handler,
    authentication_exception_handler,
    database_exception_handler,
    exception_schema,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from transit_api.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
)
from transit_api.core.routers import api_router
from transit_api.core.services import (
    BrevoService,
    OTPNotifier,
    Renderer,
    build_services,
)
from transit_api.infrastructure.scheduler import shutdown_scheduler, start_scheduler


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_logger.info("Starting application...")

        app_logger.info("Initializing Brevo service...")
        await BrevoService.init(
            api_key=settings.BREVO_API_KEY,
            sender_email=settings.BREVO_SENDER_EMAIL,
            sender_name=settings.BREVO_SENDER_NAME,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
        app_logger.info("Brevo service initialized successfully.")

        app_logger.info("Initializing template renderer...")
        Renderer.initialize(settings.TEMPLATE_DIR)
        app_logger.info("Template renderer initialized successfully.")

        if settings.ENABLE_SCHEDULER:
            app_logger.info("Starting scheduler...")
            start_scheduler()
        else:
            app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

        yield

        app_logger.info("Shutting down application...")
        if settings.ENABLE_SCHEDULER:
            shutdown_scheduler()
        await BrevoService.aclose()
        await dispose_db()
        app_logger.info("Shutdown complete.")

    return lifespan


def create_app(
    settings: Settings | None = None,
    notifier: OTPNotifier | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the process-wide settings.
        notifier: OTP delivery channel; defaults to ``BrevoService``.

    Raises:
        ValueError: A required secret (JWT or OTP HMAC) is missing.
    """
    settings = settings or default_settings

    app = FastAPI(
        lifespan=_build_lifespan(settings),
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
        debug=settings.DEBUG,
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        responses=exception_schema,
    )
    app.state.settings = settings
    app.state.services = build_services(settings, notifier)

    # Starlette resolves handlers by MRO, so subclasses win over AppException
    app.add_exception_handler(AuthenticationException, authentication_exception_handler)
    app.add_exception_handler(DatabaseException, database_exception_handler)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request):
        base_url = str(request.base_url).rstrip("/")
        return {
            "success": True,
            "message": f"Welcome to the {settings.APP_NAME}",
            "documentations": {
                "swagger": f"{base_url}/docs",
                "redoc": f"{base_url}/redoc",
            },
            "version": settings.APP_VERSION,
        }

    @app.head("/health", include_in_schema=False)
    @app.get("/health")
    async def health_check(
        session: Annotated[AsyncSession, Depends(get_async_session)],
    ):
        """
        Health check endpoint.

        Checks:
            - Database connectivity
        """
        try:
            async with session.begin():
                result = await session.execute(text("SELECT 1"))
                database_ok = result.scalar() == 1
        except SQLAlchemyError as e:
            app_logger.error(f"Database health check failed: {type(e).__name__}")
            database_ok = False

        if not database_ok:
            raise AppException(
                "One or more health checks failed.",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return {
            "success": True,
            "status": "ok",
            "checks": {"database": "ok"},
        }

    return app


app = create_app()
