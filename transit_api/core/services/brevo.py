import asyncio
import random
from typing import Any

from fastapi import status as http_status
import httpx
from jinja2 import TemplateError
from pydantic import BaseModel

from transit_api.core.config import brevo_logger, settings
from transit_api.core.exceptions.types import AppException
from transit_api.core.services.template import Renderer

OTP_EMAIL_SUBJECT = "Verify Your Email - CFD Transport System"
OTP_EMAIL_TEMPLATE = "emails/otp_verification.html"


class Contact(BaseModel):
    email: str
    name: str | None = None


class BrevoService:
    """
    Transactional email over the Brevo HTTP API.

    Acts as the notification gateway for OTP codes: ``send_otp_email``
    reports delivery as a bool and never raises for transport problems.
    """

    _base_url: str = settings.BREVO_BASE_URL
    _api_key: str = settings.BREVO_API_KEY
    _sender_email: str = settings.BREVO_SENDER_EMAIL
    _sender_name: str = settings.BREVO_SENDER_NAME
    _timeout: float = settings.EMAIL_TIMEOUT_SECONDS
    _client: httpx.AsyncClient | None = None

    # Bounded retries + backoff
    _BACKOFF_BASE: float = 1.0
    _BACKOFF_MAX: float = 5.0
    _JITTER: float = 0.2  # +/-20%
    _SEND_ATTEMPTS: int = 2

    @classmethod
    def _init_client(cls) -> None:
        if cls._client is None:
            cls._client = httpx.AsyncClient(
                base_url=cls._base_url,
                timeout=httpx.Timeout(cls._timeout),
            )
            brevo_logger.info("Brevo HTTP client initialized")

    @classmethod
    async def aclose(cls) -> None:
        """Close the shared HTTP client, if open."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
            finally:
                cls._client = None
                brevo_logger.info("Brevo HTTP client closed")

    @classmethod
    async def init(
        cls,
        api_key: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Configure credentials and (re)create the HTTP client.

        Parameters left as None keep their current values.
        """
        if api_key is not None:
            cls._api_key = api_key
        if sender_email is not None:
            cls._sender_email = sender_email
        if sender_name is not None:
            cls._sender_name = sender_name
        if timeout is not None:
            cls._timeout = timeout
        await cls.aclose()
        cls._init_client()

    @classmethod
    def _compute_backoff(
        cls, attempt: int, err_headers: httpx.Headers | None = None
    ) -> float:
        """
        Seconds to wait before retry number ``attempt`` (1-based).

        Honors Brevo's ``x-sib-ratelimit-reset`` header when present, capped at
        ``_BACKOFF_MAX``; otherwise exponential backoff with jitter.
        """
        if err_headers and "x-sib-ratelimit-reset" in err_headers:
            try:
                return min(
                    float(err_headers.get("x-sib-ratelimit-reset")), cls._BACKOFF_MAX
                )
            except ValueError:
                pass
        base = min(cls._BACKOFF_BASE * (2 ** (attempt - 1)), cls._BACKOFF_MAX)
        jitter = random.uniform(1 - cls._JITTER, 1 + cls._JITTER)
        return base * jitter

    @classmethod
    def _auth_headers(cls, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "api-key": cls._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    @classmethod
    async def _request(
        cls,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        max_attempts: int = 3,
    ) -> dict[str, Any] | str:
        """
        Call the Brevo API with bounded retries.

        5xx responses, 429s and network errors are retried with backoff up to
        ``max_attempts``; other 4xx responses fail immediately.

        Returns:
            dict[str, Any] | str: JSON body when parseable, otherwise raw text.

        Raises:
            AppException: Client error, or retries exhausted. The original
                httpx exception is chained.
        """
        if cls._client is None:
            cls._init_client()
        assert cls._client is not None

        for attempt in range(1, max_attempts + 1):
            try:
                resp: httpx.Response = await cls._client.request(
                    method, endpoint, headers=cls._auth_headers(headers), json=json
                )
                resp.raise_for_status()
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text

                brevo_logger.info(f"Brevo response: {body}")
                return body

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                try:
                    err_body = exc.response.json()
                except ValueError:
                    err_body = exc.response.text

                if 500 <= status < 600 or status == 429:
                    wait = cls._compute_backoff(attempt, exc.response.headers)
                    brevo_logger.warning(
                        f"{status} from Brevo; attempt {attempt}/{max_attempts}; "
                        f"wait={wait:.1f}s; body={err_body}"
                    )
                    if attempt < max_attempts:
                        await asyncio.sleep(wait)
                        continue
                    brevo_logger.error(f"Brevo error after retries: {status}: {err_body}")
                    raise AppException(
                        message=f"Brevo error after retries: {status}",
                        status_code=http_status.HTTP_502_BAD_GATEWAY,
                    ) from exc

                brevo_logger.error(f"4xx error {status}: {err_body}")
                raise AppException(
                    message=f"Brevo rejected the request: {status}",
                    status_code=http_status.HTTP_502_BAD_GATEWAY,
                ) from exc

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                wait = cls._compute_backoff(attempt)
                brevo_logger.warning(
                    f"Timeout/transport error; attempt {attempt}/{max_attempts}; "
                    f"wait={wait:.1f}s; err={type(exc).__name__}"
                )
                if attempt < max_attempts:
                    await asyncio.sleep(wait)
                    continue
                brevo_logger.error(f"Network error after retries: {type(exc).__name__}")
                raise AppException(
                    message="Brevo network error after retries",
                    status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
                ) from exc

        raise AppException(
            message="Unexpected state: no response after all attempts",
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @classmethod
    async def send_transactional_email(
        cls,
        subject: str,
        to: list[Contact],
        htmlContent: str | None = None,
        textContent: str | None = None,
        max_attempts: int = 3,
    ) -> dict[str, Any] | str:
        """
        Send one transactional email from the configured sender.

        Raises:
            ValueError: Neither HTML nor text content, or no recipient.
            AppException: The Brevo call failed (see ``_request``).
        """
        if not htmlContent and not textContent:
            raise ValueError("Either htmlContent or textContent must be provided")
        if not to:
            raise ValueError("At least one recipient must be provided")

        sender = Contact(email=cls._sender_email, name=cls._sender_name)
        payload: dict[str, Any] = {
            "sender": sender.model_dump(exclude_none=True),
            "to": [c.model_dump(exclude_none=True) for c in to],
            "subject": subject,
        }
        if htmlContent:
            payload["htmlContent"] = htmlContent
        if textContent:
            payload["textContent"] = textContent

        return await cls._request(
            "POST", "/smtp/email", json=payload, max_attempts=max_attempts
        )

    @classmethod
    async def send_otp_email(cls, to: str, name: str, code: str) -> bool:
        """
        Deliver a registration OTP.

        Args:
            to: Recipient address.
            name: Recipient display name for the greeting.
            code: The plaintext 6-digit code.

        Returns:
            bool: True if Brevo accepted the message, False otherwise.
        """
        context = {
            "name": name,
            "otp_code": code,
            "expiry_minutes": settings.OTP_EXPIRY_MINUTES,
            "app_name": settings.APP_NAME,
        }
        text = (
            f"Hello {name},\n\nYour verification code is {code}. "
            f"It expires in {settings.OTP_EXPIRY_MINUTES} minutes.\n\n"
            "If you did not request this code, you can ignore this email."
        )
        try:
            html = await Renderer.render_template(OTP_EMAIL_TEMPLATE, context)
        except (RuntimeError, TemplateError) as e:
            brevo_logger.warning(
                f"OTP template unavailable ({type(e).__name__}), sending text only"
            )
            html = None

        try:
            await cls.send_transactional_email(
                subject=OTP_EMAIL_SUBJECT,
                to=[Contact(email=to, name=name)],
                htmlContent=html,
                textContent=text,
                max_attempts=cls._SEND_ATTEMPTS,
            )
        except AppException as e:
            brevo_logger.error(f"OTP email to {to} failed: {e.message}")
            return False
        return True


__all__ = ["BrevoService", "Contact", "OTP_EMAIL_SUBJECT", "OTP_EMAIL_TEMPLATE"]
