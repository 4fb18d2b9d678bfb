"""Async HTTP client for the Resend email API.

Provides ResendClient with retry logic (tenacity, 3 attempts, exponential
backoff 1-10s) on connection errors, timeouts, and 5xx responses. A 4xx
response is a caller error and is raised immediately as EmailDeliveryError.
"""

from __future__ import annotations

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.app.core.monitoring import emails_sent_total
from src.app.services.email.models import EmailMessage, SentEmailResult

logger = structlog.get_logger(__name__)


class EmailNotConfiguredError(RuntimeError):
    """Raised when an email is requested but no provider API key is set."""


class EmailDeliveryError(RuntimeError):
    """Raised when the provider refuses or fails to accept an email."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_server_error(exc: BaseException) -> bool:
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


_email_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=(
        retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException))
        | retry_if_exception(_is_server_error)
    ),
    reraise=True,
)


class ResendClient:
    """Async client for the Resend REST API.

    Args:
        api_key: Resend API key. An empty key leaves the client unconfigured.
        from_address: Default sender, e.g. "EBB Data Room <noreply@...>".
        base_url: API base URL.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._from = from_address
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the configured timeout."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    @_email_retry
    async def _post_email(self, payload: dict) -> dict:
        async with self._client() as client:
            response = await client.post(f"{self._base_url}/emails", json=payload)
            response.raise_for_status()
            return response.json()

    async def send_email(self, email: EmailMessage, template: str = "generic") -> SentEmailResult:
        """Send an email.

        Args:
            email: Message to send.
            template: Template name, used only as a metrics/log label.

        Returns:
            SentEmailResult with the provider's message id.

        Raises:
            EmailNotConfiguredError: If no API key is configured.
            EmailDeliveryError: If the provider rejects the message or stays
                unreachable after retries.
        """
        if not self.is_configured:
            raise EmailNotConfiguredError("Email service not configured")

        payload: dict = {
            "from": self._from,
            "to": email.to,
            "subject": email.subject,
            "html": email.body_html,
        }
        if email.body_text:
            payload["text"] = email.body_text
        if email.reply_to:
            payload["reply_to"] = email.reply_to
        if email.tags:
            payload["tags"] = [{"name": k, "value": v} for k, v in email.tags.items()]

        try:
            data = await self._post_email(payload)
        except httpx.HTTPStatusError as exc:
            emails_sent_total.labels(template=template, status="error").inc()
            message = _error_message(exc.response)
            logger.warning(
                "email.rejected",
                template=template,
                status_code=exc.response.status_code,
                error=message,
            )
            raise EmailDeliveryError(message, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            emails_sent_total.labels(template=template, status="error").inc()
            logger.warning("email.unreachable", template=template, error=str(exc))
            raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc

        emails_sent_total.labels(template=template, status="sent").inc()
        message_id = str(data.get("id", ""))
        logger.info("email.sent", template=template, message_id=message_id, recipients=len(email.to))
        return SentEmailResult(message_id=message_id)


def _error_message(response: httpx.Response) -> str:
    """Extract the provider's error message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Email provider returned {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
