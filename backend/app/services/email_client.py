"""
Resend email client.

Thin async wrapper over Resend's REST API (POST /emails). The client is
constructed explicitly (see app.dependencies.get_email_client) and never
shared as a module-level singleton.

Resend response assumptions
---------------------------
Success:  2xx  {"id": "<message id>"}
Failure:  4xx/5xx  {"statusCode": 422, "name": "validation_error", "message": "..."}

Some gateways and SDK shims wrap errors as 2xx {"error": {...}}; those are
treated as failures too, as is a 2xx body without an id. The provider's
verdict, not the HTTP status alone, decides the outcome.
"""

import logging
from typing import Any, Optional

import httpx

from app.errors import DispatchError
from app.models.notification import DispatchResult, OutboundEmail

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.resend.com"


def _parse_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text or f"HTTP {response.status_code}"}
    if isinstance(body, dict):
        return body
    return {"message": str(body)}


def interpret_response(response: httpx.Response) -> DispatchResult:
    """Map a Resend HTTP response to a DispatchResult."""
    body = _parse_body(response)

    if response.is_success:
        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            return DispatchResult(success=False, error=error)

        message_id = body.get("id")
        data = body.get("data")
        if not message_id and isinstance(data, dict):
            message_id = data.get("id")
        if message_id:
            return DispatchResult(success=True, provider_message_id=str(message_id))

        return DispatchResult(
            success=False,
            error={"name": "missing_id", "message": "Provider response did not include a message id"},
        )

    error = dict(body)
    error.setdefault("statusCode", response.status_code)
    return DispatchResult(success=False, error=error)


class ResendClient:
    """
    Send emails through Resend.

    Usable as an async context manager; an injected http_client is left open
    for its owner to close.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def send_email(self, email: OutboundEmail) -> DispatchResult:
        """
        Send one email (to any number of recipients in a single call).

        Returns a DispatchResult; transport failures are reported as a failed
        result rather than raised. Raises DispatchError only when no API key
        is configured.
        """
        if not self.is_configured:
            raise DispatchError("Email provider is not configured (RESEND_API_KEY is empty)")

        try:
            response = await self._client.post(
                f"{self._base_url}/emails",
                json=email.to_provider_payload(),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.RequestError as exc:
            logger.error(f"Could not reach email provider: {exc}")
            return DispatchResult(
                success=False,
                error={"name": "transport_error", "message": f"Could not reach email provider: {exc}"},
            )

        result = interpret_response(response)
        if result.success:
            logger.info(
                f"Email {result.provider_message_id} sent to {len(email.to)} recipient(s)"
            )
        else:
            logger.error(f"Email provider rejected send (HTTP {response.status_code}): {result.error}")
        return result

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ResendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
