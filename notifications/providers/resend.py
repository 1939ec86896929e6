"""
Resend API Provider.

============================================================
PURPOSE
============================================================
Send email through the Resend HTTP API.

- One aiohttp session per provider, created on first use
- Non-2xx answers and transport errors raise ProviderError

============================================================
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from notifications.models import DeliveryResult, EmailMessage, ProviderError


logger = logging.getLogger(__name__)


class ResendProvider:
    """Resend transactional email API."""

    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: Optional[str],
        from_address: str,
        reply_to: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ):
        self._api_key = api_key
        self._from_address = from_address
        self._reply_to = reply_to
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        if self.configured:
            logger.info("Resend email provider enabled")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, message: EmailMessage) -> DeliveryResult:
        payload = {
            "from": self._from_address,
            "to": list(message.recipients),
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            payload["html"] = message.html
        if self._reply_to:
            payload["reply_to"] = self._reply_to

        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            session = await self._get_session()
            async with session.post(self.API_URL, json=payload, headers=headers) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise ProviderError(self.name, f"API error {response.status}: {body[:200]}")
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    # Accepted without a readable id
                    logger.warning(f"Resend accepted the message with an unreadable body (status {response.status})")
                    data = None
        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, "request timed out", connection_error=True) from e
        except aiohttp.ClientConnectionError as e:
            raise ProviderError(self.name, f"connection failed: {e}", connection_error=True) from e
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, str(e)) from e

        message_id = data.get("id") if isinstance(data, dict) else None
        return DeliveryResult(provider=self.name, message_id=message_id)

    async def reset(self) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
