"""
Notification Gateway.

============================================================
PURPOSE
============================================================
send(recipients, subject, text, html) -> DeliveryResult

PRINCIPLES:
- Recipients normalized to a non-empty, de-duplicated tuple
- Providers tried in order; unconfigured ones are skipped
- Each provider retried under its own RetryPolicy
- Connection-class failures reset the provider before retry
- Exhaustion raises NotificationDeliveryError to the caller

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.config import EmailConfig
from core.exceptions import InvalidRecipientError, NotificationDeliveryError
from core.logging_setup import mask_email
from notifications.models import DeliveryResult, EmailMessage, EmailProvider, ProviderError
from notifications.providers.resend import ResendProvider
from notifications.providers.smtp import SmtpProvider
from notifications.retry import SINGLE_ATTEMPT, RetryPolicy


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def normalize_recipients(recipients: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """
    Normalize recipients.

    Accepts one address, a comma-separated string, or an iterable.
    Blank entries are dropped and duplicates removed (case-insensitive),
    keeping first-seen order.

    Raises:
        InvalidRecipientError: nothing usable remains
    """
    if recipients is None:
        raise InvalidRecipientError()
    if isinstance(recipients, str):
        recipients = recipients.split(",")

    seen = set()
    normalized: List[str] = []
    for address in recipients:
        if not isinstance(address, str):
            continue
        address = address.strip()
        key = address.lower()
        if not address or key in seen:
            continue
        seen.add(key)
        normalized.append(address)

    if not normalized:
        raise InvalidRecipientError()
    return tuple(normalized)


@dataclass
class ProviderRoute:
    """A provider and the retry policy it runs under."""

    provider: EmailProvider
    policy: RetryPolicy = field(default_factory=RetryPolicy)


class NotificationGateway:
    """
    Ordered provider fallback with per-provider retry.

    Usage:
        gateway = NotificationGateway([
            ProviderRoute(resend, SINGLE_ATTEMPT),
            ProviderRoute(smtp, RetryPolicy()),
        ])
        result = await gateway.send("jane@example.com", "Subject", "Body")
    """

    def __init__(
        self,
        routes: Sequence[ProviderRoute],
        sleep: Optional[Sleep] = None,
    ):
        self._routes = list(routes)
        self._sleep = sleep or asyncio.sleep

    @property
    def configured(self) -> bool:
        return any(route.provider.configured for route in self._routes)

    async def send(
        self,
        recipients: Union[str, Iterable[str], None],
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> DeliveryResult:
        """
        Deliver one message.

        Returns:
            DeliveryResult of the provider that accepted it

        Raises:
            InvalidRecipientError: no usable recipient
            NotificationDeliveryError: every provider failed or none is configured
        """
        message = EmailMessage(
            recipients=normalize_recipients(recipients),
            subject=subject,
            text=text,
            html=html,
        )
        masked = ", ".join(mask_email(r) for r in message.recipients)
        attempts: List[Dict[str, Any]] = []

        for route in self._routes:
            provider = route.provider
            if not provider.configured:
                logger.debug(f"Email provider {provider.name} not configured, skipping")
                continue

            result = await self._send_with_retry(route, message, masked, attempts)
            if result is not None:
                return result

            logger.warning(f"Email provider {provider.name} exhausted, trying next provider")

        if not attempts:
            logger.error("No email provider is configured")
            raise NotificationDeliveryError(
                "Email service is not configured. Set RESEND_API_KEY or EMAIL_USER/EMAIL_PASS."
            )

        last = attempts[-1]["error"]
        logger.error(f"Email to {masked} failed after {len(attempts)} attempt(s): {last}")
        raise NotificationDeliveryError(
            f"Failed to send email after {len(attempts)} attempt(s): {last}",
            attempts=attempts,
        )

    async def _send_with_retry(
        self,
        route: ProviderRoute,
        message: EmailMessage,
        masked: str,
        attempts: List[Dict[str, Any]],
    ) -> Optional[DeliveryResult]:
        provider, policy = route.provider, route.policy

        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = await provider.send(message)
                logger.info(
                    f"Email '{message.subject}' sent to {masked} via {result.provider} "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
                return result
            except ProviderError as e:
                error = e
            except Exception as e:
                # Recorded as a non-connection failure
                logger.exception(f"Email provider {provider.name} raised unexpectedly")
                error = ProviderError(provider.name, f"unexpected error: {e!r}")

            attempts.append({
                "provider": provider.name,
                "attempt": attempt,
                "error": str(error),
                "connection_error": error.connection_error,
            })
            logger.warning(
                f"Email via {provider.name} failed "
                f"(attempt {attempt}/{policy.max_attempts}): {error}"
            )

            if error.connection_error:
                await provider.reset()

            if attempt < policy.max_attempts:
                delay = policy.delay_after(attempt)
                logger.info(f"Retrying {provider.name} in {delay:.1f}s")
                await self._sleep(delay)

        return None

    async def close(self) -> None:
        for route in self._routes:
            await route.provider.close()


def build_gateway(config: EmailConfig) -> NotificationGateway:
    """
    Gateway for the configured providers.

    API provider first with a single attempt, then SMTP with
    the default backoff policy.
    """
    return NotificationGateway([
        ProviderRoute(
            ResendProvider(
                api_key=config.resend_api_key,
                from_address=config.from_address,
                reply_to=config.reply_to,
            ),
            SINGLE_ATTEMPT,
        ),
        ProviderRoute(
            SmtpProvider(
                host=config.smtp_host,
                port=config.smtp_port,
                username=config.smtp_user,
                password=config.smtp_password,
                from_address=config.from_address,
                reply_to=config.reply_to,
                timeout_seconds=config.smtp_timeout_seconds,
            ),
            RetryPolicy(),
        ),
    ])
