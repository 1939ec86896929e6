"""
Notifications Package.

Transactional email behind one gateway with an ordered list of
providers: the HTTP API provider first, SMTP as the fallback.

Modules:
- models: Message, result and provider contract
- retry: Backoff policy per provider
- gateway: Recipient normalization, fallback and retry
- templates: Account lifecycle messages
- providers/: Resend API and SMTP
"""

from notifications.gateway import NotificationGateway, ProviderRoute, build_gateway
from notifications.models import DeliveryResult, EmailMessage, EmailProvider, ProviderError
from notifications.retry import RetryPolicy


__all__ = [
    "NotificationGateway",
    "ProviderRoute",
    "build_gateway",
    "DeliveryResult",
    "EmailMessage",
    "EmailProvider",
    "ProviderError",
    "RetryPolicy",
]
