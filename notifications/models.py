"""
Notification Models.

============================================================
PURPOSE
============================================================
The payload every provider receives, the result it returns,
and the capability a provider implements.

============================================================
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class EmailMessage:
    """One message, already addressed to normalized recipients."""

    recipients: Tuple[str, ...]
    subject: str
    text: str
    html: Optional[str] = None


@dataclass(frozen=True)
class DeliveryResult:
    """Which provider accepted the message, and its id for it."""

    provider: str
    message_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"provider": self.provider, "messageId": self.message_id}


class ProviderError(Exception):
    """
    A provider failed to accept a message.

    connection_error marks failures of the transport itself
    (timeout, reset, refused). The provider should be reset
    before it is tried again.
    """

    def __init__(self, provider: str, message: str, connection_error: bool = False):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.connection_error = connection_error


@runtime_checkable
class EmailProvider(Protocol):
    """Capability shared by every email provider."""

    name: str

    @property
    def configured(self) -> bool:
        """Whether credentials are present."""
        ...

    async def send(self, message: EmailMessage) -> DeliveryResult:
        """
        Hand the message to the provider.

        Raises:
            ProviderError: the provider did not accept it
        """
        ...

    async def reset(self) -> None:
        """Discard any open connection; the next send reconnects."""
        ...

    async def close(self) -> None:
        ...
