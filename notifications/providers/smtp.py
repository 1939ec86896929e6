"""
SMTP Provider.

============================================================
PURPOSE
============================================================
Send email over SMTP. Port 465 uses implicit TLS, any other
port upgrades with STARTTLS when the server offers it.

============================================================
CONNECTION
============================================================
- One connection kept open between sends
- smtplib blocks, so every call runs in a worker thread
- Sends are serialized on an asyncio.Lock
- reset() drops the connection; the next send reconnects

============================================================
"""

import asyncio
import logging
import smtplib
import socket
import ssl
from email.message import EmailMessage as MimeMessage
from email.utils import formatdate, make_msgid, parseaddr
from typing import Optional

from notifications.models import DeliveryResult, EmailMessage, ProviderError


logger = logging.getLogger(__name__)

# Transport failures that call for a fresh connection
CONNECTION_ERRORS = (
    socket.timeout,
    TimeoutError,
    ConnectionResetError,
    ConnectionRefusedError,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
)


class SmtpProvider:
    """SMTP relay."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        from_address: str,
        reply_to: Optional[str] = None,
        timeout_seconds: float = 90.0,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address
        self._reply_to = reply_to
        self._timeout = timeout_seconds
        self._connection: Optional[smtplib.SMTP] = None
        self._lock = asyncio.Lock()

        if self.configured:
            logger.info(f"SMTP email provider enabled: {host}:{port}")

    @property
    def configured(self) -> bool:
        return bool(self._host and self._username and self._password)

    @property
    def secure(self) -> bool:
        return self._port == 465

    async def send(self, message: EmailMessage) -> DeliveryResult:
        mime = self._build(message)
        async with self._lock:
            try:
                await asyncio.to_thread(self._deliver, mime)
            except CONNECTION_ERRORS as e:
                raise ProviderError(self.name, f"connection error: {e!r}", connection_error=True) from e
            except (smtplib.SMTPException, OSError) as e:
                raise ProviderError(self.name, repr(e)) from e
        return DeliveryResult(provider=self.name, message_id=mime["Message-ID"])

    async def reset(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._disconnect)
        logger.info("SMTP connection reset")

    async def close(self) -> None:
        await self.reset()

    # =========================================================
    # BLOCKING HELPERS (worker thread)
    # =========================================================

    def _build(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["From"] = self._from_address
        mime["To"] = ", ".join(message.recipients)
        mime["Subject"] = message.subject
        mime["Date"] = formatdate(localtime=False)
        domain = parseaddr(self._from_address)[1].partition("@")[2] or None
        mime["Message-ID"] = make_msgid(domain=domain)
        if self._reply_to:
            mime["Reply-To"] = self._reply_to
        mime.set_content(message.text)
        if message.html:
            mime.add_alternative(message.html, subtype="html")
        return mime

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.secure:
            connection = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=context)
        else:
            connection = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
            connection.ehlo()
            if connection.has_extn("starttls"):
                connection.starttls(context=context)
                connection.ehlo()
        connection.login(self._username, self._password)
        return connection

    def _deliver(self, mime: MimeMessage) -> None:
        if self._connection is None:
            self._connection = self._connect()
        self._connection.send_message(mime)

    def _disconnect(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug(f"SMTP quit failed on reset: {e!r}")
