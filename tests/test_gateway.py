"""
Tests for the notification gateway.

Tests cover:
- Recipient normalization
- Provider ordering and fallback
- Retry with backoff and connection reset
- Exhaustion and unconfigured providers
- SMTP connection handling
- Resend API responses and transport errors
"""

import asyncio
import json
import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from core.config import EmailConfig
from core.exceptions import InvalidRecipientError, NotificationDeliveryError
from notifications.gateway import NotificationGateway, ProviderRoute, build_gateway, normalize_recipients
from notifications.models import EmailMessage, ProviderError
from notifications.providers.resend import ResendProvider
from notifications.providers.smtp import SmtpProvider
from notifications.retry import SINGLE_ATTEMPT, RetryPolicy
from tests.fakes import FakeProvider, connection_error


def make_gateway(*routes):
    sleep = AsyncMock()
    return NotificationGateway(list(routes), sleep=sleep), sleep


# =============================================================
# TEST: Recipients
# =============================================================

class TestNormalizeRecipients:

    def test_comma_separated_string(self):
        assert normalize_recipients(" a@x.com, b@x.com ,") == ("a@x.com", "b@x.com")

    def test_duplicates_removed_case_insensitively(self):
        assert normalize_recipients(["A@x.com", "a@x.com", "b@x.com"]) == ("A@x.com", "b@x.com")

    @pytest.mark.parametrize("recipients", [None, "", " , ", [], ["  "]])
    def test_empty_is_rejected(self, recipients):
        with pytest.raises(InvalidRecipientError):
            normalize_recipients(recipients)


class TestRetryPolicy:

    def test_default_backoff(self):
        policy = RetryPolicy()
        assert [policy.delay_after(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 10.0]

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


# =============================================================
# TEST: Delivery
# =============================================================

class TestGatewaySend:

    @pytest.mark.asyncio
    async def test_primary_success_skips_fallback(self):
        api, smtp = FakeProvider("resend"), FakeProvider("smtp")
        gateway, _ = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT), ProviderRoute(smtp, RetryPolicy()))

        result = await gateway.send("jane@example.com", "Hello", "Body", "<p>Body</p>")

        assert result.provider == "resend"
        assert result.message_id == "resend-1"
        assert api.sent[0].recipients == ("jane@example.com",)
        assert smtp.send_calls == 0

    @pytest.mark.asyncio
    async def test_api_failure_falls_through_immediately(self):
        api = FakeProvider("resend", failures=[ProviderError("resend", "API error 500")])
        smtp = FakeProvider("smtp")
        gateway, sleep = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT), ProviderRoute(smtp, RetryPolicy()))

        result = await gateway.send("jane@example.com", "Hello", "Body")

        assert result.provider == "smtp"
        assert api.send_calls == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_skipped(self):
        api = FakeProvider("resend", configured=False)
        smtp = FakeProvider("smtp")
        gateway, _ = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT), ProviderRoute(smtp))

        result = await gateway.send("jane@example.com", "Hello", "Body")

        assert result.provider == "smtp"
        assert api.send_calls == 0

    @pytest.mark.asyncio
    async def test_smtp_retries_with_backoff_then_succeeds(self):
        smtp = FakeProvider("smtp", failures=[connection_error("smtp"), ProviderError("smtp", "451 busy")])
        gateway, sleep = make_gateway(ProviderRoute(smtp, RetryPolicy()))

        result = await gateway.send("jane@example.com", "Hello", "Body")

        assert result.provider == "smtp"
        assert smtp.send_calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_connection_errors_reset_the_provider(self):
        smtp = FakeProvider("smtp", failures=[connection_error("smtp"), ProviderError("smtp", "550 rejected")])
        gateway, _ = make_gateway(ProviderRoute(smtp, RetryPolicy()))

        await gateway.send("jane@example.com", "Hello", "Body")

        assert smtp.reset_calls == 1

    @pytest.mark.asyncio
    async def test_exhaustion_is_terminal(self):
        api = FakeProvider("resend")
        api.always_fail = ProviderError("resend", "API error 401")
        smtp = FakeProvider("smtp")
        smtp.always_fail = connection_error("smtp")
        gateway, sleep = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT), ProviderRoute(smtp, RetryPolicy()))

        with pytest.raises(NotificationDeliveryError) as exc:
            await gateway.send("jane@example.com", "Hello", "Body")

        assert len(exc.value.attempts) == 4
        assert "after 4 attempt(s)" in exc.value.message
        assert smtp.send_calls == 3
        assert smtp.reset_calls == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_nothing_configured(self):
        gateway, _ = make_gateway(ProviderRoute(FakeProvider("resend", configured=False)))

        assert gateway.configured is False
        with pytest.raises(NotificationDeliveryError) as exc:
            await gateway.send("jane@example.com", "Hello", "Body")
        assert "not configured" in exc.value.message

    @pytest.mark.asyncio
    async def test_invalid_recipient_sends_nothing(self):
        api = FakeProvider("resend")
        gateway, _ = make_gateway(ProviderRoute(api))

        with pytest.raises(InvalidRecipientError):
            await gateway.send(" ", "Hello", "Body")
        assert api.send_calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_falls_back(self):
        api = FakeProvider("resend", failures=[ValueError("Expecting value: line 1 column 1")])
        smtp = FakeProvider("smtp")
        gateway, _ = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT), ProviderRoute(smtp, RetryPolicy()))

        result = await gateway.send("jane@example.com", "Hello", "Body")

        assert result.provider == "smtp"
        assert api.reset_calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_recorded(self):
        api = FakeProvider("resend")
        api.always_fail = RuntimeError("boom")
        gateway, _ = make_gateway(ProviderRoute(api, SINGLE_ATTEMPT))

        with pytest.raises(NotificationDeliveryError) as exc:
            await gateway.send("jane@example.com", "Hello", "Body")

        [attempt] = exc.value.attempts
        assert attempt["provider"] == "resend"
        assert attempt["connection_error"] is False
        assert "boom" in attempt["error"]

    @pytest.mark.asyncio
    async def test_close_closes_every_provider(self):
        api, smtp = FakeProvider("resend"), FakeProvider("smtp")
        gateway, _ = make_gateway(ProviderRoute(api), ProviderRoute(smtp))

        await gateway.close()

        assert api.closed and smtp.closed


class TestBuildGateway:

    def test_configured_from_smtp_only(self):
        gateway = build_gateway(EmailConfig(smtp_user="mailer@example.com", smtp_password="pw"))
        assert gateway.configured

    def test_nothing_configured(self):
        assert build_gateway(EmailConfig()).configured is False


# =============================================================
# TEST: SMTP provider
# =============================================================

class TestSmtpProvider:

    def make_provider(self, port=587):
        return SmtpProvider(
            host="smtp.example.com",
            port=port,
            username="mailer@example.com",
            password="pw",
            from_address="Desk <mailer@example.com>",
        )

    def message(self):
        return EmailMessage(recipients=("jane@example.com",), subject="Hi", text="Body", html="<p>Body</p>")

    @pytest.mark.asyncio
    async def test_connection_is_reused(self):
        provider = self.make_provider()
        with patch("notifications.providers.smtp.smtplib.SMTP") as smtp_cls:
            connection = MagicMock()
            connection.has_extn.return_value = True
            smtp_cls.return_value = connection

            first = await provider.send(self.message())
            await provider.send(self.message())

        assert smtp_cls.call_count == 1
        connection.starttls.assert_called_once()
        connection.login.assert_called_once_with("mailer@example.com", "pw")
        assert connection.send_message.call_count == 2
        assert first.provider == "smtp"
        assert first.message_id.endswith("@example.com>")

    @pytest.mark.asyncio
    async def test_disconnect_is_a_connection_error_and_reset_reconnects(self):
        provider = self.make_provider()
        with patch("notifications.providers.smtp.smtplib.SMTP") as smtp_cls:
            broken, fresh = MagicMock(), MagicMock()
            broken.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")
            smtp_cls.side_effect = [broken, fresh]

            with pytest.raises(ProviderError) as exc:
                await provider.send(self.message())
            assert exc.value.connection_error is True

            await provider.reset()
            await provider.send(self.message())

        broken.quit.assert_called_once()
        fresh.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_recipient_refusal_is_not_a_connection_error(self):
        provider = self.make_provider()
        with patch("notifications.providers.smtp.smtplib.SMTP") as smtp_cls:
            connection = MagicMock()
            connection.send_message.side_effect = smtplib.SMTPRecipientsRefused({"jane@example.com": (550, b"no")})
            smtp_cls.return_value = connection

            with pytest.raises(ProviderError) as exc:
                await provider.send(self.message())

        assert exc.value.connection_error is False

    @pytest.mark.asyncio
    async def test_implicit_tls_port(self):
        provider = self.make_provider(port=465)
        with patch("notifications.providers.smtp.smtplib.SMTP_SSL") as ssl_cls:
            ssl_cls.return_value = MagicMock()
            await provider.send(self.message())
        ssl_cls.assert_called_once()


# =============================================================
# TEST: Resend provider
# =============================================================

class TestResendProvider:

    def make_provider(self, response=None, error=None):
        provider = ResendProvider(api_key="re_test", from_address="Desk <desk@example.com>", reply_to="help@example.com")
        session = MagicMock()
        if error is not None:
            session.post.side_effect = error
        else:
            session.post.return_value.__aenter__.return_value = response
            session.post.return_value.__aexit__.return_value = False
        provider._get_session = AsyncMock(return_value=session)
        return provider, session

    def response(self, status=200, data=None, text=""):
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=data)
        response.text = AsyncMock(return_value=text)
        return response

    def message(self):
        return EmailMessage(recipients=("jane@example.com",), subject="Hi", text="Body", html="<p>Body</p>")

    @pytest.mark.asyncio
    async def test_message_id_is_extracted(self):
        provider, session = self.make_provider(self.response(data={"id": "msg_123"}))

        result = await provider.send(self.message())

        assert result.provider == "resend"
        assert result.message_id == "msg_123"
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == ResendProvider.API_URL
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"
        assert kwargs["json"]["to"] == ["jane@example.com"]
        assert kwargs["json"]["html"] == "<p>Body</p>"
        assert kwargs["json"]["reply_to"] == "help@example.com"

    @pytest.mark.asyncio
    async def test_non_2xx_is_an_api_error(self):
        provider, _ = self.make_provider(self.response(status=422, text='{"message": "invalid from"}'))

        with pytest.raises(ProviderError) as exc:
            await provider.send(self.message())

        assert exc.value.connection_error is False
        assert "422" in str(exc.value)

    @pytest.mark.asyncio
    async def test_unreadable_2xx_body_is_accepted(self):
        response = self.response()
        response.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "ok", 0))
        provider, _ = self.make_provider(response)

        result = await provider.send(self.message())

        assert result.provider == "resend"
        assert result.message_id is None

    @pytest.mark.asyncio
    async def test_body_without_id(self):
        provider, _ = self.make_provider(self.response(data=["queued"]))

        result = await provider.send(self.message())

        assert result.message_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("connection refused"),
    ])
    async def test_transport_failures_are_connection_errors(self, error):
        provider, _ = self.make_provider(error=error)

        with pytest.raises(ProviderError) as exc:
            await provider.send(self.message())

        assert exc.value.connection_error is True

    @pytest.mark.asyncio
    async def test_other_client_errors_are_not_connection_errors(self):
        provider, _ = self.make_provider(error=aiohttp.ClientPayloadError("truncated"))

        with pytest.raises(ProviderError) as exc:
            await provider.send(self.message())

        assert exc.value.connection_error is False

    def test_configured_requires_api_key(self):
        assert ResendProvider(api_key=None, from_address="desk@example.com").configured is False
