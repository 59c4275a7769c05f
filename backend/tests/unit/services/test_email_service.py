"""
Unit Tests for EmailService
Tests for: SMTP configuration gate, quote notification and confirmation content
"""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

import aiosmtplib

from app.core.config import settings
from app.modules.quotes.notifier import QuoteNotification
from app.services.email_service import EmailService


@pytest.fixture
def smtp_settings(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.supplier.test")
    monkeypatch.setattr(settings, "SMTP_USER", "mailer@supplier.test")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "s3cret-smtp-pass")
    return settings


@pytest.fixture
def notification() -> QuoteNotification:
    return QuoteNotification(
        quote_id="1b4e28ba-2fa1-11d2-883f-0016d3cca427",
        reference_number="QR-20260203-1B4E28",
        name="Tariq <b>Khan</b>",
        email="tariq@example.com",
        phone="0300 1234567",
        created_at=datetime(2026, 2, 3, 10, 0, 0),
        company="Khan Electric",
        product_name="LED panel 2x2",
        quantity="120",
        project_details="Office floor\nDelivery to site",
    )


def sent_message(send_mock: AsyncMock):
    return send_mock.await_args.args[0]


class TestConfiguration:

    @pytest.mark.asyncio
    async def test_unconfigured_does_not_send(self, notification):
        """Test that without SMTP settings nothing is attempted"""
        service = EmailService()

        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert await service.send_quote_notification(notification) is False

        send.assert_not_awaited()

    def test_placeholder_password_is_not_configured(self, smtp_settings, monkeypatch):
        """Test that template credentials from .env.example are treated as missing"""
        monkeypatch.setattr(settings, "SMTP_PASSWORD", "your-app-password")

        assert EmailService().is_configured is False

    @pytest.mark.asyncio
    async def test_verify_connection_unconfigured(self):
        ok, detail = await EmailService().verify_connection()

        assert ok is False
        assert "not configured" in detail


class TestQuoteEmails:

    @pytest.mark.asyncio
    async def test_staff_notification(self, smtp_settings, notification):
        """Test recipient, reply-to and escaping of the staff email"""
        service = EmailService()

        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert await service.send_quote_notification(notification) is True

        message = sent_message(send)
        assert message["To"] == settings.ADMIN_EMAIL
        assert message["Reply-To"] == "tariq@example.com"
        assert "QR-20260203-1B4E28" in message["Subject"]
        html = message.get_payload()[-1].get_payload(decode=True).decode()
        assert "&lt;b&gt;Khan&lt;/b&gt;" in html
        assert "<b>Khan</b>" not in html
        assert send.await_args.kwargs["hostname"] == "smtp.supplier.test"

    @pytest.mark.asyncio
    async def test_customer_confirmation(self, smtp_settings, notification):
        """Test that the customer gets the reference number"""
        service = EmailService()

        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert await service.send_quote_confirmation(notification) is True

        message = sent_message(send)
        assert message["To"] == "tariq@example.com"
        text = message.get_payload()[0].get_payload(decode=True).decode()
        assert "Reference number: QR-20260203-1B4E28" in text

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self, smtp_settings, notification):
        """Test that SMTP errors are reported, not raised"""
        service = EmailService()
        error = aiosmtplib.SMTPConnectError("connection refused")

        with patch("app.services.email_service.aiosmtplib.send", new=AsyncMock(side_effect=error)):
            assert await service.send_quote_confirmation(notification) is False
