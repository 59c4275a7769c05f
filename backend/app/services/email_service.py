"""
Email Service for the Electrical Supplier backend
=================================================
Handles outbound mail over SMTP (aiosmtplib):
- Staff notification for every accepted quote request
- Customer confirmation with the quote reference number
- SMTP connectivity check for the management CLI

Sending never raises: failures are logged and reported as False so the
caller decides what a failed notification means.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional, Tuple
from datetime import datetime

from app.core.config import settings
from app.core.logging_config import logger
from app.modules.quotes.notifier import QuoteNotification


SMTP_TIMEOUT_SECONDS = 10


def _field(value: Optional[str]) -> str:
    return value if value else "-"


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.start_tls = settings.SMTP_START_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.admin_email = settings.ADMIN_EMAIL
        self.company_name = settings.COMPANY_NAME

    @property
    def is_configured(self) -> bool:
        """SMTP host and real credentials present"""
        return settings.email_configured

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] SMTP not configured, skipping email send")
            return False
        if not to_email:
            logger.warning(f"[Email] No recipient for '{subject}', skipping")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject
            if reply_to:
                message["Reply-To"] = reply_to

            # Plain text first so HTML is the preferred part
            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.start_tls,
                timeout=SMTP_TIMEOUT_SECONDS,
            )

            logger.info(f"[Email/SMTP] Sent '{subject}' to {to_email}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send '{subject}' to {to_email}: {e}")
            return False

    async def verify_connection(self) -> Tuple[bool, str]:
        """Connect and authenticate without sending anything"""
        if not self.is_configured:
            return False, "SMTP is not configured (host, user and a real password are required)"

        smtp = aiosmtplib.SMTP(
            hostname=self.smtp_host,
            port=self.smtp_port,
            start_tls=self.start_tls,
            timeout=SMTP_TIMEOUT_SECONDS,
        )
        try:
            await smtp.connect()
            await smtp.login(self.smtp_user, self.smtp_password)
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError) as e:
            return False, f"{type(e).__name__}: {e}"
        return True, f"Connected to {self.smtp_host}:{self.smtp_port} as {self.smtp_user}"

    # ==================== QUOTE EMAILS ====================

    async def send_quote_notification(self, notification: QuoteNotification) -> bool:
        """Tell staff a new quote request arrived"""
        n = notification
        subject = f"New quote request {n.reference_number} from {n.name}"
        rows = [
            ("Reference", n.reference_number),
            ("Name", n.name),
            ("Company", _field(n.company)),
            ("Email", n.email),
            ("Phone", n.phone),
            ("WhatsApp", _field(n.whatsapp)),
            ("Product", _field(n.product_name)),
            ("Quantity", _field(n.quantity)),
            ("Received", n.created_at.strftime("%Y-%m-%d %H:%M UTC")),
        ]

        table = "".join(
            f"<tr><td style=\"padding: 6px 12px; color: #6b7280;\">{label}</td>"
            f"<td style=\"padding: 6px 12px;\"><strong>{escape(value)}</strong></td></tr>"
            for label, value in rows
        )
        details = escape(_field(n.project_details)).replace("\n", "<br>")

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #1e3a8a;">New quote request</h2>
                <table style="border-collapse: collapse; width: 100%;">{table}</table>
                <h3>Project details</h3>
                <p style="background: #f9fafb; padding: 12px; border-radius: 6px;">{details}</p>
            </div>
        </body>
        </html>
        """

        text_content = "New quote request\n\n" + "\n".join(
            f"{label}: {value}" for label, value in rows
        ) + f"\n\nProject details:\n{_field(n.project_details)}\n"

        return await self.send_email(
            self.admin_email, subject, html_content, text_content, reply_to=n.email
        )

    async def send_quote_confirmation(self, notification: QuoteNotification) -> bool:
        """Acknowledge the request to the customer"""
        n = notification
        subject = f"We received your quote request ({n.reference_number}) - {self.company_name}"
        contact_lines = [
            line for line in (
                f"Phone: {settings.COMPANY_PHONE}" if settings.COMPANY_PHONE else "",
                f"WhatsApp: {settings.COMPANY_WHATSAPP}" if settings.COMPANY_WHATSAPP else "",
                settings.COMPANY_ADDRESS,
            ) if line
        ]

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #1e3a8a;">Thank you, {escape(n.name)}</h2>
                <p>We have received your quote request and our sales team will get back to you shortly.</p>
                <p>Your reference number is <strong>{n.reference_number}</strong>. Please quote it in any follow-up.</p>
                <p>Product: {escape(_field(n.product_name))}<br>Quantity: {escape(_field(n.quantity))}</p>
                <p style="font-size: 13px; color: #6b7280;">{"<br>".join(escape(line) for line in contact_lines)}</p>
                <p style="font-size: 12px; color: #6b7280;">&copy; {datetime.utcnow().year} {escape(self.company_name)}</p>
            </div>
        </body>
        </html>
        """

        text_content = (
            f"Thank you, {n.name}\n\n"
            "We have received your quote request and our sales team will get back to you shortly.\n\n"
            f"Reference number: {n.reference_number}\n"
            f"Product: {_field(n.product_name)}\n"
            f"Quantity: {_field(n.quantity)}\n\n"
            + "\n".join(contact_lines)
            + f"\n\n- {self.company_name}\n"
        )

        return await self.send_email(n.email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()
