"""
services/email_service.py
-------------------------
Transactional email.

EmailSender.send() never raises: delivery problems come back as
SendResult(success=False, error=...). Callers treat a failed send as
non-fatal for the action that triggered it.

SmtpEmailSender delivers over aiosmtplib: implicit TLS on port 465,
STARTTLS everywhere else. Without SMTP_HOST configured, LoggingEmailSender
logs the message and reports it as not sent.
"""

from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from html import escape
from typing import Optional, Protocol

import aiosmtplib

from saaskit.core.config import settings
from saaskit.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> SendResult: ...


class SmtpEmailSender:
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender

    def _build_mime_message(self, message: EmailMessage) -> MimeMessage:
        msg = MimeMessage()
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype="html")
        return msg

    async def send(self, message: EmailMessage) -> SendResult:
        mime = self._build_mime_message(message)
        implicit_tls = self.port == 465
        try:
            await aiosmtplib.send(
                mime,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=implicit_tls,
                start_tls=not implicit_tls,
                timeout=10,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Email delivery failed", to=message.to, error=str(exc))
            return SendResult(success=False, error=str(exc))
        logger.info("Email sent", to=message.to, subject=message.subject)
        return SendResult(success=True)


class LoggingEmailSender:
    async def send(self, message: EmailMessage) -> SendResult:
        logger.warning(
            "Email not sent: SMTP is not configured",
            to=message.to,
            subject=message.subject,
        )
        return SendResult(success=False, error="Email service not configured")


def get_email_sender() -> EmailSender:
    """FastAPI dependency; tests override it with a recording sender."""
    if not settings.SMTP_HOST:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        sender=settings.EMAIL_FROM,
    )


# ── Templates ────────────────────────────────────────────────────────────────

def _wrap(title: str, body_html: str, link: str, label: str) -> str:
    return (
        f"<h1>{escape(title)}</h1>"
        f"{body_html}"
        f'<p><a href="{escape(link, quote=True)}">{escape(label)}</a></p>'
        f"<p>If the button does not work, copy this link: {escape(link)}</p>"
    )


def invitation_email(
    to: str, tenant_name: str, inviter_name: str, role: str, invite_url: str
) -> EmailMessage:
    subject = f"You've been invited to join {tenant_name}"
    text = (
        f"{inviter_name} invited you to join {tenant_name} as {role}.\n\n"
        f"Accept the invitation: {invite_url}\n\n"
        "This invitation expires in 7 days."
    )
    html = _wrap(
        subject,
        f"<p>{escape(inviter_name)} invited you to join "
        f"<strong>{escape(tenant_name)}</strong> as {escape(role)}.</p>"
        "<p>This invitation expires in 7 days.</p>",
        invite_url,
        "Accept invitation",
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def welcome_email(to: str, name: str, tenant_name: str, login_url: str) -> EmailMessage:
    subject = f"Welcome to {tenant_name}"
    text = f"Hi {name},\n\nYour account in {tenant_name} is ready.\nSign in: {login_url}"
    html = _wrap(
        subject,
        f"<p>Hi {escape(name)}, your account in {escape(tenant_name)} is ready.</p>",
        login_url,
        "Sign in",
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def password_reset_email(to: str, name: str, reset_url: str) -> EmailMessage:
    subject = "Reset your password"
    text = (
        f"Hi {name},\n\nReset your password: {reset_url}\n\n"
        "This link expires in 1 hour. If you did not ask for it, ignore this email."
    )
    html = _wrap(
        subject,
        f"<p>Hi {escape(name)}, use the link below to choose a new password. "
        "It expires in 1 hour.</p>",
        reset_url,
        "Reset password",
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def admin_setup_email(to: str, name: str, setup_url: str) -> EmailMessage:
    subject = "Set up your admin account"
    text = f"Hi {name},\n\nFinish setting up your admin account: {setup_url}\n\nThe link expires in 48 hours."
    html = _wrap(
        subject,
        f"<p>Hi {escape(name)}, choose a password to activate your admin account. "
        "The link expires in 48 hours.</p>",
        setup_url,
        "Set password",
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)
