"""Verification email rendering and delivery."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage

import aiosmtplib

from pms.config import settings

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Verify your email address"


@dataclass(frozen=True)
class OutgoingEmail:
    """A rendered message ready for a backend."""

    to: str
    subject: str
    html: str
    text: str


class EmailBackend(ABC):
    """Delivers rendered emails.

    Delivery problems are reported by returning False; callers decide
    whether that is fatal.
    """

    @abstractmethod
    async def deliver(self, email: OutgoingEmail) -> bool: ...


class ConsoleEmailBackend(EmailBackend):
    """Writes the plain-text body to the log instead of sending it."""

    async def deliver(self, email: OutgoingEmail) -> bool:
        logger.info(f"Email to {email.to} not sent (console backend): {email.subject}\n{email.text}")
        return True


class SMTPEmailBackend(EmailBackend):
    """SMTP delivery.

    `implicit_tls` connects over TLS from the start (usually port 465);
    otherwise the connection is upgraded with STARTTLS when the server
    offers it.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        implicit_tls: bool = False,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.implicit_tls = implicit_tls
        self.timeout = timeout

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")
        return message

    async def deliver(self, email: OutgoingEmail) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(email),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=self.implicit_tls,
                start_tls=False if self.implicit_tls else None,
                timeout=self.timeout,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP server rejected mail to {email.to}: {e}")
            return False
        except OSError as e:
            logger.error(f"Could not reach SMTP server {self.host}:{self.port}: {e}")
            return False

        logger.info(f"Verification email delivered to {email.to}")
        return True


def get_email_backend() -> EmailBackend:
    """Build the backend selected by EMAIL_BACKEND."""
    if settings.email_backend == "smtp":
        if not settings.smtp_host:
            raise ValueError("SMTP_HOST must be set when EMAIL_BACKEND=smtp")
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            implicit_tls=settings.smtp_implicit_tls,
            timeout=settings.smtp_timeout,
        )
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


def build_verification_link(token: str) -> str:
    """Absolute link to the frontend verification page for a token."""
    return f"{settings.app_url.rstrip('/')}/auth/verify-email?token={token}"


def render_verification_email(to: str, verification_link: str, hours: int) -> OutgoingEmail:
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
  <div style="background: #667eea; color: #fff; padding: 30px; text-align: center;">
    <h1 style="margin: 0;">Welcome to Property Management System</h1>
  </div>
  <div style="padding: 30px;">
    <p>Confirm your email address to finish creating your account.</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{verification_link}" style="background: #667eea; color: #fff; padding: 14px 28px; border-radius: 6px; text-decoration: none; font-weight: bold;">Verify Email Address</a>
    </p>
    <p>If the button does not work, open this link:</p>
    <p style="word-break: break-all; color: #667eea;">{verification_link}</p>
    <p><strong>The link expires in {hours} hours.</strong></p>
  </div>
  <p style="font-size: 12px; color: #6c757d; text-align: center;">
    If you did not register, ignore this email and no account will be created.
  </p>
</body>
</html>
"""
    text = (
        "Welcome to Property Management System!\n\n"
        "Confirm your email address to finish creating your account:\n"
        f"{verification_link}\n\n"
        f"The link expires in {hours} hours.\n\n"
        "If you did not register, ignore this email and no account will be created.\n"
    )
    return OutgoingEmail(to=to, subject=VERIFICATION_SUBJECT, html=html, text=text)


class EmailService:
    """Sends application emails through a lazily built backend."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification_email(self, to: str, verification_link: str) -> bool:
        """Mail the verification link; False when the backend could not deliver it."""
        email = render_verification_email(
            to, verification_link, settings.verification_token_expiration_hours
        )
        return await self.backend.deliver(email)


email_service = EmailService()
