"""Outbound email for the password reset flow."""

import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape
from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from servitech.config import get_settings
from servitech.models.user import User
from servitech.outcomes import NotificationError

logger = logging.getLogger("servitech")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "emails"

_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=select_autoescape(["html"]))


@dataclass
class OutgoingMail:
    to: str
    subject: str
    html: str


class SendGridBackend:
    """Delivers mail through the SendGrid v3 API."""

    def __init__(self, api_key: str, from_email: str) -> None:
        self.api_key = api_key
        self.from_email = from_email

    def send(self, mail: OutgoingMail) -> None:
        if not self.api_key or not self.from_email:
            raise NotificationError("SendGrid is not configured")

        message = Mail(
            from_email=self.from_email,
            to_emails=mail.to,
            subject=mail.subject,
            html_content=mail.html,
        )
        try:
            response = SendGridAPIClient(self.api_key).send(message)
        except HTTPError as exc:
            raise NotificationError(f"SendGrid rejected message: {exc.status_code}") from exc
        if response.status_code >= 300:
            raise NotificationError(f"SendGrid returned {response.status_code}")


class MemoryOutbox:
    """Keeps sent mail in memory. Used by tests and local development."""

    def __init__(self) -> None:
        self.sent: list[OutgoingMail] = []

    def send(self, mail: OutgoingMail) -> None:
        self.sent.append(mail)


class Notifier:
    """Renders and sends the reset-link and reset-confirmation emails."""

    def __init__(self, backend: SendGridBackend | MemoryOutbox, app_url: str) -> None:
        self.backend = backend
        self.app_url = app_url.rstrip("/")

    def reset_url(self, email: str, raw_secret: str) -> str:
        return f"{self.app_url}/reset-password?{urlencode({'token': raw_secret, 'email': email})}"

    def send_reset_link(self, user: User, raw_secret: str) -> None:
        """Email the one-time reset link. Raises NotificationError on delivery failure."""
        html = _env.get_template("reset_link.html").render(
            name=user.name,
            url=self.reset_url(user.email, raw_secret),
            expire_minutes=get_settings().PASSWORD_RESET_EXPIRE_MINUTES,
        )
        self.backend.send(OutgoingMail(to=user.email, subject="Reset Password Notification", html=html))
        logger.info("Reset link sent to user %s", user.id)

    def send_reset_success(self, user: User) -> None:
        html = _env.get_template("reset_success.html").render(
            name=user.name,
            recommendations=["Use a strong, unique password", "Keep your login credentials secure"],
        )
        self.backend.send(OutgoingMail(to=user.email, subject="Password Reset Successful", html=html))


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Get singleton notifier configured from MAIL_BACKEND."""
    global _notifier
    if _notifier is None:
        settings = get_settings()
        if settings.MAIL_BACKEND == "memory":
            backend: SendGridBackend | MemoryOutbox = MemoryOutbox()
        else:
            backend = SendGridBackend(settings.SENDGRID_API_KEY, settings.MAIL_FROM_EMAIL)
        _notifier = Notifier(backend, settings.APP_URL)
    return _notifier
