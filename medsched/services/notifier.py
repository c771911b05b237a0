import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from medsched.core import config

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivers a plain-text message to one recipient."""

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class LoggingNotifier(Notifier):
    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info("Notification to %s: %s", recipient, subject)


class SmtpNotifier(Notifier):
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        from_email: str = config.EMAIL_FROM,
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls

    def send(self, recipient: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = recipient
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_email, [recipient], msg.as_string())

        logger.info("Email sent to %s: %s", recipient, subject)


def notify(notifier: Notifier, recipient: str | None, subject: str, body: str) -> None:
    """Send through ``notifier``; delivery problems are logged, never raised."""
    if not recipient:
        return
    try:
        notifier.send(recipient, subject, body)
    except Exception:
        logger.exception("Failed to deliver notification to %s", recipient)


def get_notifier() -> Notifier:
    if config.SMTP_HOST:
        return SmtpNotifier(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            from_email=config.EMAIL_FROM,
            use_tls=config.SMTP_USE_TLS,
        )
    return LoggingNotifier()
