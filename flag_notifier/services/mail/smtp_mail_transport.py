from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

import aiosmtplib
from html2text import html2text

from flag_notifier.config.settings import Settings, settings as app_settings
from flag_notifier.services.notifications.types import MailResult
from flag_notifier.utils.logging import get_logger

logger = get_logger()


class SmtpMailTransport:
    """Sends one HTML email per call through an SMTP relay."""

    def __init__(
        self,
        hostname: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = False,
        start_tls: bool = False,
        timeout: int = 30,
    ):
        self.hostname = hostname
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings = app_settings) -> "SmtpMailTransport":
        return cls(
            hostname=config.SMTP_HOST,
            port=config.SMTP_PORT,
            sender=config.MAIL_FROM,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
            start_tls=config.SMTP_START_TLS,
            timeout=config.SMTP_TIMEOUT,
        )

    def build_message(
        self, to: str, locale: str, subject: str, body_html: str
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(html2text(body_html).strip())
        message.add_alternative(body_html, subtype="html")
        # add_alternative moves Content-* headers into the first subpart
        message["Content-Language"] = locale
        return message

    async def send(
        self, to: str, locale: str, subject: str, body_html: str
    ) -> MailResult:
        """Deliver one message. Delivery problems are reported, never raised."""
        try:
            message = self.build_message(to, locale, subject, body_html)
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.use_tls,
                start_tls=self.start_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError, ValueError) as e:
            logger.warning(f"SMTP delivery to {to} failed: {str(e)}")
            return MailResult(delivered=False, error=str(e))

        return MailResult(delivered=True)

