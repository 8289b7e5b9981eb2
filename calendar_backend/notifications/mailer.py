import logging
import smtplib
from email.message import EmailMessage

from calendar_backend.core import config

logger = logging.getLogger(__name__)


class MailerNotConfigured(RuntimeError):
    """Raised when a send is attempted without an SMTP host."""


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = '',
        password: str = '',
        use_tls: bool = True,
        timeout: float = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        if not self.host:
            raise MailerNotConfigured('SMTP_HOST is not set.')

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)

        logger.info('Email sent to %s', message['To'])


def mailer_from_config() -> SmtpMailer:
    return SmtpMailer(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        username=config.SMTP_USER,
        password=config.SMTP_PASS,
        use_tls=config.SMTP_USE_TLS,
        timeout=config.SMTP_TIMEOUT_SECONDS,
    )
