"""
Outbound mail transports.

Two interchangeable transports share one interface: a context manager that
acquires its connection on entry, exposes `send(message)`, and releases the
connection on exit (including when `send` raises).

- SmtpTransport: authenticated SMTP over implicit TLS (e.g. Gmail app password)
- SesTransport: Amazon SES `send_raw_email`

Transport faults are raised as MailDeliveryError so callers never see raw
smtplib/botocore exceptions.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config import TRANSPORT_SES

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """Raised when the mail transport fails to accept a message."""
    pass


class SmtpTransport:
    """SMTP-over-TLS transport; one authenticated connection per `with` block."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: float = 10.0,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP_SSL,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self._smtp_factory = smtp_factory
        self._smtp: Optional[smtplib.SMTP] = None

    def __enter__(self) -> 'SmtpTransport':
        logger.info(f"Opening SMTP connection: host={self.host}, port={self.port}, timeout={self.timeout}s")
        try:
            self._smtp = self._smtp_factory(self.host, self.port, timeout=self.timeout)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP connection failed: {e.__class__.__name__}: {e}") from e

        try:
            self._smtp.login(self.username, self.password)
        except (smtplib.SMTPException, OSError) as e:
            self._close()
            raise MailDeliveryError(f"SMTP login failed: {e.__class__.__name__}") from e

        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._close()
        return False

    def _close(self) -> None:
        if self._smtp is None:
            return
        try:
            self._smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP quit failed ({e.__class__.__name__}), closing socket")
            self._smtp.close()
        finally:
            self._smtp = None

    def send(self, message: EmailMessage) -> str:
        """
        Send one message over the open connection.

        Returns:
            str: The message's Message-ID

        Raises:
            MailDeliveryError: If the server rejects the message or the connection fails
        """
        if self._smtp is None:
            raise MailDeliveryError("SMTP transport used outside of a 'with' block")

        try:
            refused = self._smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP send failed: {e.__class__.__name__}: {e}") from e

        if refused:
            raise MailDeliveryError(f"SMTP server refused recipients: {sorted(refused)}")

        return message['Message-ID']


# SES client: fail fast, the request pipeline reports failures itself
ses_config = Config(
    retries={
        'max_attempts': 0,  # 0 attempts = 1 total call, NO retries
        'mode': 'standard'
    },
    connect_timeout=5,
    read_timeout=15
)


class SesTransport:
    """Amazon SES transport. The boto3 client pools its own connections."""

    def __init__(self, region: str, client=None):
        self.region = region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('ses', region_name=self.region, config=ses_config)
            logger.info(f"SES client initialized: region={self.region}, connect_timeout=5s, read_timeout=15s")
        return self._client

    def __enter__(self) -> 'SesTransport':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False

    def send(self, message: EmailMessage) -> str:
        """
        Send one message through SES.

        Returns:
            str: SES MessageId

        Raises:
            MailDeliveryError: For any SES client or transport error
        """
        try:
            response = self.client.send_raw_email(
                Source=message['From'],
                Destinations=[message['To']],
                RawMessage={'Data': message.as_bytes()},
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise MailDeliveryError(f"SES rejected message: error_code={error_code}") from e
        except BotoCoreError as e:
            raise MailDeliveryError(f"SES request failed: {e.__class__.__name__}") from e

        return response.get('MessageId', '')


def build_transport_factory(settings) -> Callable[[], object]:
    """
    Return a zero-argument callable producing a fresh transport per send.

    Args:
        settings: config.Settings

    Returns:
        Callable returning an SmtpTransport or SesTransport context manager
    """
    if settings.mail_transport == TRANSPORT_SES:
        # One SES transport (and client) reused across sends
        transport = SesTransport(region=settings.ses_region)
        return lambda: transport

    def smtp_transport() -> SmtpTransport:
        return SmtpTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.sender_email,
            password=settings.email_password,
            timeout=settings.smtp_timeout,
        )

    return smtp_transport
