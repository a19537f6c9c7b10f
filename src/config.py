"""
Process-wide configuration for the form handlers.

Settings are read once per Lambda container from environment variables and
passed explicitly to every collaborator. Missing values never raise here:
the pipeline decides what a missing value means at the point it is needed.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

FAIL_OPEN = 'open'
FAIL_CLOSED = 'closed'

TRANSPORT_SMTP = 'smtp'
TRANSPORT_SES = 'ses'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    """Return a stripped env value, or None when unset or blank."""
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(environ, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring non-numeric {name}={raw!r}, using {default}"
        )
        return default


def _get_choice(environ: Mapping[str, str], name: str, choices, default: str) -> str:
    raw = (_get(environ, name) or default).lower()
    if raw not in choices:
        logging.getLogger(__name__).warning(
            f"Ignoring unsupported {name}={raw!r}, using {default!r}"
        )
        return default
    return raw


@dataclass(frozen=True)
class Settings:
    """
    Immutable configuration snapshot.

    Attributes:
        sender_email: Address outbound mail is sent from
        email_password: SMTP credential (app password) for the sender
        receiver_email: Operator address that receives notifications
        abuse_guard_key: API key for the rate-limit / bot-detection service
        abuse_guard_url: Base URL of the decision service
        abuse_guard_fail_mode: 'open' allows requests when the service fails
        abuse_guard_timeout: Seconds allowed for one decision call
        mail_transport: 'smtp' or 'ses'
        smtp_host: SMTP host (implicit TLS)
        smtp_port: SMTP port
        smtp_timeout: Seconds allowed for one SMTP connection
        ses_region: AWS region used by the SES transport
        dns_timeout: Lifetime of one MX query in seconds
        newsletter_verify_mx: Also MX-check newsletter addresses
        template_bucket: Optional S3 bucket overriding packaged templates
        template_key_prefix: Key prefix for template overrides
        template_cache_ttl: Seconds a loaded template stays cached
        site_name: Brand name used in email bodies
        site_url: Link target used in email bodies
        environment: Deployment stage label
        log_level: Root log level name
    """
    sender_email: Optional[str] = None
    email_password: Optional[str] = None
    receiver_email: Optional[str] = None
    abuse_guard_key: Optional[str] = None
    abuse_guard_url: str = 'https://decide.arcjet.com'
    abuse_guard_fail_mode: str = FAIL_OPEN
    abuse_guard_timeout: float = 5.0
    mail_transport: str = TRANSPORT_SMTP
    smtp_host: str = 'smtp.gmail.com'
    smtp_port: int = 465
    smtp_timeout: float = 10.0
    ses_region: str = 'us-east-1'
    dns_timeout: float = 5.0
    newsletter_verify_mx: bool = False
    template_bucket: Optional[str] = None
    template_key_prefix: str = 'templates/'
    template_cache_ttl: float = 300.0
    site_name: str = 'HimalayaFace'
    site_url: str = 'https://himalayaface.com'
    environment: str = 'dev'
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings: Populated, immutable settings
        """
        if environ is None:
            environ = os.environ

        return cls(
            sender_email=_get(environ, 'SENDER_EMAIL'),
            email_password=_get(environ, 'EMAIL_APP_PASS'),
            receiver_email=_get(environ, 'RECEIVER_EMAIL'),
            abuse_guard_key=_get(environ, 'ARCJET_KEY'),
            abuse_guard_url=(_get(environ, 'ABUSE_GUARD_URL') or cls.abuse_guard_url).rstrip('/'),
            abuse_guard_fail_mode=_get_choice(
                environ, 'ABUSE_GUARD_FAIL_MODE', (FAIL_OPEN, FAIL_CLOSED), FAIL_OPEN
            ),
            abuse_guard_timeout=_get_float(environ, 'ABUSE_GUARD_TIMEOUT', cls.abuse_guard_timeout),
            mail_transport=_get_choice(
                environ, 'MAIL_TRANSPORT', (TRANSPORT_SMTP, TRANSPORT_SES), TRANSPORT_SMTP
            ),
            smtp_host=_get(environ, 'SMTP_HOST') or cls.smtp_host,
            smtp_port=int(_get_float(environ, 'SMTP_PORT', cls.smtp_port)),
            smtp_timeout=_get_float(environ, 'SMTP_TIMEOUT', cls.smtp_timeout),
            ses_region=(
                _get(environ, 'SES_REGION')
                or _get(environ, 'AWS_REGION')
                or cls.ses_region
            ),
            dns_timeout=_get_float(environ, 'DNS_TIMEOUT', cls.dns_timeout),
            newsletter_verify_mx=(_get(environ, 'NEWSLETTER_VERIFY_MX') or '').lower() in _TRUE_VALUES,
            template_bucket=_get(environ, 'TEMPLATE_BUCKET'),
            template_key_prefix=_get(environ, 'TEMPLATE_KEY_PREFIX') or cls.template_key_prefix,
            template_cache_ttl=_get_float(environ, 'TEMPLATE_CACHE_TTL', cls.template_cache_ttl),
            site_name=_get(environ, 'SITE_NAME') or cls.site_name,
            site_url=_get(environ, 'SITE_URL') or cls.site_url,
            environment=_get(environ, 'ENVIRONMENT') or cls.environment,
            log_level=(_get(environ, 'LOG_LEVEL') or cls.log_level).upper(),
        )

    @property
    def missing_mail_settings(self) -> List[str]:
        """Names of the mail variables that are required but absent."""
        missing = []
        if not self.sender_email:
            missing.append('SENDER_EMAIL')
        if self.mail_transport == TRANSPORT_SMTP and not self.email_password:
            missing.append('EMAIL_APP_PASS')
        if not self.receiver_email:
            missing.append('RECEIVER_EMAIL')
        return missing

    @property
    def mail_configured(self) -> bool:
        """True when every variable the selected mail transport needs is set."""
        return not self.missing_mail_settings

    @property
    def fail_open(self) -> bool:
        return self.abuse_guard_fail_mode == FAIL_OPEN

    def __repr__(self) -> str:
        """Representation safe for logs (credentials are masked)."""
        return (
            f"Settings(environment={self.environment}, "
            f"mail_transport={self.mail_transport}, "
            f"mail_configured={self.mail_configured}, "
            f"abuse_guard_configured={bool(self.abuse_guard_key)}, "
            f"abuse_guard_fail_mode={self.abuse_guard_fail_mode})"
        )


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Configure the root logger for a Lambda entry point.

    AWS Lambda installs its own handler; a console handler is added only for
    local runs where none exists.
    """
    logger = logging.getLogger()
    level = getattr(logging, settings.log_level, logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        formatter = logging.Formatter('%(levelname)s - %(message)s')
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
