"""
Email template management.

This module loads HTML email templates with the following priority:
1. S3 override (optional, for copy changes without redeploy)
2. Local filesystem (templates/ directory packaged with Lambda)

Templates are cached in memory for warm Lambda invocations with TTL.
"""

import html
import logging
import time
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Path to templates directory (relative to this file)
# src/services/templates.py -> src/templates/
# In Lambda: /var/task/templates/
TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=5,
    read_timeout=10
)


def escape_value(value) -> str:
    """
    Escape a submitted value for insertion into an HTML body.

    Newlines become <br /> so multi-line messages keep their shape.
    """
    if value is None:
        return ''
    text = html.escape(str(value), quote=True)
    return text.replace('\r\n', '\n').replace('\n', '<br />')


def format_template(template: str, raw: Optional[Mapping[str, str]] = None, **variables) -> str:
    """
    Format a template with escaped variables and trusted raw fragments.

    Uses str.format() placeholders ({name}). Submitted values are HTML-escaped;
    templates must not contain literal braces (inline styles only).

    Args:
        template: Template text with {placeholder} fields
        raw: Trusted markup inserted verbatim (e.g. a rendered banner)
        **variables: Untrusted values to escape

    Returns:
        str: Rendered text

    Raises:
        ValueError: If the template references an unknown placeholder

    Example:
        >>> format_template("<b>{name}</b>", name="<Ann>")
        '<b>&lt;Ann&gt;</b>'
    """
    values = {key: escape_value(value) for key, value in variables.items()}
    if raw:
        values.update(raw)

    try:
        return template.format(**values)
    except KeyError as e:
        missing_var = str(e).strip("'")
        logger.error(f"Missing variable in email template: {missing_var}")
        raise ValueError(f"Missing required variable in template: {missing_var}")


class TemplateStore:
    """
    Loads and renders email templates.

    S3 is consulted only when a bucket is configured; any S3 failure falls
    back to the packaged file.
    """

    def __init__(
        self,
        templates_dir: Path = TEMPLATES_DIR,
        bucket: Optional[str] = None,
        key_prefix: str = 'templates/',
        cache_ttl: float = 300.0,
        s3_client=None,
    ):
        self.templates_dir = Path(templates_dir)
        self.bucket = bucket
        self.key_prefix = key_prefix
        self.cache_ttl = cache_ttl
        self._s3_client = s3_client
        # {template_name: (content, loaded_at)}
        self._cache: Dict[str, Tuple[str, float]] = {}

    @classmethod
    def from_settings(cls, settings) -> 'TemplateStore':
        return cls(
            bucket=settings.template_bucket,
            key_prefix=settings.template_key_prefix,
            cache_ttl=settings.template_cache_ttl,
        )

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client('s3', config=s3_config)
            logger.info("Templates S3 client initialized with timeouts: connect=5s, read=10s, max_attempts=1")
        return self._s3_client

    def _load_from_filesystem(self, name: str) -> str:
        path = self.templates_dir / name
        logger.info(f"Loading template from filesystem: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def _load_from_s3(self, name: str) -> str:
        if not self.bucket:
            raise ValueError("TEMPLATE_BUCKET environment variable not set")

        key = f"{self.key_prefix}{name}"
        logger.info(f"Loading template from S3: s3://{self.bucket}/{key}")

        response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
        return response['Body'].read().decode('utf-8')

    def load(self, name: str, use_cache: bool = True) -> str:
        """
        Load a template by file name.

        Priority: Cache -> S3 override -> Local filesystem

        Raises:
            ValueError: If the template exists in neither location
        """
        now = time.time()

        if use_cache and name in self._cache:
            content, loaded_at = self._cache[name]
            if now - loaded_at < self.cache_ttl:
                return content
            logger.info(f"Cache expired for template: {name}, reloading...")

        content = None

        if self.bucket:
            try:
                content = self._load_from_s3(name)
                logger.info(f"Using S3 override for template: {name}")
            except (BotoCoreError, ClientError, ValueError) as e:
                logger.info(
                    f"S3 override not available ({e.__class__.__name__}), "
                    f"falling back to local filesystem"
                )

        if content is None:
            try:
                content = self._load_from_filesystem(name)
            except FileNotFoundError:
                logger.error(
                    f"Template not found: {name}. "
                    f"Expected location: {self.templates_dir / name}"
                )
                raise ValueError(f"Template '{name}' not found in S3 or local filesystem")

        self._cache[name] = (content, now)
        return content

    def render(self, name: str, /, raw: Optional[Mapping[str, str]] = None, **variables) -> str:
        """Load `name` and format it (see format_template)."""
        return format_template(self.load(name), raw=raw, **variables)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Template cache cleared")
