"""
AWS Lambda handler for the newsletter signup form.

Serves OPTIONS (CORS preflight), GET (liveness probe) and POST.
"""

import dataclasses
import logging
from typing import Any, Dict

from config import Settings, configure_logging
from domain.endpoints import NEWSLETTER
from form_api import build_pipeline, handle_event

settings = Settings.from_env()
logger = configure_logging(settings)

endpoint = dataclasses.replace(NEWSLETTER, verify_domain=settings.newsletter_verify_mx)

# Initialize pipeline once at module level (reused across invocations)
pipeline = build_pipeline(endpoint, settings)
logging.getLogger(__name__).info(f"Newsletter handler initialized: {settings!r}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process a newsletter request.

    Args:
        event: API Gateway proxy event
        context: Lambda context

    Returns:
        API Gateway proxy response
    """
    return handle_event(event, pipeline)
