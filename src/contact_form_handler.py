"""
AWS Lambda handler for the website contact form.

Thin entry point: binds the contact form endpoint to the shared pipeline.
OPTIONS (CORS preflight) and POST are served.
"""

import logging
from typing import Any, Dict

from config import Settings, configure_logging
from domain.endpoints import CONTACT_FORM
from form_api import build_pipeline, handle_event

settings = Settings.from_env()
logger = configure_logging(settings)

# Initialize pipeline once at module level (reused across invocations)
pipeline = build_pipeline(CONTACT_FORM, settings)
logging.getLogger(__name__).info(f"Contact form handler initialized: {settings!r}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process a contact form request.

    Args:
        event: API Gateway proxy event
        context: Lambda context

    Returns:
        API Gateway proxy response
    """
    return handle_event(event, pipeline)
