"""
API Gateway event helpers.

Supports both REST API (v1) and HTTP API (v2) proxy events.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict

from domain.models import RequestContext
from integrations.abuse_guard import client_ip

logger = logging.getLogger(__name__)


class InvalidBodyError(ValueError):
    """Raised when the request body is not decodable JSON."""
    pass


def request_method(event: Dict[str, Any]) -> str:
    # HTTP API v2
    method = ((event.get('requestContext') or {}).get('http') or {}).get('method')
    if not method:
        # REST API fallback
        method = event.get('httpMethod') or ''
    return method.upper()


def request_headers(event: Dict[str, Any]) -> Dict[str, str]:
    """Headers with lower-cased names (API Gateway preserves client casing)."""
    headers = event.get('headers') or {}
    return {str(name).lower(): str(value) for name, value in headers.items() if value is not None}


def request_context(event: Dict[str, Any]) -> RequestContext:
    headers = request_headers(event)
    path = (
        event.get('rawPath')
        or event.get('path')
        or ((event.get('requestContext') or {}).get('http') or {}).get('path')
        or '/'
    )
    return RequestContext(
        method=request_method(event),
        path=path,
        host=headers.get('host', ''),
        headers=headers,
        ip=client_ip(headers),
    )


def decode_json_body(event: Dict[str, Any]) -> Any:
    """
    Decode the event body as JSON.

    Raises:
        InvalidBodyError: If the body is missing, not base64 when flagged, or not JSON
    """
    body = event.get('body')
    if body is None or body == '':
        raise InvalidBodyError("Request body is required.")

    if event.get('isBase64Encoded'):
        try:
            body = base64.b64decode(body).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError) as e:
            raise InvalidBodyError("Request body is not valid base64 JSON.") from e

    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        logger.info(f"Rejected undecodable JSON body: {e.__class__.__name__}")
        raise InvalidBodyError("Request body must be valid JSON.") from e
