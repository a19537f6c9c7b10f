"""
HTTP response shaping.

Maps every terminal pipeline state to an API Gateway proxy response with a
JSON body. Every response carries the same permissive CORS headers. Bodies
never include exception text or stack details.
"""

import json
from typing import Any, Dict, Optional

from .endpoints import EndpointSpec
from .models import AbuseDecision, FailureKind, SubmissionResult

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,DELETE,OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}

DOMAIN_INVALID_MESSAGE = "The email domain is invalid or cannot receive emails."
CONFIGURATION_ERROR_MESSAGE = "Server configuration error."
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed."

# Abuse decision -> (status, message, error)
ABUSE_RESPONSES = {
    AbuseDecision.RATE_LIMITED: (429, "Too many requests. Please try again later.", "Too Many Requests"),
    AbuseDecision.BOT_DETECTED: (403, "No bots allowed", "Forbidden"),
    AbuseDecision.FORBIDDEN: (403, "Forbidden", "Forbidden"),
    AbuseDecision.HOSTING_FORBIDDEN: (403, "Forbidden", "Forbidden"),
}


def json_response(status: int, body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build a proxy response; `body=None` means an empty body.
    """
    headers = dict(CORS_HEADERS)
    if body is None:
        return {'statusCode': status, 'headers': headers, 'body': ''}

    headers['Content-Type'] = 'application/json'
    return {'statusCode': status, 'headers': headers, 'body': json.dumps(body)}


def preflight_response() -> Dict[str, Any]:
    return json_response(200, None)


def liveness_response(endpoint: EndpointSpec) -> Dict[str, Any]:
    return json_response(200, {'success': True, 'message': endpoint.liveness_message})


def method_not_allowed_response(endpoint: EndpointSpec) -> Dict[str, Any]:
    response = json_response(405, {'success': False, 'message': METHOD_NOT_ALLOWED_MESSAGE})
    response['headers']['Allow'] = ','.join(('OPTIONS',) + endpoint.methods)
    return response


def invalid_body_response(message: str) -> Dict[str, Any]:
    return json_response(400, {
        'success': False,
        'message': message,
        'errors': {'body': [message]},
    })


def internal_error_response(endpoint: EndpointSpec) -> Dict[str, Any]:
    return json_response(500, {'success': False, 'message': endpoint.failure_message})


def result_response(endpoint: EndpointSpec, result: SubmissionResult) -> Dict[str, Any]:
    """
    Map a SubmissionResult to its HTTP response.

    Args:
        endpoint: Endpoint the result came from (supplies messages)
        result: Pipeline result

    Returns:
        API Gateway proxy response dict
    """
    if result.success:
        return json_response(200, {'success': True, 'message': endpoint.success_message})

    failure = result.failure

    if failure is FailureKind.INPUT_INVALID:
        return json_response(400, {
            'success': False,
            'message': result.message or "Validation failed.",
            'errors': result.errors,
        })

    if failure is FailureKind.DOMAIN_UNREACHABLE:
        return json_response(400, {'success': False, 'message': DOMAIN_INVALID_MESSAGE})

    if failure is FailureKind.ABUSE_REJECTED and result.guard is not None:
        status, message, error = ABUSE_RESPONSES.get(
            result.guard.decision, ABUSE_RESPONSES[AbuseDecision.FORBIDDEN]
        )
        return json_response(status, {'success': False, 'message': message, 'error': error})

    if failure is FailureKind.SERVER_MISCONFIGURED:
        return json_response(500, {'success': False, 'message': CONFIGURATION_ERROR_MESSAGE})

    return internal_error_response(endpoint)
