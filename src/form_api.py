"""
Shared HTTP entry logic for the form endpoints.

Routes the request method, decodes the body and runs the submission
pipeline; the Lambda handler modules only bind an endpoint and settings.
"""

import logging
from typing import Any, Dict

from config import Settings
from domain import responses
from domain.endpoints import EndpointSpec
from domain.notifier import Notifier
from domain.submission_pipeline import SubmissionPipeline
from integrations.abuse_guard import AbuseGuard
from services import http
from services.dns_check import DomainVerifier
from services.mailer import build_transport_factory
from services.templates import TemplateStore

logger = logging.getLogger(__name__)


def build_pipeline(endpoint: EndpointSpec, settings: Settings) -> SubmissionPipeline:
    """
    Wire a pipeline for `endpoint` from settings.

    Nothing here contacts the network; clients connect on first use.
    """
    return SubmissionPipeline(
        endpoint=endpoint,
        settings=settings,
        guard=AbuseGuard.from_settings(settings),
        verifier=DomainVerifier(timeout=settings.dns_timeout),
        notifier=Notifier(
            sender=settings.sender_email,
            transport_factory=build_transport_factory(settings),
        ),
        templates=TemplateStore.from_settings(settings),
    )


def handle_event(event: Dict[str, Any], pipeline: SubmissionPipeline) -> Dict[str, Any]:
    """
    Handle one API Gateway proxy event.

    Args:
        event: API Gateway event (REST v1 or HTTP API v2)
        pipeline: Pipeline for this endpoint

    Returns:
        API Gateway proxy response
    """
    endpoint = pipeline.endpoint
    method = http.request_method(event)
    logger.info(f"[{endpoint.name}] {method} request received")

    if method == 'OPTIONS':
        return responses.preflight_response()

    if method not in endpoint.methods:
        logger.info(f"[{endpoint.name}] Method not allowed: {method}")
        return responses.method_not_allowed_response(endpoint)

    if method == 'GET':
        return responses.liveness_response(endpoint)

    try:
        payload = http.decode_json_body(event)
    except http.InvalidBodyError as e:
        return responses.invalid_body_response(str(e))

    try:
        result = pipeline.process(payload, http.request_context(event))
    except Exception as e:
        logger.error(f"[{endpoint.name}] Unexpected error: {e}", exc_info=True)
        return responses.internal_error_response(endpoint)

    logger.info(f"[{endpoint.name}] Result: {result!r}")
    return responses.result_response(endpoint, result)
