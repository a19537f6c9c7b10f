"""
Form submission pipeline - core business logic.

This module runs one submission through the same steps for every endpoint:
1. Validate the payload against the endpoint schema
2. Verify the email domain has MX records (when the endpoint asks for it)
3. Ask the abuse guard whether the caller may proceed
4. Check that mail delivery is configured
5. Send the operator notice and the submitter confirmation

Every step returns early with a SubmissionResult on failure. Faults raised
by collaborators are logged and converted; no exception propagates out of
`process`.
"""

import logging
from typing import Any, Optional

from .endpoints import EndpointSpec
from .models import (
    AbuseDecision,
    FailureKind,
    GuardResult,
    RequestContext,
    SubmissionResult,
)
from .notifier import Notifier
from .schemas import validate_submission
from integrations.abuse_guard import AbuseGuard, AbuseServiceError, ConfigurationError
from services.dns_check import DomainVerifier
from services.templates import TemplateStore

logger = logging.getLogger(__name__)


class SubmissionPipeline:
    """
    Validate -> verify domain -> guard -> notify, for one endpoint.

    All collaborators are passed in; nothing is read from module state.
    """

    def __init__(
        self,
        endpoint: EndpointSpec,
        settings,
        guard: AbuseGuard,
        verifier: DomainVerifier,
        notifier: Notifier,
        templates: TemplateStore,
    ):
        self.endpoint = endpoint
        self.settings = settings
        self.guard = guard
        self.verifier = verifier
        self.notifier = notifier
        self.templates = templates

    def process(self, payload: Any, request: RequestContext) -> SubmissionResult:
        """
        Run one decoded submission through the pipeline.

        Args:
            payload: Decoded JSON body
            request: Request context (method, headers, client IP)

        Returns:
            SubmissionResult: success, or the first failure encountered
        """
        name = self.endpoint.name

        validation = validate_submission(self.endpoint.schema, payload)
        if not validation.is_valid:
            logger.info(f"[{name}] Validation failed: fields={sorted(validation.errors)}")
            return SubmissionResult.failed(
                name,
                FailureKind.INPUT_INVALID,
                errors=validation.errors,
                message=self.endpoint.validation_message or validation.first_message,
            )

        submission = validation.payload

        if self.endpoint.verify_domain and not self.verifier.has_mx_record(submission.email):
            logger.info(f"[{name}] Email domain cannot receive mail")
            return SubmissionResult.failed(name, FailureKind.DOMAIN_UNREACHABLE)

        guard_result = self._check_abuse(request)
        if guard_result is None:
            return SubmissionResult.failed(name, FailureKind.DELIVERY_FAILED)
        if not guard_result.allowed:
            logger.warning(
                f"[{name}] Request denied by abuse guard: ip={request.ip}, "
                f"decision={guard_result.decision.value}, reason={guard_result.reason}"
            )
            return SubmissionResult.failed(name, FailureKind.ABUSE_REJECTED, guard=guard_result)

        if not self.settings.mail_configured:
            logger.error(
                f"[{name}] Server misconfigured: missing environment variables "
                f"{', '.join(self.settings.missing_mail_settings)}"
            )
            return SubmissionResult.failed(name, FailureKind.SERVER_MISCONFIGURED)

        try:
            emails = self.endpoint.compose(submission, self.settings, self.templates)
        except ValueError as e:
            logger.error(f"[{name}] Failed to render emails: {e}", exc_info=True)
            return SubmissionResult.failed(name, FailureKind.DELIVERY_FAILED)
        except Exception as e:
            logger.error(f"[{name}] Unexpected fault composing emails: {e}", exc_info=True)
            return SubmissionResult.failed(name, FailureKind.DELIVERY_FAILED)

        outcomes = self.notifier.send_all(emails)
        if len(outcomes) == len(emails) and all(o.delivered for o in outcomes):
            logger.info(f"[{name}] Submission processed: {len(outcomes)} email(s) sent")
            return SubmissionResult.succeeded(name, outcomes)

        sent = sum(1 for o in outcomes if o.delivered)
        logger.error(f"[{name}] Delivery failed after {sent}/{len(emails)} email(s) sent")
        return SubmissionResult.failed(name, FailureKind.DELIVERY_FAILED, notifications=outcomes)

    def _check_abuse(self, request: RequestContext) -> Optional[GuardResult]:
        """
        Consult the abuse guard, applying the fail mode on service errors.

        Fail open (default): a broken or unconfigured decision service must
        not block legitimate visitors, so the request is allowed.
        Fail closed: the request is rejected as a delivery failure.

        Returns:
            GuardResult, or None when the request must fail closed
        """
        name = self.endpoint.name
        try:
            return self.guard.protect(request)
        except (AbuseServiceError, ConfigurationError) as e:
            cause = str(e)
        except Exception as e:
            logger.error(f"[{name}] Unexpected abuse guard fault: {e}", exc_info=True)
            cause = f"{e.__class__.__name__}: {e}"

        if self.settings.fail_open:
            logger.warning(f"[{name}] Abuse guard unavailable, failing open: {cause}")
            return GuardResult(AbuseDecision.ALLOW, reason='service_unavailable', failed_open=True)

        logger.error(f"[{name}] Abuse guard unavailable, failing closed: {cause}")
        return None
