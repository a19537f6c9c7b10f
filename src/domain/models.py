"""
Data models for the form submission domain.

Records passed between the handler, the pipeline and its collaborators.
Expected outcomes (invalid input, abuse denial, failed delivery) travel as
return values; exceptions are reserved for unexpected faults.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass
class RequestContext:
    """
    The parts of an inbound HTTP request the pipeline needs.

    Attributes:
        method: HTTP method (upper case)
        path: Request path
        host: Host header value (may be empty)
        headers: Header names lower-cased -> values
        ip: Client IP resolved from forwarding headers ("unknown" if absent)
    """
    method: str
    path: str = '/'
    host: str = ''
    headers: Dict[str, str] = field(default_factory=dict)
    ip: str = 'unknown'


@dataclass
class OutgoingEmail:
    """
    One email the notifier should send.

    Attributes:
        recipient: To address
        subject: Subject line
        html_body: Rendered HTML body
        reply_to: Optional Reply-To address
    """
    recipient: str
    subject: str
    html_body: str
    reply_to: Optional[str] = None


@dataclass
class Valid:
    """
    Successful schema validation.

    Attributes:
        payload: Normalized (trimmed) submission model
    """
    payload: Any

    @property
    def is_valid(self) -> bool:
        return True


@dataclass
class Invalid:
    """
    Failed schema validation.

    Attributes:
        errors: Field name -> every violated rule message for that field
    """
    errors: Dict[str, List[str]]

    @property
    def is_valid(self) -> bool:
        return False

    @property
    def first_message(self) -> str:
        """First error message, in field order."""
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return "Validation failed."


ValidationResult = Union[Valid, Invalid]


class AbuseDecision(Enum):
    """Outcome of the rate-limit / bot-detection check."""
    ALLOW = 'allow'
    RATE_LIMITED = 'rate_limited'
    BOT_DETECTED = 'bot_detected'
    FORBIDDEN = 'forbidden'
    HOSTING_FORBIDDEN = 'hosting_forbidden'

    @property
    def is_denied(self) -> bool:
        return self is not AbuseDecision.ALLOW


@dataclass
class GuardResult:
    """
    Abuse guard verdict for one request.

    Attributes:
        decision: The decision
        reason: Short reason reported by the decision service
        decision_id: Decision identifier from the service (if any)
        failed_open: True when the service failed and the request was allowed
    """
    decision: AbuseDecision
    reason: str = ''
    decision_id: Optional[str] = None
    failed_open: bool = False

    @property
    def allowed(self) -> bool:
        return self.decision is AbuseDecision.ALLOW


@dataclass
class Sent:
    """
    One email accepted by the mail transport.

    Attributes:
        recipient: Address the message was sent to
        message_id: Message-ID header (or provider id) of the sent message
    """
    recipient: str
    message_id: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return True


@dataclass
class Failed:
    """
    One email the mail transport did not accept.

    Attributes:
        recipient: Intended recipient
        cause: Description of the transport fault (logged, never returned to clients)
    """
    recipient: str
    cause: str

    @property
    def delivered(self) -> bool:
        return False


NotificationOutcome = Union[Sent, Failed]


class FailureKind(Enum):
    """Terminal error categories that reach the response layer."""
    INPUT_INVALID = 'input_invalid'
    DOMAIN_UNREACHABLE = 'domain_unreachable'
    ABUSE_REJECTED = 'abuse_rejected'
    SERVER_MISCONFIGURED = 'server_misconfigured'
    DELIVERY_FAILED = 'delivery_failed'


@dataclass
class SubmissionResult:
    """
    Result of running one submission through the pipeline.

    Attributes:
        success: Whether both emails were sent
        endpoint: Endpoint name (e.g. "contact_form")
        failure: Failure category when success is False
        errors: Per-field validation messages (INPUT_INVALID only)
        message: Optional message overriding the endpoint default
        guard: Abuse guard verdict (ABUSE_REJECTED only)
        notifications: Outcomes of the send attempts made
    """
    success: bool
    endpoint: str
    failure: Optional[FailureKind] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)
    message: Optional[str] = None
    guard: Optional[GuardResult] = None
    notifications: List[NotificationOutcome] = field(default_factory=list)

    @classmethod
    def succeeded(cls, endpoint: str, notifications: List[NotificationOutcome]) -> 'SubmissionResult':
        return cls(success=True, endpoint=endpoint, notifications=notifications)

    @classmethod
    def failed(cls, endpoint: str, failure: FailureKind, **kwargs) -> 'SubmissionResult':
        return cls(success=False, endpoint=endpoint, failure=failure, **kwargs)

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return f"SubmissionResult(success=True, endpoint={self.endpoint})"
        return (
            f"SubmissionResult(success=False, endpoint={self.endpoint}, "
            f"failure={self.failure.value if self.failure else None})"
        )
