"""
Rate limiting and bot protection via a remote decision service.

This module asks an Arcjet-compatible decide API whether a request should
be allowed. The rules mirror the public site's protection:

- shield (LIVE): blocks common attack patterns
- bot detection (DRY_RUN): reports bots, search engines allowed
- token bucket (LIVE): 5 tokens, refilled 5 per 10 minutes, 1 per request

Usage:
    from integrations.abuse_guard import AbuseGuard

    guard = AbuseGuard.from_settings(settings)
    result = guard.protect(request_context)
    if not result.allowed:
        ...

Errors from the service itself (transport failures, non-2xx responses,
malformed bodies, ERROR conclusions) raise AbuseServiceError. Whether such
a failure allows or blocks the request is the caller's policy.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import httpx

from domain.models import AbuseDecision, GuardResult, RequestContext

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# Custom Exception Classes
# ============================================================================

class ConfigurationError(Exception):
    """Raised when the abuse guard is used without an API key."""
    pass


class AbuseServiceError(Exception):
    """Raised when the decision service fails to return a usable decision."""
    pass


# ============================================================================
# Client IP Resolution
# ============================================================================

CDN_IP_HEADER = 'cf-connecting-ip'
FORWARDED_FOR_HEADER = 'x-forwarded-for'
REAL_IP_HEADER = 'x-real-ip'
UNKNOWN_IP = 'unknown'


def client_ip(headers: Mapping[str, str]) -> str:
    """
    Resolve the caller's IP from proxy headers.

    Order: CDN client-IP header, first X-Forwarded-For entry, X-Real-IP,
    then "unknown". Never raises.

    Args:
        headers: Request headers with lower-cased names

    Returns:
        str: Client IP or "unknown"
    """
    cdn_ip = (headers.get(CDN_IP_HEADER) or '').strip()
    if cdn_ip:
        return cdn_ip

    forwarded = (headers.get(FORWARDED_FOR_HEADER) or '').split(',')[0].strip()
    if forwarded:
        return forwarded

    real_ip = (headers.get(REAL_IP_HEADER) or '').strip()
    if real_ip:
        return real_ip

    return UNKNOWN_IP


# ============================================================================
# Decision Service Client
# ============================================================================

DECIDE_PATH = '/proto.decide.v1alpha1.DecideService/Decide'
SDK_STACK = 'SDK_STACK_PYTHON'
SDK_VERSION = '0.1.0'

# Headers never forwarded to the decision service
_PRIVATE_HEADERS = ('authorization', 'cookie', 'set-cookie')

DEFAULT_RULES: List[Dict[str, Any]] = [
    {'shield': {'mode': 'MODE_LIVE'}},
    {'botV2': {'mode': 'MODE_DRY_RUN', 'allow': ['CATEGORY:SEARCH_ENGINE']}},
    {'rateLimit': {
        'mode': 'MODE_LIVE',
        'algorithm': 'RATE_LIMIT_ALGORITHM_TOKEN_BUCKET',
        'refillRate': 5,
        'interval': 600,
        'capacity': 5,
    }},
]

REQUESTED_TOKENS = 1


def _enum_name(value: Any, prefix: str) -> str:
    """Normalize a protobuf enum string ("CONCLUSION_DENY" -> "DENY")."""
    text = str(value or '').upper()
    if text.startswith(prefix):
        text = text[len(prefix):]
    return text


class AbuseGuard:
    """
    Client for the remote rate-limit / bot-detection decision service.

    One instance is created per Lambda container; its httpx.Client keeps
    connections alive across warm invocations.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = 'https://decide.arcjet.com',
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
        rules: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Args:
            api_key: Service API key (None means unconfigured)
            base_url: Decision service base URL
            timeout: Seconds allowed for connect and read of one call
            http_client: Preconfigured client (tests inject a MockTransport)
            rules: Rule definitions sent with each request
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.rules = rules if rules is not None else DEFAULT_RULES
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings) -> 'AbuseGuard':
        return cls(
            api_key=settings.abuse_guard_key,
            base_url=settings.abuse_guard_url,
            timeout=settings.abuse_guard_timeout,
        )

    @property
    def http_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(self.timeout))
            logger.info(f"Abuse guard client initialized: base_url={self.base_url}, timeout={self.timeout}s")
        return self._http_client

    def _build_payload(self, request: RequestContext) -> Dict[str, Any]:
        headers = {
            name: value for name, value in request.headers.items()
            if name.lower() not in _PRIVATE_HEADERS
        }
        return {
            'sdkStack': SDK_STACK,
            'sdkVersion': SDK_VERSION,
            'details': {
                'ip': request.ip,
                'method': request.method,
                'protocol': 'https:',
                'host': request.host,
                'path': request.path,
                'headers': headers,
                'extra': {'requested': str(REQUESTED_TOKENS)},
            },
            'rules': self.rules,
        }

    def protect(self, request: RequestContext) -> GuardResult:
        """
        Ask the decision service whether `request` may proceed.

        Args:
            request: Request context with resolved client IP

        Returns:
            GuardResult: ALLOW or a denial category

        Raises:
            ConfigurationError: If no API key is configured
            AbuseServiceError: If the service cannot produce a decision
        """
        if not self.api_key:
            raise ConfigurationError("ARCJET_KEY environment variable is required but not set")

        start_time = time.time()
        logger.info(f"Requesting abuse decision: ip={request.ip}, path={request.path}")

        try:
            response = self.http_client.post(
                f"{self.base_url}{DECIDE_PATH}",
                json=self._build_payload(request),
                headers={
                    'Authorization': f"Bearer {self.api_key}",
                    'Content-Type': 'application/json',
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise AbuseServiceError(
                f"Decision service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise AbuseServiceError(
                f"Decision service request failed: {e.__class__.__name__}"
            ) from e
        except ValueError as e:
            raise AbuseServiceError("Decision service returned a non-JSON body") from e

        result = self._interpret(data)

        execution_time = time.time() - start_time
        logger.info(
            f"Abuse decision: decision={result.decision.value}, reason={result.reason}, "
            f"id={result.decision_id}, execution_time={execution_time:.3f}s"
        )
        return result

    def _interpret(self, data: Any) -> GuardResult:
        """
        Map a decide response body to a GuardResult.

        Raises:
            AbuseServiceError: For malformed bodies and ERROR conclusions
        """
        if not isinstance(data, dict) or not isinstance(data.get('decision'), dict):
            raise AbuseServiceError("Decision service response is missing 'decision'")

        decision = data['decision']
        decision_id = decision.get('id')
        conclusion = _enum_name(decision.get('conclusion'), 'CONCLUSION_')
        reason = decision.get('reason') or {}

        if conclusion == 'ERROR':
            message = (reason.get('error') or {}).get('message', 'unknown error')
            raise AbuseServiceError(f"Decision service reported an error: {message}")

        if conclusion == 'DENY':
            if 'rateLimit' in reason:
                return GuardResult(AbuseDecision.RATE_LIMITED, 'rate_limit', decision_id)
            if 'botV2' in reason or 'bot' in reason:
                return GuardResult(AbuseDecision.BOT_DETECTED, 'bot', decision_id)
            kind = next(iter(reason), 'forbidden')
            return GuardResult(AbuseDecision.FORBIDDEN, kind, decision_id)

        if conclusion == 'CHALLENGE':
            return GuardResult(AbuseDecision.FORBIDDEN, 'challenge', decision_id)

        if conclusion != 'ALLOW':
            raise AbuseServiceError(f"Unexpected decision conclusion: {conclusion or 'missing'}")

        ip_details = decision.get('ipDetails') or {}
        if ip_details.get('isHosting'):
            return GuardResult(AbuseDecision.HOSTING_FORBIDDEN, 'hosting_ip', decision_id)

        for rule_result in decision.get('ruleResults') or []:
            bot_reason = (rule_result.get('reason') or {}).get('botV2') or {}
            if bot_reason.get('spoofed'):
                return GuardResult(AbuseDecision.FORBIDDEN, 'spoofed_bot', decision_id)

        return GuardResult(AbuseDecision.ALLOW, '', decision_id)
