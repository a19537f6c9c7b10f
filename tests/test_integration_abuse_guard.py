"""
Tests for the abuse guard (rate limiting / bot protection) client.
"""

import json

import httpx
import pytest

from domain.models import AbuseDecision, RequestContext
from integrations.abuse_guard import (
    DECIDE_PATH,
    AbuseGuard,
    AbuseServiceError,
    ConfigurationError,
    client_ip,
)


@pytest.fixture
def request_context():
    return RequestContext(
        method='POST',
        path='/api/newsletter',
        host='api.example.com',
        headers={
            'content-type': 'application/json',
            'cookie': 'session=abc',
            'authorization': 'Bearer user-token',
            'user-agent': 'Mozilla/5.0',
        },
        ip='203.0.113.7',
    )


def guard_returning(body=None, status=200, captured=None, error=None):
    """AbuseGuard backed by an httpx.MockTransport."""
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if error is not None:
            raise error
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body or b'')

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return AbuseGuard(api_key='ajkey_test', base_url='https://decide.test', http_client=client)


def decision(conclusion, reason=None, **extra):
    payload = {'decision': {'id': 'lreq_123', 'conclusion': conclusion, 'reason': reason or {}}}
    payload['decision'].update(extra)
    return payload


class TestClientIp:
    """Test client IP resolution order."""

    def test_cdn_header_wins(self):
        headers = {
            'cf-connecting-ip': '198.51.100.1',
            'x-forwarded-for': '203.0.113.7',
            'x-real-ip': '192.0.2.1',
        }

        assert client_ip(headers) == '198.51.100.1'

    def test_first_forwarded_for_entry(self):
        headers = {'x-forwarded-for': ' 203.0.113.7 , 10.0.0.1', 'x-real-ip': '192.0.2.1'}

        assert client_ip(headers) == '203.0.113.7'

    def test_real_ip(self):
        assert client_ip({'x-real-ip': '192.0.2.1'}) == '192.0.2.1'

    def test_empty_forwarded_for_falls_through(self):
        assert client_ip({'x-forwarded-for': ' , ', 'x-real-ip': '192.0.2.1'}) == '192.0.2.1'

    def test_unknown(self):
        assert client_ip({}) == 'unknown'


class TestProtectRequest:
    """Test the outgoing decide request."""

    def test_request_shape(self, request_context):
        captured = []
        guard = guard_returning(decision('CONCLUSION_ALLOW'), captured=captured)

        guard.protect(request_context)

        request = captured[0]
        assert request.method == 'POST'
        assert str(request.url) == f'https://decide.test{DECIDE_PATH}'
        assert request.headers['authorization'] == 'Bearer ajkey_test'

        body = json.loads(request.content)
        assert body['details']['ip'] == '203.0.113.7'
        assert body['details']['path'] == '/api/newsletter'
        assert body['details']['extra'] == {'requested': '1'}
        assert 'cookie' not in body['details']['headers']
        assert 'authorization' not in body['details']['headers']
        assert body['details']['headers']['user-agent'] == 'Mozilla/5.0'

        rate_limit = next(rule['rateLimit'] for rule in body['rules'] if 'rateLimit' in rule)
        assert rate_limit['refillRate'] == 5
        assert rate_limit['interval'] == 600
        assert rate_limit['capacity'] == 5

    def test_missing_api_key(self, request_context):
        guard = AbuseGuard(api_key=None)

        with pytest.raises(ConfigurationError):
            guard.protect(request_context)


class TestDecisions:
    """Test mapping of decide responses."""

    def test_allow(self, request_context):
        result = guard_returning(decision('CONCLUSION_ALLOW')).protect(request_context)

        assert result.decision is AbuseDecision.ALLOW
        assert result.decision_id == 'lreq_123'

    def test_plain_enum_names_accepted(self, request_context):
        result = guard_returning(decision('ALLOW')).protect(request_context)

        assert result.allowed

    def test_rate_limited(self, request_context):
        body = decision('CONCLUSION_DENY', {'rateLimit': {'max': 5, 'remaining': 0}})

        result = guard_returning(body).protect(request_context)

        assert result.decision is AbuseDecision.RATE_LIMITED

    def test_bot(self, request_context):
        body = decision('CONCLUSION_DENY', {'botV2': {'denied': ['CURL']}})

        result = guard_returning(body).protect(request_context)

        assert result.decision is AbuseDecision.BOT_DETECTED

    def test_shield_denial_is_forbidden(self, request_context):
        body = decision('CONCLUSION_DENY', {'shield': {'shieldTriggered': True}})

        result = guard_returning(body).protect(request_context)

        assert result.decision is AbuseDecision.FORBIDDEN
        assert result.reason == 'shield'

    def test_challenge_is_forbidden(self, request_context):
        result = guard_returning(decision('CONCLUSION_CHALLENGE')).protect(request_context)

        assert result.decision is AbuseDecision.FORBIDDEN

    def test_hosting_ip(self, request_context):
        body = decision('CONCLUSION_ALLOW', ipDetails={'isHosting': True})

        result = guard_returning(body).protect(request_context)

        assert result.decision is AbuseDecision.HOSTING_FORBIDDEN

    def test_spoofed_bot(self, request_context):
        body = decision(
            'CONCLUSION_ALLOW',
            ruleResults=[{'conclusion': 'CONCLUSION_ALLOW', 'reason': {'botV2': {'spoofed': True}}}],
        )

        result = guard_returning(body).protect(request_context)

        assert result.decision is AbuseDecision.FORBIDDEN
        assert result.reason == 'spoofed_bot'


class TestServiceErrors:
    """Service failures raise AbuseServiceError."""

    def test_error_conclusion(self, request_context):
        body = decision('CONCLUSION_ERROR', {'error': {'message': 'internal'}})

        with pytest.raises(AbuseServiceError, match="internal"):
            guard_returning(body).protect(request_context)

    def test_http_error_status(self, request_context):
        with pytest.raises(AbuseServiceError, match="HTTP 503"):
            guard_returning({'error': 'unavailable'}, status=503).protect(request_context)

    def test_transport_error(self, request_context):
        error = httpx.ConnectTimeout('timed out')

        with pytest.raises(AbuseServiceError, match="ConnectTimeout"):
            guard_returning(error=error).protect(request_context)

    def test_non_json_body(self, request_context):
        with pytest.raises(AbuseServiceError, match="non-JSON"):
            guard_returning(b'<html>oops</html>').protect(request_context)

    def test_missing_decision(self, request_context):
        with pytest.raises(AbuseServiceError, match="missing 'decision'"):
            guard_returning({'unexpected': True}).protect(request_context)

    def test_unknown_conclusion(self, request_context):
        with pytest.raises(AbuseServiceError, match="Unexpected decision conclusion"):
            guard_returning(decision('CONCLUSION_UNSPECIFIED')).protect(request_context)


class TestFromSettings:
    def test_from_settings(self, settings):
        guard = AbuseGuard.from_settings(settings)

        assert guard.api_key == 'ajkey_test'
        assert guard.base_url == 'https://decide.arcjet.com'
        assert guard.timeout == 5.0
