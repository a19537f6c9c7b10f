"""
Pytest configuration and fixtures for all tests.
"""

import json
import os
import sys
from unittest.mock import MagicMock, Mock

import pytest

# Add src and hooks to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../hooks'))

# Set up test environment variables before importing any modules
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')

from config import Settings  # noqa: E402
from domain.models import AbuseDecision, GuardResult  # noqa: E402
from services.templates import TemplateStore  # noqa: E402


@pytest.fixture
def settings():
    """Fully configured settings (SMTP transport, fail open)."""
    return Settings(
        sender_email='sender@example.com',
        email_password='app-password',
        receiver_email='owner@example.com',
        abuse_guard_key='ajkey_test',
        site_name='HimalayaFace',
        site_url='https://himalayaface.com',
        environment='test',
    )


@pytest.fixture
def templates():
    """Template store reading the packaged templates (no S3)."""
    return TemplateStore()


@pytest.fixture
def lambda_context():
    """Mock Lambda context."""
    context = Mock()
    context.request_id = "test-request-id"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test"
    return context


@pytest.fixture
def allow_guard():
    """Abuse guard that allows every request."""
    guard = MagicMock()
    guard.protect.return_value = GuardResult(AbuseDecision.ALLOW, decision_id='decision-1')
    return guard


@pytest.fixture
def mx_ok_verifier():
    """Domain verifier that accepts every domain."""
    verifier = MagicMock()
    verifier.has_mx_record.return_value = True
    return verifier


class RecordingTransport:
    """Transport double recording sent messages; optional failure per send index."""

    def __init__(self, fail_on=()):
        self.sent = []
        self.fail_on = set(fail_on)
        self.opened = 0
        self.closed = 0
        self._attempt = 0

    def __call__(self):
        return self

    def __enter__(self):
        self.opened += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed += 1
        return False

    def send(self, message):
        from services.mailer import MailDeliveryError

        index = self._attempt
        self._attempt += 1
        if index in self.fail_on:
            raise MailDeliveryError(f"SMTP send failed: attempt {index}")
        self.sent.append(message)
        return message['Message-ID']


@pytest.fixture
def transport():
    return RecordingTransport()


def api_event(method='POST', body=None, headers=None, version=1):
    """Build an API Gateway proxy event (REST v1 or HTTP API v2)."""
    if body is not None and not isinstance(body, str):
        body = json.dumps(body)
    headers = headers if headers is not None else {
        'Content-Type': 'application/json',
        'X-Forwarded-For': '203.0.113.7, 10.0.0.1',
        'Host': 'api.example.com',
    }
    if version == 2:
        return {
            'version': '2.0',
            'rawPath': '/api/contact_form',
            'headers': headers,
            'requestContext': {'http': {'method': method, 'path': '/api/contact_form'}},
            'body': body,
            'isBase64Encoded': False,
        }
    return {
        'httpMethod': method,
        'path': '/api/contact_form',
        'headers': headers,
        'body': body,
        'isBase64Encoded': False,
    }


@pytest.fixture
def make_event():
    return api_event


@pytest.fixture
def contact_payload():
    return {
        'name': "Mary O'Neil",
        'email': 'mary@example.com',
        'phone': '+1 555-123-4567',
        'message': 'Hello there, I would like to book a consultation next week.',
        'priority': False,
    }
