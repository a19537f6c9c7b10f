"""
Tests for API Gateway event helpers.
"""

import base64

import pytest

from services import http


class TestRequestMethod:
    """Test method extraction for REST and HTTP API events."""

    def test_rest_event(self, make_event):
        assert http.request_method(make_event('post')) == 'POST'

    def test_http_api_event(self, make_event):
        assert http.request_method(make_event('OPTIONS', version=2)) == 'OPTIONS'

    def test_missing_method(self):
        assert http.request_method({}) == ''


class TestRequestContext:
    """Test RequestContext construction."""

    def test_headers_lower_cased_and_ip_resolved(self, make_event):
        context = http.request_context(make_event())

        assert context.method == 'POST'
        assert context.path == '/api/contact_form'
        assert context.host == 'api.example.com'
        assert context.headers['content-type'] == 'application/json'
        assert context.ip == '203.0.113.7'

    def test_http_api_raw_path(self, make_event):
        context = http.request_context(make_event(version=2))

        assert context.path == '/api/contact_form'

    def test_no_headers(self):
        context = http.request_context({'httpMethod': 'POST', 'headers': None})

        assert context.headers == {}
        assert context.ip == 'unknown'
        assert context.path == '/'


class TestDecodeJsonBody:
    """Test body decoding."""

    def test_json_object(self, make_event):
        assert http.decode_json_body(make_event(body={'email': 'a@example.com'})) == {
            'email': 'a@example.com'
        }

    def test_base64_body(self):
        body = base64.b64encode(b'{"email": "a@example.com"}').decode('ascii')

        result = http.decode_json_body({'body': body, 'isBase64Encoded': True})

        assert result == {'email': 'a@example.com'}

    @pytest.mark.parametrize('event', [
        {'body': None},
        {'body': ''},
        {},
    ])
    def test_missing_body(self, event):
        with pytest.raises(http.InvalidBodyError, match="Request body is required."):
            http.decode_json_body(event)

    def test_invalid_json(self):
        with pytest.raises(http.InvalidBodyError, match="must be valid JSON"):
            http.decode_json_body({'body': '{"email": '})

    def test_invalid_base64(self):
        with pytest.raises(http.InvalidBodyError, match="base64"):
            http.decode_json_body({'body': '!!!not-base64!!!', 'isBase64Encoded': True})
