"""
Tests for the CodeDeploy traffic hooks.
"""

import io
import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

import post_traffic
import pre_traffic

HOOK_EVENT = {'DeploymentId': 'd-123', 'LifecycleEventHookExecutionId': 'hook-1'}


def invoke_result(payload, function_error=None):
    result = {'Payload': io.BytesIO(json.dumps(payload).encode('utf-8'))}
    if function_error:
        result['FunctionError'] = function_error
    return result


def ok_payload(body=''):
    return {
        'statusCode': 200,
        'headers': {'Access-Control-Allow-Origin': '*'},
        'body': body,
    }


def reported_status(codedeploy):
    return codedeploy.put_lifecycle_event_hook_execution_status.call_args.kwargs['status']


@pytest.fixture
def target(monkeypatch):
    monkeypatch.setenv('TARGET_FUNCTION', 'newsletter-function')


class TestPreTraffic:
    def test_preflight_passes(self, target, monkeypatch):
        monkeypatch.delenv('CHECK_LIVENESS', raising=False)
        with patch.object(pre_traffic, 'lambda_client') as lambda_client, \
                patch.object(pre_traffic, 'codedeploy') as codedeploy:
            lambda_client.invoke.return_value = invoke_result(ok_payload())

            response = pre_traffic.lambda_handler(HOOK_EVENT, None)

        assert response['statusCode'] == 200
        assert reported_status(codedeploy) == 'Succeeded'
        sent = json.loads(lambda_client.invoke.call_args.kwargs['Payload'])
        assert sent['httpMethod'] == 'OPTIONS'

    def test_liveness_probe(self, target, monkeypatch):
        monkeypatch.setenv('CHECK_LIVENESS', 'true')
        live = json.dumps({'success': True, 'message': "Newsletter API is running."})
        with patch.object(pre_traffic, 'lambda_client') as lambda_client, \
                patch.object(pre_traffic, 'codedeploy') as codedeploy:
            lambda_client.invoke.side_effect = [
                invoke_result(ok_payload()),
                invoke_result(ok_payload(live)),
            ]

            pre_traffic.lambda_handler(HOOK_EVENT, None)

        assert lambda_client.invoke.call_count == 2
        assert reported_status(codedeploy) == 'Succeeded'

    def test_missing_cors_fails(self, target):
        payload = {'statusCode': 200, 'headers': {}, 'body': ''}
        with patch.object(pre_traffic, 'lambda_client') as lambda_client, \
                patch.object(pre_traffic, 'codedeploy') as codedeploy:
            lambda_client.invoke.return_value = invoke_result(payload)

            response = pre_traffic.lambda_handler(HOOK_EVENT, None)

        assert response['statusCode'] == 500
        assert reported_status(codedeploy) == 'Failed'

    def test_function_error_fails(self, target):
        with patch.object(pre_traffic, 'lambda_client') as lambda_client, \
                patch.object(pre_traffic, 'codedeploy') as codedeploy:
            lambda_client.invoke.return_value = invoke_result(
                {'errorMessage': 'boom'}, function_error='Unhandled'
            )

            pre_traffic.lambda_handler(HOOK_EVENT, None)

        assert reported_status(codedeploy) == 'Failed'


class TestPostTraffic:
    def test_no_errors_succeeds(self, target, monkeypatch):
        monkeypatch.delenv('ERROR_THRESHOLD', raising=False)
        with patch.object(post_traffic, 'cloudwatch') as cloudwatch, \
                patch.object(post_traffic, 'codedeploy') as codedeploy:
            cloudwatch.get_metric_statistics.return_value = {'Datapoints': []}

            response = post_traffic.lambda_handler(HOOK_EVENT, None)

        assert response['statusCode'] == 200
        assert reported_status(codedeploy) == 'Succeeded'

    def test_errors_over_threshold_fail(self, target, monkeypatch):
        monkeypatch.setenv('ERROR_THRESHOLD', '1')
        with patch.object(post_traffic, 'cloudwatch') as cloudwatch, \
                patch.object(post_traffic, 'codedeploy') as codedeploy:
            cloudwatch.get_metric_statistics.return_value = {'Datapoints': [{'Sum': 3.0}]}

            post_traffic.lambda_handler(HOOK_EVENT, None)

        assert reported_status(codedeploy) == 'Failed'

    def test_error_count_window(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        with patch.object(post_traffic, 'cloudwatch') as cloudwatch:
            cloudwatch.get_metric_statistics.return_value = {
                'Datapoints': [{'Sum': 1.0}, {'Sum': 2.0}]
            }

            count = post_traffic._error_count('newsletter-function', now=now)

        kwargs = cloudwatch.get_metric_statistics.call_args.kwargs
        assert count == 3.0
        assert kwargs['EndTime'] == now
        assert (now - kwargs['StartTime']).total_seconds() == 300
        assert kwargs['Dimensions'] == [{'Name': 'FunctionName', 'Value': 'newsletter-function'}]
