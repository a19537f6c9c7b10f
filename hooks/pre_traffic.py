"""
CodeDeploy pre-traffic hook for the form endpoints.

Invokes the new function version with a CORS preflight (and, for endpoints
that serve GET, a liveness probe) before any traffic is shifted to it.
"""

import json
import logging
import os

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

codedeploy = boto3.client('codedeploy')
lambda_client = boto3.client('lambda')

PREFLIGHT_EVENT = {
    'httpMethod': 'OPTIONS',
    'path': '/',
    'headers': {'Origin': 'https://pre-deployment-test'},
    'body': None,
}
LIVENESS_EVENT = {
    'httpMethod': 'GET',
    'path': '/',
    'headers': {},
    'body': None,
}


class SmokeTestError(Exception):
    """The deployed function answered a probe incorrectly."""


def _invoke(target_function, probe):
    """Invoke `target_function` with `probe` and return the proxy response."""
    method = probe['httpMethod']
    response = lambda_client.invoke(
        FunctionName=target_function,
        InvocationType='RequestResponse',
        Payload=json.dumps(probe),
    )
    payload = json.loads(response['Payload'].read())
    logger.info(f"{method} probe response: {json.dumps(payload)}")

    if response.get('FunctionError'):
        raise SmokeTestError(f"{method} probe raised: {payload}")
    if payload.get('statusCode') != 200:
        raise SmokeTestError(f"{method} probe returned status {payload.get('statusCode')}")
    if payload.get('headers', {}).get('Access-Control-Allow-Origin') != '*':
        raise SmokeTestError(f"{method} probe response has no CORS headers")
    return payload


def run_probes(target_function, check_liveness=False):
    # Preflight must pass even when mail and abuse settings are absent
    _invoke(target_function, PREFLIGHT_EVENT)

    if check_liveness:
        payload = _invoke(target_function, LIVENESS_EVENT)
        body = json.loads(payload.get('body') or '{}')
        if body.get('success') is not True:
            raise SmokeTestError(f"Liveness probe reported failure: {body}")


def _report(event, status):
    codedeploy.put_lifecycle_event_hook_execution_status(
        deploymentId=event['DeploymentId'],
        lifecycleEventHookExecutionId=event['LifecycleEventHookExecutionId'],
        status=status,
    )


def lambda_handler(event, context):
    """
    Pre-traffic hook for CodeDeploy.

    Reports Failed (blocking the deployment) when any probe fails.
    """
    logger.info(f"Pre-traffic hook triggered: {json.dumps(event)}")

    target_function = os.environ.get('TARGET_FUNCTION')
    check_liveness = os.environ.get('CHECK_LIVENESS', 'false').lower() == 'true'

    try:
        logger.info(f"Probing {target_function} (liveness={check_liveness})")
        run_probes(target_function, check_liveness)
    except Exception as e:
        logger.error(f"Pre-traffic validation failed: {e}", exc_info=True)
        _report(event, 'Failed')
        return {'statusCode': 500, 'body': json.dumps(f'Pre-traffic validation failed: {e}')}

    logger.info("Pre-traffic validation passed")
    _report(event, 'Succeeded')
    return {'statusCode': 200, 'body': json.dumps('Pre-traffic validation succeeded')}
