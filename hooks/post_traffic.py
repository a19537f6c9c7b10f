"""
CodeDeploy post-traffic hook for the form endpoints.

Compares the function's recent Lambda `Errors` sum against ERROR_THRESHOLD;
exceeding it reports Failed, which rolls the deployment back.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

codedeploy = boto3.client('codedeploy')
cloudwatch = boto3.client('cloudwatch')

WINDOW_MINUTES = 5


def _error_count(target_function, now=None):
    """Sum of Lambda Errors for the function over the last WINDOW_MINUTES."""
    end = now or datetime.now(timezone.utc)
    stats = cloudwatch.get_metric_statistics(
        Namespace='AWS/Lambda',
        MetricName='Errors',
        Dimensions=[{'Name': 'FunctionName', 'Value': target_function}],
        StartTime=end - timedelta(minutes=WINDOW_MINUTES),
        EndTime=end,
        Period=WINDOW_MINUTES * 60,
        Statistics=['Sum'],
    )
    logger.info(f"Errors datapoints for {target_function}: {stats.get('Datapoints', [])}")
    return sum(point.get('Sum', 0) for point in stats.get('Datapoints', []))


def _report(event, status):
    codedeploy.put_lifecycle_event_hook_execution_status(
        deploymentId=event['DeploymentId'],
        lifecycleEventHookExecutionId=event['LifecycleEventHookExecutionId'],
        status=status,
    )


def lambda_handler(event, context):
    """Post-traffic hook for CodeDeploy."""
    logger.info(f"Post-traffic hook triggered: {json.dumps(event)}")

    target_function = os.environ.get('TARGET_FUNCTION')

    try:
        threshold = float(os.environ.get('ERROR_THRESHOLD', '0'))
        errors = _error_count(target_function)
        if errors > threshold:
            raise RuntimeError(f"{target_function} logged {errors} errors (threshold {threshold})")
    except Exception as e:
        logger.error(f"Post-traffic validation failed: {e}", exc_info=True)
        _report(event, 'Failed')
        return {'statusCode': 500, 'body': json.dumps(f'Post-traffic validation failed: {e}')}

    logger.info(f"Post-traffic validation passed: {errors} errors")
    _report(event, 'Succeeded')
    return {'statusCode': 200, 'body': json.dumps('Post-traffic validation succeeded')}
