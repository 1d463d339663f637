import logging
import os
import time
import urllib.request

import boto3

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

ATTEMPTS = 12
DELAY_SECONDS = 5


def probe(url: str, timeout=2):
    req = urllib.request.Request(url, method="GET")
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        code = resp.getcode()
        body = resp.read(200).decode("utf-8", errors="ignore")
        return code, body


def wait_for_test_traffic(url: str, attempts=ATTEMPTS, delay=DELAY_SECONDS):
    """Return None once ``url`` answers with a 2xx/3xx, else the last error."""
    last_error = None
    for i in range(attempts):
        try:
            code, _ = probe(url)
            if 200 <= code < 400:
                logger.info("Test traffic OK after %d attempt(s): %s", i + 1, code)
                return None
            last_error = f"Unexpected status: {code}"
        except Exception as e:
            last_error = str(e)
        logger.warning("Attempt %d/%d failed: %s", i + 1, attempts, last_error)
        if i + 1 < attempts:
            time.sleep(delay)
    return last_error


def handler(event, context):
    # Invoked by CodeDeploy on AfterAllowTestTraffic
    # CodeDeploy waits out the hook timeout unless a status is reported
    status = "Failed"
    try:
        url = os.environ.get("TEST_URL")
        if not url:
            raise ValueError("TEST_URL not set")
        last_error = wait_for_test_traffic(url)
        if last_error is None:
            status = "Succeeded"
    finally:
        boto3.client("codedeploy").put_lifecycle_event_hook_execution_status(
            deploymentId=event["DeploymentId"],
            lifecycleEventHookExecutionId=event["LifecycleEventHookExecutionId"],
            status=status,
        )
    if last_error is not None:
        raise RuntimeError(f"Test traffic validation failed: {last_error}")
    return {"status": status}
