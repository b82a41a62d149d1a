"""Safe Lambda function demonstrating best practices."""

import json
import logging
import os
from datetime import datetime, timezone

import boto3

LOGGER = logging.getLogger()

s3 = boto3.client("s3")


def _get_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing env var: {name}")
    return value


def handler(event, context):  # pragma: no cover - demo function
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        result = s3.put_object(
            Bucket=_get_env("BUCKET_NAME"),
            Key=f"logs/{timestamp}.json",
            Body=json.dumps({"event": event}),
            ServerSideEncryption="AES256",
        )
    except Exception:  # pragma: no cover - runtime failure path
        LOGGER.exception("Error in safe handler")
        return {
            "statusCode": 500,
            "body": json.dumps({"message": "Internal server error"}),
        }

    return {
        "statusCode": 200,
        "body": json.dumps({"message": "Request processed securely", "etag": result.get("ETag")}),
    }
