"""Intentionally vulnerable Lambda function used for linter demos."""

import hashlib
import json
import logging
import os
import traceback

import pymysql

LOGGER = logging.getLogger()

# Hardcoded secret intentionally left to exercise the linter.
API_KEY = "sk-1234567890abcdef"


def weak_hash(data):
    return hashlib.md5(data).hexdigest()


def handler(event, context):  # pragma: no cover - demo function
    try:
        body = json.loads(event.get("body") or "{}")
        user_input = body.get("userInput", "")
        user_id = body.get("userId", "")

        print("Processing request with SSN:", os.environ["SSN"])
        LOGGER.info("Database password: %s", os.environ.get("DB_PASSWORD"))

        connection = pymysql.connect(host="localhost", user="admin", password="admin123", database="testdb")
        with connection.cursor() as cursor:
            cursor.execute(f"SELECT * FROM users WHERE name = '{user_input}' AND id = {user_id}")
            rows = cursor.fetchall()

        return {
            "statusCode": 200,
            "headers": {
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Headers": "*",
            },
            "body": json.dumps({"results": rows, "env": dict(os.environ)}),
        }
    except Exception:
        return {
            "statusCode": 500,
            "body": json.dumps({"stack": traceback.format_exc()}),
        }
