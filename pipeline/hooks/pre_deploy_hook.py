"""Pipeline pre-deploy hook that gates deployment on the lint report verdict."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import zipfile

import boto3

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)

REPORT_PATH = os.environ.get("REPORT_PATH", "artifacts/lint-report.json")
FAILURE_GUIDE_URL = os.environ.get(
    "GUIDE_URL",
    "https://docs.aws.amazon.com/wellarchitected/latest/security-pillar/security.html",
)

ORDER = ["error", "warning"]


def _extract_artifact(job_data: dict, target_path: str) -> dict:
    credentials = job_data["artifactCredentials"]
    session = boto3.Session(
        aws_access_key_id=credentials["accessKeyId"],
        aws_secret_access_key=credentials["secretAccessKey"],
        aws_session_token=credentials["sessionToken"],
        region_name=os.environ.get("AWS_REGION"),
    )
    s3_client = session.client("s3")

    artifact = job_data["inputArtifacts"][0]
    bucket = artifact["location"]["s3Location"]["bucketName"]
    key = artifact["location"]["s3Location"]["objectKey"]

    with tempfile.NamedTemporaryFile() as tmp_file:
        s3_client.download_file(bucket, key, tmp_file.name)
        with zipfile.ZipFile(tmp_file.name) as zipped:
            with zipped.open(target_path) as report_file:
                return json.loads(report_file.read().decode("utf-8"))


def _top_findings(report: dict, limit: int = 10) -> list[str]:
    findings = report.get("findings", [])
    ordered = sorted(
        findings,
        key=lambda item: ORDER.index(item.get("severity")) if item.get("severity") in ORDER else len(ORDER),
    )
    highlights = []
    for item in ordered[:limit]:
        span = item.get("span") or {}
        highlights.append(
            f"[{item.get('severity')}] {item.get('ruleId')} {item.get('message')} "
            f"({item.get('unitId')}:{span.get('line')}:{span.get('column')})"
        )
    return highlights


def build_message(report: dict) -> tuple[bool, str]:
    """Return the gate decision and the CodePipeline message for a report."""

    passed = report.get("verdict") == "pass" and report.get("status", "complete") == "complete"
    message_lines = [
        "Lint verification (pre-deploy hook)",
        f"Verdict: {report.get('verdict')}",
        f"Status: {report.get('status')}",
        f"Counts: {report.get('counts', {})}",
    ]
    skipped = report.get("skipped") or []
    if skipped:
        message_lines.append(f"Skipped units: {len(skipped)}")
    highlights = _top_findings(report)
    if highlights:
        message_lines.append("Highlights:")
        message_lines.extend(highlights)
    message_lines.append(f"Remediation: {FAILURE_GUIDE_URL}")
    return passed, "\n".join(message_lines)


def handler(event, _context):
    job = event["CodePipeline.job"]
    job_id = job["id"]
    data = job["data"]

    client = boto3.client("codepipeline")

    try:
        report = _extract_artifact(data, REPORT_PATH)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.error("Failed to read %s: %s", REPORT_PATH, exc)
        client.put_job_failure_result(
            jobId=job_id,
            failureDetails={
                "type": "JobFailed",
                "message": f"Failed to read {REPORT_PATH}: {exc}",
            },
        )
        return

    passed, message = build_message(report)
    if not passed:
        client.put_job_failure_result(
            jobId=job_id,
            failureDetails={
                "type": "JobFailed",
                "message": message[:5000],
            },
        )
        return

    client.put_job_success_result(jobId=job_id, executionDetails={"summary": "Lint gate passed"})
