"""Slack alerts for finished scans.

An alert is posted to the configured incoming webhook only when a
completed scan has findings. Delivery is best effort: failures are
logged and reported as False, never raised into the orchestrator.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from oversight.models import ScanStatus
from oversight.schemas import ScanJob

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 10.0


def count_findings(job: ScanJob) -> Dict[str, int]:
    """Per-tool counts used by the alert and the analytics event."""
    results = job.results
    counts = {
        "critical": 0,
        "high": 0,
        "medium": 0,
        "low": 0,
        "secrets": 0,
        "code_errors": 0,
        "code_warnings": 0,
    }
    if results is None:
        return counts
    if results.trivy is not None:
        summary = results.trivy.summary
        counts["critical"] = summary.critical
        counts["high"] = summary.high
        counts["medium"] = summary.medium
        counts["low"] = summary.low
    if results.gitleaks is not None:
        counts["secrets"] = results.gitleaks.summary.total
    if results.semgrep is not None:
        counts["code_errors"] = results.semgrep.summary.error
        counts["code_warnings"] = results.semgrep.summary.warning
    return counts


def build_scan_alert(job: ScanJob) -> Optional[Dict[str, Any]]:
    """Slack Block Kit payload for ``job``, or None when there is nothing to report."""
    counts = count_findings(job)
    dependency_total = counts["critical"] + counts["high"] + counts["medium"] + counts["low"]
    secrets_total = counts["secrets"]
    code_total = counts["code_errors"] + counts["code_warnings"]

    if dependency_total + secrets_total + code_total == 0:
        return None

    # Leaked secrets always count as critical
    critical = counts["critical"] + secrets_total
    emoji = ":rotating_light:" if critical else ":warning:"
    headline = "Critical Issues Found" if critical else "Issues Found"

    fields: List[Dict[str, str]] = []
    if dependency_total:
        fields.append(
            {
                "type": "mrkdwn",
                "text": (
                    "*Dependencies (Trivy):*\n"
                    f"{counts['critical']} critical, {counts['high']} high, "
                    f"{counts['medium']} medium"
                ),
            }
        )
    if secrets_total:
        fields.append(
            {"type": "mrkdwn", "text": f"*Secrets (Gitleaks):*\n{secrets_total} found"}
        )
    if code_total:
        fields.append(
            {
                "type": "mrkdwn",
                "text": (
                    "*Code Issues (Semgrep):*\n"
                    f"{counts['code_errors']} errors, {counts['code_warnings']} warnings"
                ),
            }
        )

    scanned_at = (job.completed_at or datetime.now(timezone.utc)).isoformat()
    return {
        "blocks": [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} Security Scan: {headline}",
                    "emoji": True,
                },
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"Repository: *{job.repo_name}*"},
            },
            {"type": "section", "fields": fields},
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"_Scanned at {scanned_at}_"}],
            },
        ]
    }


class SlackNotifier:
    """Posts scan alerts to a Slack incoming webhook."""

    def __init__(self, webhook_url: Optional[str], *, timeout: float = WEBHOOK_TIMEOUT_SECONDS) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    def send_scan_alert(self, job: ScanJob) -> bool:
        if not self.enabled or job.status != ScanStatus.COMPLETED:
            return False
        payload = build_scan_alert(job)
        if payload is None:
            return True
        return self._post(payload, job.id)

    __call__ = send_scan_alert

    def _post(self, payload: Dict[str, Any], scan_id: str) -> bool:
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(
                    self._webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            logger.error("Scan %s: Slack alert timed out: %s", scan_id, exc)
            return False
        except httpx.HTTPError as exc:
            logger.error("Scan %s: Slack alert failed: %s", scan_id, exc)
            return False

        if not response.is_success:
            logger.warning(
                "Scan %s: Slack alert rejected (HTTP %s)", scan_id, response.status_code
            )
            return False
        logger.info("Scan %s: Slack alert sent", scan_id)
        return True
