"""Markdown/PDF reports and the Slack alert payload."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx

from oversight.models import ScanStatus, ScanTool
from oversight.schemas import (
    GitleaksResult,
    GitleaksSecret,
    GitleaksSummary,
    ScanJob,
    ScanResults,
    SemgrepDebug,
    SemgrepResult,
    TrivyResult,
    TrivySummary,
    TrivyVulnerability,
)
from oversight.services.notifications import SlackNotifier, build_scan_alert
from oversight.services.reports import build_scan_markdown, export_scan_pdf


def completed_job(with_findings: bool = True) -> ScanJob:
    results = ScanResults()
    if with_findings:
        results.record_result(
            TrivyResult(
                vulnerabilities=[
                    TrivyVulnerability(
                        id="CVE-2024-0001",
                        pkg_name="lodash",
                        installed_version="4.17.15",
                        fixed_version="4.17.21",
                        severity="critical",
                        title="Prototype | pollution",
                    )
                ],
                summary=TrivySummary(critical=1),
            )
        )
        results.record_result(
            GitleaksResult(
                secrets=[
                    GitleaksSecret(rule_id="aws-access-token", file=".env", start_line=2, match="AKIA...MNOP")
                ],
                summary=GitleaksSummary(total=1, by_rule={"aws-access-token": 1}),
            )
        )
    else:
        results.record_result(TrivyResult())
    results.record_error("semgrep", "tool-not-found: semgrep")
    return ScanJob(
        id="abc123def456",
        repo_name="alpha",
        repo_full_name="SnickerSec/alpha",
        status=ScanStatus.COMPLETED,
        tools=[ScanTool.TRIVY, ScanTool.GITLEAKS, ScanTool.SEMGREP],
        started_at=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        completed_at=datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc),
        progress=100,
        results=results,
    )


def test_markdown_report_includes_findings_and_tool_errors():
    markdown = build_scan_markdown(completed_job())

    assert "# Security Scan Report" in markdown
    assert "**Repository:** SnickerSec/alpha" in markdown
    assert "CVE-2024-0001" in markdown
    assert "Prototype \\| pollution" in markdown
    assert "`.env:2`" in markdown
    assert "| semgrep | tool-not-found: semgrep |" in markdown
    assert "**Total findings:** 2" in markdown


def test_markdown_report_for_failed_clone():
    job = completed_job()
    job.status = ScanStatus.FAILED
    job.results = None
    job.error = "Failed to clone SnickerSec/alpha"

    markdown = build_scan_markdown(job)

    assert "**Error:** Failed to clone SnickerSec/alpha" in markdown
    assert "_No tool results recorded for this scan._" in markdown


def test_pdf_export_returns_pdf_bytes():
    assert export_scan_pdf(completed_job()).startswith(b"%PDF")


def test_alert_payload_counts_secrets_as_critical():
    payload = build_scan_alert(completed_job())

    header = payload["blocks"][0]["text"]["text"]
    assert "Critical Issues Found" in header
    fields = payload["blocks"][2]["fields"]
    assert any("1 critical" in f["text"] for f in fields)
    assert any("Secrets (Gitleaks)" in f["text"] for f in fields)


def test_no_alert_without_findings():
    assert build_scan_alert(completed_job(with_findings=False)) is None


def test_notifier_posts_only_when_findings_exist():
    notifier = SlackNotifier("https://hooks.slack.com/services/T000/B000/XXX")
    response = MagicMock(is_success=True, status_code=200)
    with patch("oversight.services.notifications.httpx.Client") as client_cls:
        client = client_cls.return_value.__enter__.return_value
        client.post.return_value = response

        assert notifier.send_scan_alert(completed_job()) is True
        assert notifier.send_scan_alert(completed_job(with_findings=False)) is True

    client.post.assert_called_once()
    assert client.post.call_args.kwargs["json"]["blocks"][1]["text"]["text"] == "Repository: *alpha*"


def test_notifier_swallows_transport_errors():
    notifier = SlackNotifier("https://hooks.slack.com/services/T000/B000/XXX")
    with patch("oversight.services.notifications.httpx.Client") as client_cls:
        client_cls.return_value.__enter__.return_value.post.side_effect = httpx.ConnectError("down")

        assert notifier.send_scan_alert(completed_job()) is False


def test_disabled_notifier_does_nothing():
    notifier = SlackNotifier(None)

    assert notifier.enabled is False
    assert notifier.send_scan_alert(completed_job()) is False


def test_markdown_report_lists_semgrep_errors():
    job = completed_job()
    job.results.record_result(
        SemgrepResult(
            debug=SemgrepDebug(exit_code=2, rule_errors=["warn: could not parse app/broken.py"])
        )
    )

    markdown = build_scan_markdown(job)

    assert "- **Semgrep errors (exit 2):**" in markdown
    assert "  - warn: could not parse app/broken.py" in markdown
    assert "_No code issues found._" in markdown
