from __future__ import annotations

"""backend/oversight/services/tools/gitleaks_tool.py

Adapter for running **Gitleaks** (secret detection) against the working
tree of a cloned repository.

Key points:
- ``--no-git`` scans files only; the shallow clone has no useful history.
- ``--exit-code 0`` keeps findings from looking like a failure; the report
  is the only source of truth.
- The report is written to stdout (``--report-path -``) so nothing lands
  outside the scan workspace.
- Secret values never leave this module unredacted.
"""

import json
from pathlib import Path
from typing import Dict, List

from oversight.config import Settings, get_settings
from oversight.schemas import GitleaksResult, GitleaksSecret, GitleaksSummary
from oversight.services.tools.base import (
    ToolSettings,
    execute_tool,
    parse_failure,
    relative_to_workspace,
)

REDACTED_PLACEHOLDER = "***redacted***"


def redact_secret(secret: str | None) -> str:
    """Keep the first and last four characters of long secrets only."""
    value = secret or ""
    if len(value) > 12:
        return f"{value[:4]}...{value[-4:]}"
    return REDACTED_PLACEHOLDER


def parse_gitleaks_report(output: str, repo_dir: Path) -> GitleaksResult:
    """Convert a Gitleaks JSON report (a list of findings) into a GitleaksResult."""
    findings = json.loads(output) if output.strip() else []
    if findings is None:
        findings = []
    if not isinstance(findings, list):
        raise ValueError("expected a JSON array of findings")

    secrets: List[GitleaksSecret] = []
    by_rule: Dict[str, int] = {}

    for finding in findings:
        rule_id = finding.get("RuleID") or "unknown"
        secrets.append(
            GitleaksSecret(
                rule_id=rule_id,
                description=finding.get("Description") or "",
                file=relative_to_workspace(finding.get("File"), repo_dir),
                start_line=finding.get("StartLine"),
                end_line=finding.get("EndLine"),
                commit=finding.get("Commit") or None,
                author=finding.get("Author") or None,
                date=finding.get("Date") or None,
                match=redact_secret(finding.get("Secret")),
            )
        )
        by_rule[rule_id] = by_rule.get(rule_id, 0) + 1

    return GitleaksResult(
        secrets=secrets,
        summary=GitleaksSummary(total=len(secrets), by_rule=by_rule),
    )


class GitleaksToolRunner:
    """ToolRunner implementation for Gitleaks (secret scanning)."""

    name = "gitleaks"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.config = ToolSettings(
            binary=settings.gitleaks_binary,
            timeout_seconds=settings.gitleaks_timeout_seconds,
        )

    def build_command(self, target: Path) -> List[str]:
        return [
            self.config.binary,
            "detect",
            "--source",
            str(target),
            "--report-format",
            "json",
            "--report-path",
            "-",
            "--no-git",
            "--no-banner",
            "--exit-code",
            "0",
        ]

    def run(self, target: Path) -> GitleaksResult:
        output = execute_tool(self.name, self.build_command(target), self.config).output
        try:
            return parse_gitleaks_report(output, target)
        except (ValueError, TypeError, AttributeError) as exc:
            raise parse_failure(self.name, output, exc) from exc
