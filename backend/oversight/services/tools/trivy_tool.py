from __future__ import annotations

"""backend/oversight/services/tools/trivy_tool.py

Adapter for running **Trivy** (dependency vulnerability scanning) against a
cloned repository and normalizing its JSON report.

Trivy exits 0 whether or not it found vulnerabilities, so findings are
read from the report only. Trivy always prints a report, even an empty
one; no output at all means the scan did not run and is a tool error.
"""

import json
from pathlib import Path
from typing import List

from oversight.config import Settings, get_settings
from oversight.schemas import TrivyResult, TrivySummary, TrivyVulnerability
from oversight.services.tools.base import (
    ToolSettings,
    execute_tool,
    normalize_severity,
    parse_failure,
)

SEVERITIES = "CRITICAL,HIGH,MEDIUM,LOW"


def parse_trivy_report(output: str, scan_target: str) -> TrivyResult:
    """Convert ``trivy fs --format json`` output into a TrivyResult."""
    if not output.strip():
        raise ValueError("trivy produced no report")

    data = json.loads(output)
    vulnerabilities: List[TrivyVulnerability] = []
    summary = TrivySummary()

    for result in data.get("Results") or []:
        for vuln in result.get("Vulnerabilities") or []:
            severity = normalize_severity(vuln.get("Severity"))
            vuln_id = vuln.get("VulnerabilityID") or "UNKNOWN"
            vulnerabilities.append(
                TrivyVulnerability(
                    id=vuln_id,
                    pkg_name=vuln.get("PkgName") or "",
                    installed_version=vuln.get("InstalledVersion") or "",
                    fixed_version=vuln.get("FixedVersion") or None,
                    severity=severity,
                    title=vuln.get("Title") or vuln_id,
                    description=vuln.get("Description") or "",
                    primary_url=vuln.get("PrimaryURL") or None,
                )
            )
            setattr(summary, severity, getattr(summary, severity) + 1)

    return TrivyResult(
        vulnerabilities=vulnerabilities,
        summary=summary,
        scan_target=scan_target,
    )


class TrivyToolRunner:
    """ToolRunner implementation for Trivy (filesystem vulnerability scan)."""

    name = "trivy"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.config = ToolSettings(
            binary=settings.trivy_binary,
            timeout_seconds=settings.trivy_timeout_seconds,
        )

    def build_command(self, target: Path) -> List[str]:
        return [
            self.config.binary,
            "fs",
            "--format",
            "json",
            "--scanners",
            "vuln",
            "--severity",
            SEVERITIES,
            str(target),
        ]

    def run(self, target: Path) -> TrivyResult:
        output = execute_tool(self.name, self.build_command(target), self.config).output
        try:
            return parse_trivy_report(output, str(target))
        except (ValueError, TypeError, AttributeError) as exc:
            raise parse_failure(self.name, output, exc) from exc
