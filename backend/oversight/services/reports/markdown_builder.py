# backend/oversight/services/reports/markdown_builder.py
from __future__ import annotations

"""
Markdown report generation for scan jobs.

This module is deliberately pure and side-effect free: it takes a ScanJob
and returns a markdown string.

It does **not** hit the job store, the filesystem or external services.
"""

from collections import Counter
from datetime import datetime

from oversight.schemas import GitleaksResult, ScanJob, SemgrepResult, TrivyResult

SEVERITY_ORDER = ("critical", "high", "medium", "low", "unknown")


def _format_dt(dt: datetime | None) -> str:
    if not dt:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _cell(value: object) -> str:
    # Pipes would break the table layout
    return str(value if value not in (None, "") else "-").replace("|", "\\|")


def _trivy_section(result: TrivyResult) -> list[str]:
    lines = ["### Dependencies (Trivy)", ""]
    summary = result.summary
    lines.append(
        f"- **Critical:** {summary.critical} | **High:** {summary.high} | "
        f"**Medium:** {summary.medium} | **Low:** {summary.low} | "
        f"**Unknown:** {summary.unknown}"
    )
    lines.append("")
    if not result.vulnerabilities:
        lines.append("_No vulnerable dependencies found._")
        lines.append("")
        return lines

    lines.append("| Severity | ID | Package | Installed | Fixed | Title |")
    lines.append("|----------|----|---------|-----------|-------|-------|")
    ordered = sorted(
        result.vulnerabilities,
        key=lambda v: (SEVERITY_ORDER.index(v.severity) if v.severity in SEVERITY_ORDER else 99, v.id),
    )
    for vuln in ordered:
        lines.append(
            f"| {vuln.severity} | {_cell(vuln.id)} | {_cell(vuln.pkg_name)} | "
            f"{_cell(vuln.installed_version)} | {_cell(vuln.fixed_version)} | {_cell(vuln.title)} |"
        )
    lines.append("")
    return lines


def _gitleaks_section(result: GitleaksResult) -> list[str]:
    lines = ["### Secrets (Gitleaks)", ""]
    lines.append(f"- **Total secrets:** {result.summary.total}")
    for rule, count in sorted(result.summary.by_rule.items()):
        lines.append(f"  - {rule}: {count}")
    lines.append("")
    if not result.secrets:
        lines.append("_No secrets detected._")
        lines.append("")
        return lines

    lines.append("| Rule | Location | Match |")
    lines.append("|------|----------|-------|")
    for secret in result.secrets:
        location = secret.file
        if secret.start_line:
            location += f":{secret.start_line}"
        lines.append(f"| {_cell(secret.rule_id)} | `{_cell(location)}` | `{_cell(secret.match)}` |")
    lines.append("")
    return lines


def _semgrep_section(result: SemgrepResult) -> list[str]:
    lines = ["### Code Issues (Semgrep)", ""]
    summary = result.summary
    lines.append(
        f"- **Errors:** {summary.error} | **Warnings:** {summary.warning} | **Info:** {summary.info}"
    )
    if summary.by_category:
        lines.append("- **By category:**")
        for category, count in sorted(summary.by_category.items()):
            lines.append(f"  - {category}: {count}")
    debug = result.debug
    if debug is not None and debug.rule_errors:
        lines.append(f"- **Semgrep errors (exit {debug.exit_code}):**")
        for message in debug.rule_errors:
            lines.append(f"  - {message}")
    lines.append("")
    if not result.findings:
        lines.append("_No code issues found._")
        lines.append("")
        return lines

    for idx, finding in enumerate(result.findings, start=1):
        location = finding.path
        if finding.start_line:
            location += f":{finding.start_line}"
        lines.append(f"#### {idx}. {finding.rule_id}")
        lines.append("")
        lines.append(f"- **Severity:** `{finding.severity}`")
        lines.append(f"- **Location:** `{location}`")
        if finding.cwe:
            lines.append(f"- **CWE:** {', '.join(finding.cwe)}")
        if finding.owasp:
            lines.append(f"- **OWASP:** {', '.join(finding.owasp)}")
        lines.append("")
        if finding.message:
            lines.append(finding.message)
            lines.append("")
    return lines


def build_scan_markdown(job: ScanJob) -> str:
    """Build a markdown report for a scan job in any state."""
    lines: list[str] = []

    lines.append("# Security Scan Report")
    lines.append("")
    lines.append(f"**Repository:** {job.repo_full_name}")
    lines.append(f"**Scan ID:** `{job.id}`")
    lines.append(f"**Status:** `{job.status.value}`")
    lines.append(f"**Tools:** `{', '.join(t.value for t in job.tools)}`")
    lines.append(f"**Started at:** {_format_dt(job.started_at)}")
    lines.append(f"**Completed at:** {_format_dt(job.completed_at)}")
    if job.error:
        lines.append(f"**Error:** {job.error}")
    lines.append("")

    results = job.results
    lines.append("## Summary")
    lines.append("")
    if results is None:
        lines.append("_No tool results recorded for this scan._")
        return "\n".join(lines)

    totals: Counter[str] = Counter()
    if results.trivy is not None:
        totals["trivy"] = len(results.trivy.vulnerabilities)
    if results.gitleaks is not None:
        totals["gitleaks"] = len(results.gitleaks.secrets)
    if results.semgrep is not None:
        totals["semgrep"] = len(results.semgrep.findings)
    lines.append(f"- **Total findings:** {sum(totals.values())}")
    for tool, count in sorted(totals.items()):
        lines.append(f"  - {tool}: {count}")
    lines.append("")

    if results.tool_errors:
        lines.append("## Tool Errors")
        lines.append("")
        lines.append("| Tool | Error |")
        lines.append("|------|-------|")
        for tool, message in sorted(results.tool_errors.items()):
            lines.append(f"| {tool} | {_cell(message)} |")
        lines.append("")

    lines.append("## Findings")
    lines.append("")
    if results.trivy is not None:
        lines.extend(_trivy_section(results.trivy))
    if results.gitleaks is not None:
        lines.extend(_gitleaks_section(results.gitleaks))
    if results.semgrep is not None:
        lines.extend(_semgrep_section(results.semgrep))

    return "\n".join(lines)
