from __future__ import annotations

"""backend/oversight/services/tools/semgrep_tool.py

Adapter for running **Semgrep** (static analysis) and normalizing its
findings.

Semgrep may exit non-zero while still printing a complete JSON report
(for example when a single rule fails to parse); the report wins.

Every result carries a ``debug`` block (exit code, stderr and report
previews, Semgrep's own error list) so an empty findings list can be
told apart from a run that silently scanned nothing.
"""

import json
import logging
from pathlib import Path
from typing import Any, List

from oversight.config import Settings, get_settings
from oversight.schemas import SemgrepDebug, SemgrepFinding, SemgrepResult, SemgrepSummary
from oversight.services.tools.base import (
    CommandResult,
    ToolSettings,
    execute_tool,
    normalize_severity,
    parse_failure,
    relative_to_workspace,
)

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500
MAX_RULE_ERRORS = 20


def _as_list(value: Any) -> List[str]:
    # metadata.cwe / metadata.owasp are a string or a list depending on the rule
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _rule_error(entry: Any) -> str:
    if not isinstance(entry, dict):
        return str(entry)
    message = entry.get("message") or entry.get("type") or "unknown error"
    level = entry.get("level")
    return f"{level}: {message}" if level else str(message)


def parse_semgrep_report(output: str, repo_dir: Path) -> SemgrepResult:
    """Convert ``semgrep scan --json`` output into a SemgrepResult."""
    if not output.strip():
        return SemgrepResult(debug=SemgrepDebug())

    data = json.loads(output)
    findings: List[SemgrepFinding] = []
    summary = SemgrepSummary()

    for result in data.get("results") or []:
        extra = result.get("extra") or {}
        metadata = extra.get("metadata") or {}
        start = result.get("start") or {}
        end = result.get("end") or {}
        severity = normalize_severity(extra.get("severity"))
        category = metadata.get("category") or "other"

        findings.append(
            SemgrepFinding(
                rule_id=result.get("check_id") or "unknown",
                message=extra.get("message") or "",
                severity=severity,
                path=relative_to_workspace(result.get("path"), repo_dir),
                start_line=start.get("line"),
                end_line=end.get("line"),
                start_col=start.get("col"),
                end_col=end.get("col"),
                category=str(category),
                cwe=_as_list(metadata.get("cwe")),
                owasp=_as_list(metadata.get("owasp")),
            )
        )

        if severity in ("critical", "high"):
            summary.error += 1
        elif severity == "medium":
            summary.warning += 1
        else:
            summary.info += 1
        summary.by_category[str(category)] = summary.by_category.get(str(category), 0) + 1

    rule_errors = [_rule_error(e) for e in data.get("errors") or []]
    debug = SemgrepDebug(
        raw_output_length=len(output),
        raw_output_preview=output[:PREVIEW_CHARS],
        rule_errors=rule_errors[:MAX_RULE_ERRORS],
    )
    return SemgrepResult(findings=findings, summary=summary, debug=debug)


def attach_run_details(result: SemgrepResult, run: CommandResult) -> SemgrepResult:
    """Record exit code and stderr of ``run`` on the result's debug block."""
    stderr = run.error or ""
    debug = result.debug or SemgrepDebug()
    debug.exit_code = run.return_code
    debug.stderr_length = len(stderr)
    debug.stderr_preview = stderr[:PREVIEW_CHARS]
    result.debug = debug
    return result


class SemgrepToolRunner:
    """ToolRunner implementation for Semgrep (SAST)."""

    name = "semgrep"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.rule_configs = list(settings.semgrep_configs)
        self.config = ToolSettings(
            binary=settings.semgrep_binary,
            timeout_seconds=settings.semgrep_timeout_seconds,
            env={"SEMGREP_SEND_METRICS": "off"},
        )

    def build_command(self, target: Path) -> List[str]:
        cmd = [self.config.binary, "scan"]
        for rule_config in self.rule_configs:
            cmd.extend(["--config", rule_config])
        cmd.extend(["--json", "--quiet", str(target)])
        return cmd

    def run(self, target: Path) -> SemgrepResult:
        run = execute_tool(self.name, self.build_command(target), self.config)
        try:
            result = parse_semgrep_report(run.output, target)
        except (ValueError, TypeError, AttributeError) as exc:
            raise parse_failure(self.name, run.output, exc) from exc

        result = attach_run_details(result, run)
        if result.debug.rule_errors:
            logger.warning(
                "semgrep reported %d error(s) for %s (exit %s): %s",
                len(result.debug.rule_errors),
                target,
                run.return_code,
                result.debug.rule_errors[0],
            )
        return result
