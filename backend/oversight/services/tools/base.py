from __future__ import annotations

"""backend/oversight/services/tools/base.py

Shared utilities for running security tools as child processes.

This module provides:

- ToolRunnerProtocol: what the orchestrator expects from an adapter
- ToolSettings: per-tool runtime configuration (binary, timeout, env)
- CommandResult: structured outcome of a single process invocation
- run_command: low-level helper that executes a command with a hard timeout
- execute_tool / parse_failure: turn failed runs into ToolUnavailable
- detect_tool_version: small helper for ``--version`` style probes
- normalize_severity: maps tool-specific severities onto one scale
- relative_to_workspace: strips the workspace prefix from reported paths

Higher-level adapters (trivy_tool, gitleaks_tool, semgrep_tool) and the
workspace manager (git clone) build on top of these helpers.
"""

import os
import signal
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Protocol, Sequence

from oversight.errors import ToolUnavailable

if TYPE_CHECKING:
    from oversight.schemas import ToolResult

# Upper bound on reading leftover output once a timed-out child is killed
DRAIN_TIMEOUT_SECONDS = 5


class ToolRunnerProtocol(Protocol):
    """Interface implemented by each scanner adapter."""

    name: str

    def run(self, target: Path) -> "ToolResult":
        """Scan ``target`` and return the tool's typed result.

        Raises ToolUnavailable when no result can be produced.
        """
        ...


@dataclass
class ToolSettings:
    """Per-tool runtime settings."""

    binary: str
    timeout_seconds: int = 300
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class CommandResult:
    """Result of a single process invocation."""

    success: bool
    output: str
    error: str | None = None
    return_code: int | None = None
    command: list[str] | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: float | None = None
    parsing_error: str | None = None
    # Set by the runner for timeouts and spawn failures; refined by
    # diagnostics.error_classifier for everything else.
    failure_reason: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _kill_process_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def run_command(
    cmd: List[str],
    *,
    timeout: int = 300,
    env: dict[str, str] | None = None,
    workdir: str | Path | None = None,
) -> CommandResult:
    """Run a command, capturing stdout/stderr, with an enforced upper bound.

    The child runs in its own session so a timeout kills the whole process
    group (scanners fork helpers) and the child is always reaped.
    Spawn failures never raise; they come back as a failed CommandResult.
    """
    environment = os.environ.copy()
    environment.update(env or {})

    started_at = _utcnow()

    def _result(**kwargs) -> CommandResult:
        finished_at = _utcnow()
        return CommandResult(
            command=cmd,
            started_at=started_at,
            finished_at=finished_at,
            duration_seconds=(finished_at - started_at).total_seconds(),
            **kwargs,
        )

    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            cwd=str(workdir) if workdir is not None else None,
            env=environment,
            start_new_session=True,
        )
    except FileNotFoundError as exc:
        return _result(
            success=False,
            output="",
            error=str(exc),
            failure_reason="binary-not-found",
        )
    except OSError as exc:
        return _result(
            success=False,
            output="",
            error=str(exc),
            failure_reason="process-spawn-error",
        )

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_group(proc)
        try:
            stdout, stderr = proc.communicate(timeout=DRAIN_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            # A grandchild left the group and still holds the pipes.
            proc.wait()
            stdout = ""
        return _result(
            success=False,
            output=stdout or "",
            error=f"timed out after {timeout}s",
            return_code=None,
            failure_reason="timeout",
        )

    return _result(
        success=proc.returncode == 0,
        output=stdout or "",
        error=stderr or None,
        return_code=proc.returncode,
    )


def execute_tool(tool: str, cmd: List[str], config: ToolSettings) -> CommandResult:
    """Run a scanner and return the finished invocation.

    Non-zero exits are tolerated when the tool still printed a report
    (Semgrep exits non-zero on partial rule errors). Empty stdout with a
    clean exit is returned as is; each adapter decides what it means.

    Raises:
        ToolUnavailable: missing binary, timeout, spawn error, or a failed
            exit without output.
    """
    # Imported lazily: the classifier depends on this module.
    from oversight.services.diagnostics.error_classifier import classify_tool_failure

    result = run_command(cmd, timeout=config.timeout_seconds, env=config.env)
    if result.failure_reason is not None or (
        not result.success and not result.output.strip()
    ):
        reason = classify_tool_failure(tool, result)
        raise ToolUnavailable(tool, reason, _last_line(result.error))
    return result


def parse_failure(tool: str, output: str, exc: Exception) -> ToolUnavailable:
    """Build the ToolUnavailable raised when a tool's report cannot be read."""
    from oversight.services.diagnostics.error_classifier import classify_tool_failure

    result = CommandResult(success=False, output=output, parsing_error=str(exc))
    return ToolUnavailable(tool, classify_tool_failure(tool, result), str(exc))


def _last_line(text: str | None) -> str | None:
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else None


def detect_tool_version(binary: str, args: Sequence[str] = ("--version",)) -> str | None:
    """Best-effort version detection; None when the binary cannot run."""
    result = run_command([binary, *args], timeout=10)
    if result.return_code != 0:
        return None
    output = (result.output or result.error or "").strip()
    return output.splitlines()[0] if output else None


def normalize_severity(severity: str | None) -> str:
    """Map CVSS, SARIF and tool-specific wording onto critical/high/medium/low."""
    s = (severity or "").strip().lower()
    if s in ("critical", "error", "severe"):
        return "critical"
    if s == "high":
        return "high"
    if s in ("medium", "warning", "moderate"):
        return "medium"
    if s in ("low", "note", "minor", "info", "informational"):
        return "low"
    return "unknown"


def relative_to_workspace(path: str | None, root: Path) -> str:
    """Return ``path`` relative to the scanned directory when it lies inside it."""
    if not path:
        return ""
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        pass
    root_str = str(root)
    if path.startswith(root_str):
        return path[len(root_str):].lstrip("/")
    return path
