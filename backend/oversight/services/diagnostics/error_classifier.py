from __future__ import annotations

"""backend/oversight/services/diagnostics/error_classifier.py

Centralized error classification for scanner and git executions.

This module looks at a CommandResult (stdout, stderr, return code, etc.)
and assigns a stable, machine-readable `failure_reason` string.

The classification is:
- deterministic (no randomness)
- text-based (pattern matching against known error signatures)
- tool-aware (git, Trivy, Gitleaks, Semgrep)

Typical tool failure_reason values:
- tool-not-found
- tool-timeout
- tool-output-parse-error
- tool-db-error
- tool-config-error
- tool-runtime-error
- tool-non-zero-exit
- process-spawn-error
- unknown-error

Clone failure_reason values:
- git-not-found
- clone-timeout
- clone-auth-failed
- clone-repo-not-found
- clone-network-error
- clone-failed
"""

from typing import Optional

from oversight.services.tools.base import CommandResult


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


def _lower(value: Optional[str]) -> str:
    return _text(value).lower()


def _contains_any(haystack: str, needles: list[str]) -> bool:
    return any(n in haystack for n in needles)


def classify_tool_failure(tool: str, result: CommandResult) -> str:
    """Classify a tool failure into a stable failure_reason code.

    This function assumes the tool invocation did *not* succeed.
    It never returns None; at minimum it returns "unknown-error".
    """
    stdout = _lower(result.output)
    stderr = _lower(result.error)
    combined = f"{stdout}\n{stderr}"
    rc = result.return_code
    parsing_error = _text(result.parsing_error)
    existing_reason = _text(result.failure_reason)

    # 1) Respect explicit markers from the runner layer
    if existing_reason == "binary-not-found":
        return "tool-not-found"
    if existing_reason == "timeout":
        return "tool-timeout"
    if existing_reason == "process-spawn-error":
        return existing_reason

    # 2) Parsing / JSON issues
    if parsing_error:
        return "tool-output-parse-error"

    # 3) Binary missing behind a wrapper script
    if _contains_any(
        combined,
        [
            f"{tool}: command not found",
            f"{tool}: not found",
            f"no such file or directory: '{tool}'",
        ],
    ):
        return "tool-not-found"

    # 4) Trivy vulnerability DB download / update problems
    if tool == "trivy" and _contains_any(
        combined,
        [
            "db error",
            "failed to download vulnerability db",
            "failed to download artifact",
            "oci artifact error",
        ],
    ):
        return "tool-db-error"

    # 5) Rule / configuration problems (Semgrep registry, Gitleaks config)
    if _contains_any(
        combined,
        [
            "invalid configuration",
            "failed to load config",
            "unable to load config",
            "invalid rule",
            "failed to download configuration",
        ],
    ):
        return "tool-config-error"

    # 6) Generic runtime/tool errors
    if _contains_any(
        combined,
        [
            "runtime error",
            "panic:",
            "traceback (most recent call last)",
            "stack trace:",
            "segmentation fault",
            "segfault",
            "fatal",
        ],
    ):
        return "tool-runtime-error"

    # 7) Non-zero exit without a more specific classification
    if rc is not None and rc != 0:
        return "tool-non-zero-exit"

    if existing_reason:
        return existing_reason
    return "unknown-error"


def classify_clone_failure(result: CommandResult) -> str:
    """Classify a failed ``git clone`` into a stable failure_reason code."""
    combined = f"{_lower(result.output)}\n{_lower(result.error)}"
    existing_reason = _text(result.failure_reason)

    if existing_reason == "binary-not-found":
        return "git-not-found"
    if existing_reason == "timeout":
        return "clone-timeout"

    if _contains_any(
        combined,
        [
            "authentication failed",
            "could not read username",
            "could not read password",
            "invalid username or password",
            "permission denied",
            "http basic: access denied",
            "403",
        ],
    ):
        return "clone-auth-failed"

    if _contains_any(
        combined,
        [
            "repository not found",
            "not found",
            "does not appear to be a git repository",
        ],
    ):
        return "clone-repo-not-found"

    if _contains_any(
        combined,
        [
            "could not resolve host",
            "failed to connect",
            "connection timed out",
            "connection refused",
            "network is unreachable",
            "ssl",
            "early eof",
        ],
    ):
        return "clone-network-error"

    return "clone-failed"
