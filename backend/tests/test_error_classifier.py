"""Failure classification for tool and clone executions."""

import pytest

from oversight.services.diagnostics.error_classifier import (
    classify_clone_failure,
    classify_tool_failure,
)
from oversight.services.tools.base import CommandResult


def failed(output="", error=None, return_code=1, failure_reason=None, parsing_error=None):
    return CommandResult(
        success=False,
        output=output,
        error=error,
        return_code=return_code,
        failure_reason=failure_reason,
        parsing_error=parsing_error,
    )


@pytest.mark.parametrize(
    "result, expected",
    [
        (failed(failure_reason="binary-not-found", return_code=None), "tool-not-found"),
        (failed(failure_reason="timeout", return_code=None), "tool-timeout"),
        (failed(failure_reason="process-spawn-error", return_code=None), "process-spawn-error"),
        (failed(parsing_error="Expecting value"), "tool-output-parse-error"),
        (failed(error="sh: semgrep: command not found"), "tool-not-found"),
        (failed(error="invalid configuration file: rules[0]"), "tool-config-error"),
        (failed(error="Traceback (most recent call last):\n  ..."), "tool-runtime-error"),
        (failed(error="something odd"), "tool-non-zero-exit"),
        (failed(return_code=None), "unknown-error"),
    ],
)
def test_classify_tool_failure(result, expected):
    assert classify_tool_failure("semgrep", result) == expected


def test_trivy_db_errors_are_tool_specific():
    result = failed(error="FATAL init error: DB error: failed to download vulnerability DB")

    assert classify_tool_failure("trivy", result) == "tool-db-error"
    assert classify_tool_failure("gitleaks", result) == "tool-runtime-error"


@pytest.mark.parametrize(
    "result, expected",
    [
        (failed(failure_reason="binary-not-found", return_code=None), "git-not-found"),
        (failed(failure_reason="timeout", return_code=None), "clone-timeout"),
        (
            failed(error="remote: Invalid username or password.\nfatal: Authentication failed", return_code=128),
            "clone-auth-failed",
        ),
        (
            failed(error="remote: Repository not found.\nfatal: repository 'x' not found", return_code=128),
            "clone-repo-not-found",
        ),
        (
            failed(error="fatal: unable to access: Could not resolve host: github.com", return_code=128),
            "clone-network-error",
        ),
        (failed(error="fatal: destination path exists", return_code=128), "clone-failed"),
    ],
)
def test_classify_clone_failure(result, expected):
    assert classify_clone_failure(result) == expected
