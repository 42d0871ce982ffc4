# backend/oversight/errors.py
from __future__ import annotations

"""
Exception hierarchy for the scan orchestrator.

Synchronous errors (validation, store unavailability) are mapped to HTTP
responses by the API layer. Asynchronous ones (clone and tool failures)
are recorded on the job record by the orchestrator and never re-raised
to the triggering request.
"""


class ScanError(Exception):
    """Base class for all scan orchestration errors."""


class ScanValidationError(ScanError):
    """Request rejected before any job record is created."""


class StoreUnavailable(ScanError):
    """The job store backend could not be reached."""


class ScanJobNotFound(ScanError):
    """No live record exists for the given scan id (missing or expired)."""

    def __init__(self, scan_id: str):
        super().__init__(f"Scan {scan_id} not found")
        self.scan_id = scan_id


class InvalidTransition(ScanError):
    """A status change would move a job backwards or out of a terminal state."""

    def __init__(self, scan_id: str, current: str, requested: str):
        super().__init__(
            f"Scan {scan_id}: cannot transition from {current} to {requested}"
        )
        self.scan_id = scan_id
        self.current = current
        self.requested = requested


class CloneFailed(ScanError):
    """The target repository could not be cloned into the workspace."""

    def __init__(self, message: str, *, reason: str = "clone-failed"):
        super().__init__(message)
        self.reason = reason


class WorkspaceCorrupted(ScanError):
    """The cloned workspace disappeared or became unreadable mid-scan."""


class ToolUnavailable(ScanError):
    """A single tool could not produce a result.

    ``reason`` is a stable failure code from the error classifier
    (``tool-not-found``, ``tool-timeout``, ``tool-output-parse-error``, ...).
    """

    def __init__(self, tool: str, reason: str, detail: str | None = None):
        message = f"{reason}: {detail}" if detail else reason
        super().__init__(message)
        self.tool = tool
        self.reason = reason
        self.detail = detail
