from __future__ import annotations

"""
Diagnostics and error classification utilities.

This package currently provides:
- error_classifier: classify failures from scanner and git executions into
  stable, machine-readable reasons that are stored on the job record and
  surfaced to dashboard clients.

The goal is to keep error handling logic centralized and deterministic.
"""
