# backend/oversight/services/jobs/__init__.py
from __future__ import annotations

"""
Scan job bookkeeping.

This package provides:
- store.py: the JobStore protocol with Redis and SQL backends
- admission.py: single-flight admission of new scans per repository
- status.py: the read-only status façade polled by clients
"""

from .store import JobStore, RedisJobStore, SqlJobStore, build_job_store  # noqa: F401
from .admission import AdmissionController, AdmissionDecision  # noqa: F401
from .status import ScanStatusService  # noqa: F401
