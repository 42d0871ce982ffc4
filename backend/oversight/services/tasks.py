# backend/oversight/services/tasks.py
from __future__ import annotations

"""
Celery tasks for the scan orchestrator.

Currently provides:
- run_scan_task: execute an admitted scan (Trivy, Gitleaks, Semgrep) in the
  background.
"""

from typing import List

from celery import Task

from oversight.services.celery_app import celery_app
from oversight.services.scanner import execute_scan


@celery_app.task(bind=True, name="oversight.services.tasks.run_scan_task")
def run_scan_task(self: Task, scan_id: str, repo_full_name: str, tools: List[str]) -> None:
    """
    Celery task: execute the full scan pipeline for an admitted job.

    This calls oversight.services.scanner.execute_scan, which will:
    - resolve the GitHub token from the worker's own configuration
    - clone the repository into a scratch workspace
    - run the requested tools and record each outcome on the job
    - finalize the job and remove the workspace

    The job record is the result; nothing is returned to the backend.
    """
    execute_scan(scan_id, repo_full_name, tools)
