# backend/oversight/services/celery_app.py
from __future__ import annotations

"""
Celery application configuration for out-of-process scan execution.

This module defines a single Celery instance:

    celery_app = Celery(...)

It is used by:
- oversight.services.tasks (for task definitions)
- the worker entrypoint via
  `celery -A oversight.services.celery_app.celery_app worker -Q scans`

Only used when SCAN_EXECUTION_MODE=celery.
"""

from celery import Celery

from oversight.config import get_settings

settings = get_settings()

celery_app = Celery(
    "oversight_scans",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["oversight.services.tasks"],
)

# Route scan tasks to a dedicated queue
celery_app.conf.task_routes = {
    "oversight.services.tasks.*": {"queue": "scans"},
}

# Results live in the job store; don't keep task return values around
celery_app.conf.task_ignore_result = True
