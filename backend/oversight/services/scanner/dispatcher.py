from __future__ import annotations

"""backend/oversight/services/scanner/dispatcher.py

Fire-and-forget hand-off of admitted scans to a worker.

- ThreadScanDispatcher: in-process ThreadPoolExecutor (default)
- CeleryScanDispatcher: enqueue on the ``scans`` queue; the worker resolves
  the GitHub token itself so it never transits the broker. Falls back to
  the thread pool when the broker cannot be reached.
- InlineScanDispatcher: run synchronously (CLI, tests)

``submit`` returns as soon as the work is handed off. There is no
cancellation; jobs in flight when the process exits stay non-terminal
until their record expires.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Protocol

from oversight.schemas import ScanJob
from oversight.services.scanner.runner import ScanOrchestrator

logger = logging.getLogger(__name__)


class ScanDispatcher(Protocol):
    def submit(self, job: ScanJob, credential: str) -> None:
        ...

    def shutdown(self) -> None:
        ...


def _tool_names(job: ScanJob) -> list[str]:
    return [tool.value for tool in job.tools]


class InlineScanDispatcher:
    def __init__(self, orchestrator: ScanOrchestrator) -> None:
        self._orchestrator = orchestrator

    def submit(self, job: ScanJob, credential: str) -> None:
        self._orchestrator.run(job.id, job.repo_full_name, _tool_names(job), credential)

    def shutdown(self) -> None:
        return None


class ThreadScanDispatcher:
    def __init__(self, orchestrator: ScanOrchestrator, *, max_workers: int = 4) -> None:
        self._orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="oversight-scan"
        )

    def submit(self, job: ScanJob, credential: str) -> Future:
        future = self._executor.submit(
            self._orchestrator.run,
            job.id,
            job.repo_full_name,
            _tool_names(job),
            credential,
        )
        future.add_done_callback(lambda f, scan_id=job.id: self._log_crash(scan_id, f))
        logger.info("Scan %s dispatched to thread pool", job.id)
        return future

    @staticmethod
    def _log_crash(scan_id: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Scan %s: worker thread crashed: %r", scan_id, exc)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


class CeleryScanDispatcher:
    def __init__(self, fallback: Optional[ThreadScanDispatcher] = None) -> None:
        self._fallback = fallback

    def submit(self, job: ScanJob, credential: str) -> None:
        # Imported lazily so the API process only needs Celery in this mode.
        from oversight.services.tasks import run_scan_task

        try:
            run_scan_task.delay(job.id, job.repo_full_name, _tool_names(job))
            logger.info("Scan %s enqueued on Celery", job.id)
        except Exception as exc:  # noqa: BLE001
            if self._fallback is None:
                raise
            logger.warning(
                "Scan %s: Celery enqueue failed (%s); running in-process", job.id, exc
            )
            self._fallback.submit(job, credential)

    def shutdown(self) -> None:
        if self._fallback is not None:
            self._fallback.shutdown()
