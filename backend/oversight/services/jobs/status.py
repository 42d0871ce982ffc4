"""Read-only status façade over the job store, polled by dashboard clients."""
from __future__ import annotations

from typing import List, Optional

from oversight.schemas import ScanJob
from oversight.services.jobs.store import JobStore

DEFAULT_LIST_LIMIT = 20


class ScanStatusService:
    def __init__(self, store: JobStore, *, list_limit: int = DEFAULT_LIST_LIMIT) -> None:
        self._store = store
        self._list_limit = list_limit

    def get(self, scan_id: str) -> Optional[ScanJob]:
        return self._store.get(scan_id)

    def latest_for_repo(self, repo_name: str) -> Optional[ScanJob]:
        return self._store.find_latest_by_repo(repo_name)

    def list_recent(self, limit: Optional[int] = None) -> List[ScanJob]:
        """Most recent jobs first; ids whose record expired are skipped."""
        jobs: List[ScanJob] = []
        for scan_id in self._store.list_recent(limit or self._list_limit):
            job = self._store.get(scan_id)
            if job is not None:
                jobs.append(job)
        return jobs
