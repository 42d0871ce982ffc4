from __future__ import annotations

"""backend/oversight/services/jobs/admission.py

Admission control for new scans.

``try_start`` validates the request, checks the most recent jobs for one
already in flight on the same repository, and otherwise creates the
``pending`` job record.

This is a best-effort single-flight guard. The check and the insert are
two separate store operations, so two concurrent requests for the same
repository can both be admitted. Scans are human-triggered and rare, so
that window is accepted rather than closed with a lock.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from oversight.errors import ScanValidationError
from oversight.models import SUPPORTED_TOOLS, ScanStatus, ScanTool
from oversight.schemas import ScanJob
from oversight.services.jobs.store import JobStore

logger = logging.getLogger(__name__)

# "name" or "owner/name"; keeps clone URLs free of injected path segments
_REPO_NAME_RE = re.compile(r"^(?:[A-Za-z0-9_.-]+/)?[A-Za-z0-9_.-]+$")

DEFAULT_ADMISSION_WINDOW = 20


@dataclass
class AdmissionDecision:
    """Outcome of ``try_start``: a new job, or the id of the one in flight."""

    job: Optional[ScanJob] = None
    existing_scan_id: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.job is not None


def new_scan_id() -> str:
    return uuid.uuid4().hex[:12]


def validate_repo_name(repo_name: object) -> str:
    if not isinstance(repo_name, str) or not repo_name.strip():
        raise ScanValidationError("repoName is required")
    name = repo_name.strip()
    if not _REPO_NAME_RE.match(name) or ".." in name:
        raise ScanValidationError(f"Invalid repoName: {name!r}")
    return name


def filter_tools(tools: object) -> List[ScanTool]:
    """Keep supported tools in request order, dropping duplicates.

    ``None`` selects every supported tool.
    """
    if tools is None:
        requested: Iterable[object] = SUPPORTED_TOOLS
    elif isinstance(tools, (list, tuple)):
        requested = tools
    else:
        raise ScanValidationError("tools must be a list of tool names")

    selected: List[ScanTool] = []
    for tool in requested:
        if isinstance(tool, ScanTool):
            tool = tool.value
        if isinstance(tool, str) and tool in SUPPORTED_TOOLS:
            value = ScanTool(tool)
            if value not in selected:
                selected.append(value)

    if not selected:
        raise ScanValidationError(
            "At least one valid tool is required (trivy, gitleaks, semgrep)"
        )
    return selected


class AdmissionController:
    def __init__(
        self,
        store: JobStore,
        *,
        github_owner: str,
        window: int = DEFAULT_ADMISSION_WINDOW,
    ) -> None:
        self._store = store
        self._github_owner = github_owner
        self._window = window

    def full_name_for(self, repo_name: str) -> str:
        if "/" in repo_name:
            return repo_name
        return f"{self._github_owner}/{repo_name}"

    def find_in_flight(self, repo_name: str) -> Optional[ScanJob]:
        """Active job cloning the same repository, however it was spelled.

        ``alpha`` and ``SnickerSec/alpha`` name one repository, and GitHub
        owner/repo names are case-insensitive.
        """
        full_name = self.full_name_for(repo_name).lower()
        for scan_id in self._store.list_recent(self._window):
            job = self._store.get(scan_id)
            if (
                job is not None
                and job.is_active
                and job.repo_full_name.lower() == full_name
            ):
                return job
        return None

    def try_start(
        self,
        repo_name: object,
        tools: object,
        credential: Optional[str],
    ) -> AdmissionDecision:
        """Admit a scan or point the caller at the one already running.

        Raises:
            ScanValidationError: bad repo name, no valid tools or no credential.
            StoreUnavailable: the job store could not be reached.
        """
        name = validate_repo_name(repo_name)
        selected = filter_tools(tools)
        if not credential:
            raise ScanValidationError("GitHub token required for scanning")

        existing = self.find_in_flight(name)
        if existing is not None:
            logger.info(
                "Scan for %s rejected: %s is already %s",
                name,
                existing.id,
                existing.status.value,
            )
            return AdmissionDecision(existing_scan_id=existing.id)

        job = ScanJob(
            id=new_scan_id(),
            repo_name=name,
            repo_full_name=self.full_name_for(name),
            status=ScanStatus.PENDING,
            tools=selected,
            started_at=datetime.now(timezone.utc),
        )
        self._store.create(job)
        logger.info(
            "Scan %s admitted for %s (tools=%s)",
            job.id,
            name,
            ",".join(t.value for t in selected),
        )
        return AdmissionDecision(job=job)
