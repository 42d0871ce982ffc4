from __future__ import annotations

"""backend/oversight/services/scanner/runner.py

Core scan orchestration.

Responsibilities:
- Drive one admitted job through pending -> cloning -> scanning -> terminal
- Acquire an isolated workspace (clone) and release it on every path
- Run the requested tools sequentially, isolating each tool's failure
- Persist every status change and per-tool outcome before moving on
- Fire best-effort completion hooks (Slack alert, analytics)

The orchestrator is *tool-agnostic*. Concrete tool adapters (Trivy,
Gitleaks, Semgrep) live under ``oversight.services.tools`` and implement
ToolRunnerProtocol.

Errors raised here never reach the request that triggered the scan: clone
and orchestration faults end the job as ``failed``; tool faults are
recorded under ``results.toolErrors`` and the job still completes.
"""

import logging
from contextlib import AbstractContextManager
from typing import Callable, Mapping, Optional, Sequence

from oversight.config import Settings, get_settings
from oversight.errors import (
    CloneFailed,
    InvalidTransition,
    ScanJobNotFound,
    StoreUnavailable,
    ToolUnavailable,
    WorkspaceCorrupted,
)
from oversight.models import SUPPORTED_TOOLS, ScanStatus, ScanTool
from oversight.schemas import ScanJob, ScanResults, ToolResult
from oversight.services.jobs.store import JobStore
from oversight.services.scanner.lifecycle import transition
from oversight.services.scanner.workspace import Workspace, acquire_workspace
from oversight.services.tools import run_tool
from oversight.services.tools.base import ToolRunnerProtocol

logger = logging.getLogger(__name__)

WorkspaceFactory = Callable[..., AbstractContextManager]
CompletionHook = Callable[[ScanJob], object]

ABORTED_REASON = "scan-aborted"


def _progress(done: int, total: int) -> int:
    return round(done * 100 / total) if total else 100


class ScanOrchestrator:
    """Runs admitted scan jobs to a terminal state."""

    def __init__(
        self,
        store: JobStore,
        tool_runners: Mapping[str, ToolRunnerProtocol],
        *,
        settings: Settings | None = None,
        workspace_factory: WorkspaceFactory = acquire_workspace,
        completion_hooks: Sequence[CompletionHook] = (),
    ) -> None:
        self._store = store
        self._tool_runners = tool_runners
        self._settings = settings or get_settings()
        self._workspace_factory = workspace_factory
        self._completion_hooks = list(completion_hooks)

    # ---------- public entrypoint ----------

    def run(
        self,
        scan_id: str,
        repo_full_name: str,
        tools: Sequence[ScanTool | str],
        credential: str,
    ) -> Optional[ScanJob]:
        """Execute a scan synchronously in the current thread.

        Returns the terminal job, or None when the job could not be
        tracked (record missing or expired, store unreachable, already
        started elsewhere).
        """
        tool_names = [t.value if isinstance(t, ScanTool) else str(t) for t in tools]

        try:
            self._store.update(scan_id, lambda job: transition(job, ScanStatus.CLONING))
        except ScanJobNotFound:
            logger.warning("Scan %s: no live record; nothing to run", scan_id)
            return None
        except InvalidTransition as exc:
            logger.warning("Scan %s: not started: %s", scan_id, exc)
            return None
        except StoreUnavailable as exc:
            logger.error("Scan %s: job store unavailable before clone: %s", scan_id, exc)
            return None

        job: Optional[ScanJob] = None
        try:
            with self._workspace_factory(
                repo_full_name, credential, scan_id, settings=self._settings
            ) as workspace:
                job = self._scan(scan_id, tool_names, workspace)
        except CloneFailed as exc:
            logger.warning("Scan %s: clone failed (%s): %s", scan_id, exc.reason, exc)
            job = self.fail(scan_id, str(exc))
        except (ScanJobNotFound, StoreUnavailable) as exc:
            logger.error("Scan %s: lost track of job: %s", scan_id, exc)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scan %s: unexpected orchestration error", scan_id)
            job = self.fail(scan_id, f"Internal error: {exc}")

        if job is not None:
            self._run_completion_hooks(job)
        return job

    # ---------- phases ----------

    def _scan(self, scan_id: str, tools: Sequence[str], workspace: Workspace) -> Optional[ScanJob]:
        """Run every tool inside the live workspace and finalize the job.

        Orchestration faults are turned into ``failed`` here so the record
        is final before the workspace is released.
        """
        try:
            def _start_scanning(job: ScanJob) -> ScanJob:
                transition(job, ScanStatus.SCANNING)
                job.results = ScanResults()
                job.progress = 0
                return job

            self._store.update(scan_id, _start_scanning)

            for index, tool in enumerate(tools):
                self._store.update(
                    scan_id, self._mark_current_tool(tool, _progress(index, len(tools)))
                )
                workspace.verify()
                self._record_outcome(scan_id, tool, workspace)

            job = self._store.update(scan_id, self._complete)
            logger.info(
                "Scan %s completed (%d tools, %d errors)",
                scan_id,
                len(tools),
                len(job.results.tool_errors) if job.results else 0,
            )
            return job
        except (ScanJobNotFound, StoreUnavailable):
            raise
        except WorkspaceCorrupted as exc:
            logger.error("Scan %s: %s", scan_id, exc)
            return self.fail(scan_id, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scan %s: unexpected error while scanning", scan_id)
            return self.fail(scan_id, f"Internal error: {exc}")

    def _record_outcome(self, scan_id: str, tool: str, workspace: Workspace) -> None:
        outcome: ToolResult | str
        try:
            outcome = run_tool(self._tool_runners, tool, workspace.repo_dir)
            logger.info("Scan %s: %s finished", scan_id, tool)
        except ToolUnavailable as exc:
            logger.warning("Scan %s: %s unavailable: %s", scan_id, tool, exc)
            outcome = str(exc)
        except Exception as exc:  # noqa: BLE001
            # Adapter bug; isolate it to this tool.
            logger.exception("Scan %s: %s raised unexpectedly", scan_id, tool)
            outcome = f"tool-runtime-error: {exc}"

        def _apply(job: ScanJob) -> ScanJob:
            if job.results is None:
                job.results = ScanResults()
            if isinstance(outcome, str):
                job.results.record_error(tool, outcome)
            else:
                job.results.record_result(outcome)
            return job

        self._store.update(scan_id, _apply)

    @staticmethod
    def _mark_current_tool(tool: str, progress: int) -> Callable[[ScanJob], ScanJob]:
        def _apply(job: ScanJob) -> ScanJob:
            job.current_tool = ScanTool(tool) if tool in SUPPORTED_TOOLS else None
            job.progress = progress
            return job

        return _apply

    @staticmethod
    def _complete(job: ScanJob) -> ScanJob:
        transition(job, ScanStatus.COMPLETED)
        job.current_tool = None
        job.progress = 100
        return job

    def fail(self, scan_id: str, message: str) -> Optional[ScanJob]:
        """Mark the job failed; tools without an outcome are recorded as aborted."""

        def _apply(job: ScanJob) -> ScanJob:
            if job.is_terminal:
                return job
            transition(job, ScanStatus.FAILED)
            job.error = message
            job.current_tool = None
            if job.results is not None:
                for tool in job.tools:
                    if not job.results.has_outcome(tool.value):
                        job.results.record_error(tool.value, f"{ABORTED_REASON}: {message}")
            return job

        try:
            return self._store.update(scan_id, _apply)
        except (ScanJobNotFound, StoreUnavailable) as exc:
            logger.error("Scan %s: could not record failure: %s", scan_id, exc)
            return None

    def _run_completion_hooks(self, job: ScanJob) -> None:
        for hook in self._completion_hooks:
            try:
                hook(job)
            except Exception:  # noqa: BLE001
                logger.warning("Scan %s: completion hook %r failed", job.id, hook, exc_info=True)
