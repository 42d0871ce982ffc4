# backend/oversight/services/container.py
from __future__ import annotations

"""
Process-wide wiring of the scan services.

One ScanServices bundle is built per process: by the FastAPI lifespan for
the API, and lazily by ``get_scan_services`` for Celery workers. Every
component receives the job store explicitly; nothing reaches for a
module-level client.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Mapping, Optional

from oversight.config import Settings, get_settings
from oversight.services.credentials import (
    CredentialProvider,
    SettingsCredentialProvider,
    github_token,
)
from oversight.services.jobs import (
    AdmissionController,
    JobStore,
    ScanStatusService,
    build_job_store,
)
from oversight.services.notifications import SlackNotifier
from oversight.services.scanner.dispatcher import (
    CeleryScanDispatcher,
    InlineScanDispatcher,
    ScanDispatcher,
    ThreadScanDispatcher,
)
from oversight.services.scanner.runner import ScanOrchestrator, WorkspaceFactory
from oversight.services.scanner.workspace import acquire_workspace
from oversight.services.statsig_client import log_scan_finished
from oversight.services.tools import get_default_tool_runners
from oversight.services.tools.base import ToolRunnerProtocol

logger = logging.getLogger(__name__)


@dataclass
class ScanServices:
    settings: Settings
    store: JobStore
    credentials: CredentialProvider
    admission: AdmissionController
    status: ScanStatusService
    orchestrator: ScanOrchestrator
    dispatcher: ScanDispatcher

    def github_token(self) -> Optional[str]:
        return github_token(self.credentials, self.settings)

    def shutdown(self) -> None:
        self.dispatcher.shutdown()


def build_dispatcher(settings: Settings, orchestrator: ScanOrchestrator) -> ScanDispatcher:
    mode = settings.scan_execution_mode.lower()
    if mode == "inline":
        return InlineScanDispatcher(orchestrator)
    if mode == "thread":
        return ThreadScanDispatcher(orchestrator, max_workers=settings.max_concurrent_scans)
    if mode == "celery":
        return CeleryScanDispatcher(
            fallback=ThreadScanDispatcher(
                orchestrator, max_workers=settings.max_concurrent_scans
            )
        )
    raise ValueError(f"Unknown scan execution mode: {settings.scan_execution_mode}")


def build_scan_services(
    settings: Settings | None = None,
    *,
    store: JobStore | None = None,
    credentials: CredentialProvider | None = None,
    tool_runners: Mapping[str, ToolRunnerProtocol] | None = None,
    workspace_factory: WorkspaceFactory = acquire_workspace,
    dispatcher_factory: Callable[[Settings, ScanOrchestrator], ScanDispatcher] = build_dispatcher,
) -> ScanServices:
    """Assemble the store, admission, orchestrator and dispatcher for one process."""
    settings = settings or get_settings()
    store = store if store is not None else build_job_store(settings)
    credentials = credentials or SettingsCredentialProvider(settings)

    notifier = SlackNotifier(credentials.get_token("SLACK_WEBHOOK_URL"))
    hooks = [log_scan_finished]
    if notifier.enabled:
        hooks.append(notifier.send_scan_alert)

    orchestrator = ScanOrchestrator(
        store,
        tool_runners if tool_runners is not None else get_default_tool_runners(settings),
        settings=settings,
        workspace_factory=workspace_factory,
        completion_hooks=hooks,
    )
    dispatcher = dispatcher_factory(settings, orchestrator)
    logger.info(
        "Scan services ready (store=%s, execution=%s)",
        settings.job_store_backend,
        settings.scan_execution_mode,
    )
    return ScanServices(
        settings=settings,
        store=store,
        credentials=credentials,
        admission=AdmissionController(
            store,
            github_owner=settings.github_owner,
            window=settings.admission_window,
        ),
        status=ScanStatusService(store, list_limit=settings.recent_list_limit),
        orchestrator=orchestrator,
        dispatcher=dispatcher,
    )


@lru_cache(maxsize=1)
def get_scan_services() -> ScanServices:
    """Per-process services for workers (Celery, CLI)."""
    settings = get_settings()
    # The worker itself runs scans; never re-dispatch.
    return build_scan_services(
        settings,
        dispatcher_factory=lambda s, orchestrator: InlineScanDispatcher(orchestrator),
    )
