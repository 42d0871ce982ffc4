# backend/oversight/services/scanner/__init__.py
from __future__ import annotations

"""
Scanner service package.

This package provides:
- Workspace management (workspace.py): temp dir + shallow clone
- The status state machine (lifecycle.py)
- Core scan orchestration (runner.py)
- Fire-and-forget dispatch onto a worker (dispatcher.py)
- A high-level execute_scan(...) convenience helper

Concrete tool adapters (Trivy, Gitleaks, Semgrep) live under
oversight.services.tools and are wired in by oversight.services.container.
"""

from typing import Optional, Sequence

from .workspace import Workspace, acquire_workspace  # noqa: F401
from .runner import ScanOrchestrator  # noqa: F401


def execute_scan(scan_id: str, repo_full_name: str, tools: Sequence[str]) -> Optional[object]:
    """
    High-level entrypoint to run one admitted scan in this process.

    This helper:
    - builds (once per process) the configured store, tool runners and
      orchestrator
    - resolves the GitHub credential locally; it is never passed in
    - calls ScanOrchestrator.run(...)

    It is safe to call from:
    - Celery tasks
    - CLI utilities
    - synchronous scripts
    """
    # Import inside the function to avoid circular imports at module load time.
    from oversight.services.container import get_scan_services

    services = get_scan_services()
    credential = services.github_token()
    if not credential:
        # Admission refused jobs without a token, so the worker is misconfigured.
        services.orchestrator.fail(scan_id, "GitHub token required for scanning")
        return None
    return services.orchestrator.run(scan_id, repo_full_name, tools, credential)
