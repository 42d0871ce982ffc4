"""Lightweight Statsig integration for scan lifecycle events."""
from __future__ import annotations

import logging
from typing import Any

from statsig import StatsigEvent, StatsigOptions, StatsigUser
from statsig.statsig_server import StatsigServer

from oversight.config import get_settings
from oversight.schemas import ScanJob

logger = logging.getLogger(__name__)


class _StatsigAdapter:
    def __init__(self, secret_key: str | None, environment: str):
        self._client: StatsigServer | None = None
        if not secret_key:
            return

        try:
            client = StatsigServer()
            client.initialize(secret_key, StatsigOptions(tier=environment))
            self._client = client
        except Exception as exc:  # noqa: BLE001
            logger.warning("Statsig initialization failed: %s", exc)
            self._client = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def log_event(
        self,
        *,
        user_id: str,
        event_name: str,
        value: float | int | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not self._client:
            return

        try:
            self._client.log_event(
                StatsigEvent(
                    StatsigUser(user_id),
                    event_name,
                    value=value,
                    metadata={k: str(v) for k, v in (metadata or {}).items()},
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig event failed: %s", exc)

    def shutdown(self) -> None:
        if not self._client:
            return

        try:
            self._client.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig shutdown failed: %s", exc)


_statsig_client: _StatsigAdapter | None = None


def get_statsig_client() -> _StatsigAdapter:
    global _statsig_client
    if _statsig_client is None:
        settings = get_settings()
        _statsig_client = _StatsigAdapter(
            settings.statsig_server_secret, settings.environment
        )
    return _statsig_client


def log_backend_event(
    event_name: str,
    *,
    user_id: str = "oversight-scanner",
    value: float | int | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    client = get_statsig_client()
    client.log_event(user_id=user_id, event_name=event_name, value=value, metadata=metadata)


def log_scan_started(job: ScanJob) -> None:
    log_backend_event(
        "scan_started",
        value=job.repo_name,
        metadata={"scan_id": job.id, "tools": ",".join(t.value for t in job.tools)},
    )


def log_scan_finished(job: ScanJob) -> None:
    """Emit ``scan_completed`` or ``scan_failed`` for a terminal job."""
    metadata: dict[str, Any] = {"scan_id": job.id, "status": job.status.value}
    if job.results is not None:
        metadata["tool_errors"] = ",".join(sorted(job.results.tool_errors))
    if job.completed_at is not None:
        metadata["duration_seconds"] = round(
            (job.completed_at - job.started_at).total_seconds(), 1
        )
    event_name = "scan_failed" if job.error else "scan_completed"
    log_backend_event(event_name, value=job.repo_name, metadata=metadata)


def shutdown_statsig() -> None:
    global _statsig_client
    if _statsig_client is None:
        return
    _statsig_client.shutdown()
    _statsig_client = None
