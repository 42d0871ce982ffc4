# backend/oversight/api/security.py
from __future__ import annotations

"""
Security scan endpoints.

- POST /security/scan                 admit a scan and dispatch it (202/409)
- GET  /security/scan                 one job by ?id=, the latest by ?repo=,
                                      or the most recent jobs
- GET  /security/scan/{id}/report     markdown or PDF report for a job

Responses use the camelCase job document as stored. Validation and store
errors are mapped to 400/503 by the handlers in oversight.main.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from oversight.api.deps import get_scan_services
from oversight.schemas import (
    ErrorResponse,
    ScanAccepted,
    ScanConflict,
    ScanJob,
    ScanList,
    ScanTriggerRequest,
)
from oversight.services.container import ScanServices
from oversight.services.reports import build_scan_markdown, export_scan_pdf
from oversight.services.statsig_client import log_scan_started

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/security", tags=["security"])

SCAN_NOT_FOUND = "Scan not found"
SCAN_IN_PROGRESS = "Scan already in progress for this repository"


def _not_found() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error=SCAN_NOT_FOUND).to_wire(),
    )


def _job_response(job: Optional[ScanJob]) -> JSONResponse:
    if job is None:
        return _not_found()
    return JSONResponse(content=job.to_wire())


@router.post("/scan", status_code=status.HTTP_202_ACCEPTED)
def trigger_scan(
    payload: ScanTriggerRequest,
    services: ScanServices = Depends(get_scan_services),
) -> JSONResponse:
    """
    Admit a scan for ``repoName`` and hand it to a worker.

    Returns immediately; clients poll ``GET /security/scan?id=...``.
    """
    credential = services.github_token()
    decision = services.admission.try_start(payload.repo_name, payload.tools, credential)

    if not decision.accepted:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=ScanConflict(
                error=SCAN_IN_PROGRESS, scan_id=decision.existing_scan_id
            ).to_wire(),
        )

    job = decision.job
    log_scan_started(job)
    try:
        services.dispatcher.submit(job, credential)
    except Exception as exc:  # noqa: BLE001
        # The job exists; record why it will never run so pollers see it.
        logger.exception("Scan %s: dispatch failed", job.id)
        services.orchestrator.fail(job.id, f"Dispatch failed: {exc}")

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=ScanAccepted(scan_id=job.id).to_wire(),
    )


@router.get("/scan")
def get_scans(
    scan_id: Optional[str] = Query(default=None, alias="id"),
    repo: Optional[str] = Query(default=None),
    services: ScanServices = Depends(get_scan_services),
) -> JSONResponse:
    """
    Status lookup for polling clients.

    ``id`` takes precedence over ``repo``; with neither, the most recent
    jobs are listed.
    """
    if scan_id:
        return _job_response(services.status.get(scan_id))
    if repo:
        return _job_response(services.status.latest_for_repo(repo))
    return JSONResponse(content=ScanList(scans=services.status.list_recent()).to_wire())


@router.get("/scan/{scan_id}/report")
def get_scan_report(
    scan_id: str,
    report_format: Literal["markdown", "pdf"] = Query(default="markdown", alias="format"),
    services: ScanServices = Depends(get_scan_services),
) -> Response:
    job = services.status.get(scan_id)
    if job is None:
        return _not_found()

    if report_format == "pdf":
        return Response(
            content=export_scan_pdf(job),
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="scan_{job.id}.pdf"'},
        )
    return Response(content=build_scan_markdown(job), media_type="text/markdown")
