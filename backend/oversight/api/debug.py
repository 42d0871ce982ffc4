# backend/oversight/api/debug.py
from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from oversight.config import get_settings
from oversight.services.tools import get_default_tool_runners, self_test_tools

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/scan")
async def scan_self_test() -> JSONResponse:
    """
    Run every scanner against a planted sample and report what each saw.

    Answers "why did this scan report nothing" without touching a real
    repository: a tool that is missing, misconfigured or returning empty
    output shows up here with its error or Semgrep debug block.
    """
    runners = get_default_tool_runners(get_settings())
    report = await run_in_threadpool(self_test_tools, runners)
    return JSONResponse(content=report.to_wire())
