# backend/oversight/api/tools.py
from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from oversight.config import get_settings
from oversight.services.tools import probe_tools

router = APIRouter(prefix="/security/tools", tags=["tools"])


@router.get("")
async def list_tools() -> JSONResponse:
    """
    Report which scanners are installed and their versions.

    The binaries run on the API host (or worker image); a missing one
    only affects the tool results of scans that request it.
    """
    tools_status = await run_in_threadpool(probe_tools, get_settings())
    return JSONResponse(content=tools_status.to_wire())
