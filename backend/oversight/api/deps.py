# backend/oversight/api/deps.py
from __future__ import annotations

"""
Request dependencies shared by the API routers.
"""

from fastapi import Request

from oversight.services.container import ScanServices


def get_scan_services(request: Request) -> ScanServices:
    """The process-wide services bundle installed by the app lifespan."""
    return request.app.state.scan_services
