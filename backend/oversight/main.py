from __future__ import annotations

"""
FastAPI application setup.

This module depends on:
- oversight.config.get_settings for configuration
- oversight.services.container.build_scan_services for the job store,
  admission controller, orchestrator and dispatcher
- oversight.api.api_router for route registration

Run with:
    uvicorn oversight.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oversight.api import api_router
from oversight.config import Settings, get_settings
from oversight.errors import ScanValidationError, StoreUnavailable
from oversight.services.container import ScanServices, build_scan_services
from oversight.services.statsig_client import shutdown_statsig

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


def create_app(
    settings: Settings | None = None,
    services: ScanServices | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "scan_services", None) is None:
            app.state.scan_services = build_scan_services(settings)
        try:
            yield
        finally:
            app.state.scan_services.shutdown()
            shutdown_statsig()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.scan_services = services

    # ---- CORS ----

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Error mapping ----

    @app.exception_handler(ScanValidationError)
    async def scan_validation_handler(request: Request, exc: ScanValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _validation_message(exc)},
        )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error("Job store unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "Scan storage is unavailable"},
        )

    # ---- Routes ----

    app.include_router(api_router, prefix="/api")

    # ---- Healthcheck ----

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
