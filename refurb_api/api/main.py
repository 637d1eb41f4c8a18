from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from refurb_api.core.errors import WorkflowError
from refurb_api.core.logging import configure_logging, correlation_id_var
from refurb_api.core.settings import get_app_settings
from refurb_api.db.base import utcnow
from refurb_api.db.run_migrations import main as run_alembic
from refurb_api.db.seed import seed_all
from refurb_api.db.session import dispose_engine
from refurb_api.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from refurb_api.services.events import event_bus

from refurb_api.api.routes.coordination import router as coordination_router
from refurb_api.api.routes.devices import router as devices_router
from refurb_api.api.routes.inspection import router as inspection_router
from refurb_api.api.routes.intake import router as intake_router
from refurb_api.api.routes.qc import router as qc_router
from refurb_api.api.routes.racks import router as racks_router
from refurb_api.api.routes.reports import router as reports_router
from refurb_api.api.routes.spares import router as spares_router
from refurb_api.api.routes.tat import router as tat_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness check."},
    {"name": "Intake", "description": "Purchase orders, inward batches, device receipt and shipment verification."},
    {"name": "Devices", "description": "Device lookup, stock movements, outward dispatch and scrap."},
    {"name": "Inspection", "description": "Checklist catalog and inspection routing."},
    {"name": "Repair", "description": "Coordinator claim, parallel tracks, specialist work and paint shop."},
    {"name": "Spares", "description": "Spare part stock, request validation and issuance."},
    {"name": "Quality", "description": "QC verdicts and QC checklist re-checks."},
    {"name": "Racks", "description": "Rack administration and stage utilisation."},
    {"name": "TAT", "description": "Turnaround time monitoring."},
    {"name": "Reports", "description": "Exportable reports (CSV/Excel/PDF)."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Attach a correlation id to the request for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    request.state.correlation_id = corr

    started = time.perf_counter()
    try:
        response = await call_next(request)
        logger.info(
            "%s %s -> %s in %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
    finally:
        correlation_id_var.reset(token_corr)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=utcnow(),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """
    Map workflow rule violations to the error envelope; the error code becomes the type.
    """
    logger.info("Workflow error %s: %s", exc.code, exc.message)
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.code,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding, then start delivering workflow events.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)

    event_bus.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Deliver queued events before the process exits, then release DB connections."""
    await event_bus.stop()
    await dispose_engine()


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


api_v1.include_router(intake_router)
api_v1.include_router(devices_router)
api_v1.include_router(inspection_router)
api_v1.include_router(coordination_router)
api_v1.include_router(spares_router)
api_v1.include_router(qc_router)
api_v1.include_router(racks_router)
api_v1.include_router(tat_router)
api_v1.include_router(reports_router)

app.include_router(api_v1)
