"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from agenda.core.config import settings
from agenda.core.structured_logging import configure_logging
from agenda.db.session import engine
from agenda.services.schedule_errors import (
    AppointmentConflictError,
    BlockConflictError,
    ConflictError,
    ForbiddenOwnershipError,
    ForbiddenRoleError,
    InvalidIntervalError,
    InvalidProviderError,
    MinCancelNoticeError,
    NotCancellableError,
    NotFoundError,
    NotReschedulableError,
    ScheduleError,
    TransientFailureError,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Agenda API",
    description="Multi-tenant provider schedule API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# ============================================================================
# Error mapping
# ============================================================================

ERROR_STATUS_CODES: dict[str, int] = {
    InvalidIntervalError.kind: 400,
    InvalidProviderError.kind: 400,
    MinCancelNoticeError.kind: 400,
    ForbiddenOwnershipError.kind: 403,
    ForbiddenRoleError.kind: 403,
    NotFoundError.kind: 404,
    ConflictError.kind: 409,
    BlockConflictError.kind: 409,
    AppointmentConflictError.kind: 409,
    NotCancellableError.kind: 409,
    NotReschedulableError.kind: 409,
    TransientFailureError.kind: 503,
}


@app.exception_handler(ScheduleError)
async def schedule_error_handler(request: Request, exc: ScheduleError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.kind, 400)
    body: dict = {"kind": exc.kind, "detail": exc.message}
    if isinstance(exc, ConflictError) and exc.conflicting_id:
        body["conflicting_id"] = str(exc.conflicting_id)
    if isinstance(exc, MinCancelNoticeError) and exc.cutoff_at:
        body["min_notice_hours"] = exc.min_notice_hours
        body["cutoff_at"] = exc.cutoff_at.isoformat()
    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


# ============================================================================
# Routers
# ============================================================================

from agenda.routers import appointments, blocks, schedule, webhooks

app.include_router(blocks.router, prefix="/blocks", tags=["blocks"])
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
app.include_router(schedule.router, prefix="/schedule", tags=["schedule"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
