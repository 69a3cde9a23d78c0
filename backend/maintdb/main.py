# backend/maintdb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import (
    AssignmentConflict,
    IneligibleAssignee,
    InvalidRecurrence,
    InvalidSchedule,
    InvalidTransition,
    MaintError,
    NotFound,
    StorageFailure,
)

from .apps.accounts.router import router as personnel_router
from .apps.plant.router import router as plant_router
from .apps.faults.router import router as faults_router
from .apps.scheduling.router import router as schedules_router
from .apps.reports.router import router as reports_router
from .apps.audit.router import router as audit_router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    IneligibleAssignee: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidRecurrence: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidSchedule: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AssignmentConflict: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


def status_for(exc: MaintError) -> int:
    for kind, code in ERROR_STATUS.items():
        if isinstance(exc, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


app = FastAPI(title="Maintenance Tracking API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MaintError)
async def maint_error_handler(request: Request, exc: MaintError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": exc.detail},
    )


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Maintenance tracking backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(personnel_router)
app.include_router(plant_router)
app.include_router(faults_router)
app.include_router(schedules_router)
app.include_router(reports_router)
app.include_router(audit_router)
