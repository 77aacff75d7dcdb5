"""FastAPI server — signed job intake, validation probe, health endpoints."""

from __future__ import annotations

import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from sheet_importer.api_models import (
    CancelResponse,
    DataPreview,
    JobAcceptedResponse,
    JobStatusResponse,
    MappingInfo,
    MappingsResponse,
    ValidateSheetRequest,
    ValidateSheetResponse,
)
from sheet_importer.errors import (
    AuthHeaderError,
    ConcurrentJobError,
    JobValidationError,
    SourceError,
)
from sheet_importer.mappings import is_valid_mapping_id, list_mappings
from sheet_importer.models import JobDescriptor
from sheet_importer.security import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    sanitize_for_logging,
    verify_signature,
)
from sheet_importer.services import ENVIRONMENT, job_processor, settings, sheets_source

SERVICE_NAME = "Sheet Importer Worker"
VERSION = "1.0.0"
PREVIEW_ROWS = 5

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
if settings.log_file_path:
    os.makedirs(os.path.dirname(settings.log_file_path) or ".", exist_ok=True)
    _file_handler = RotatingFileHandler(settings.log_file_path, maxBytes=5 * 1024 * 1024, backupCount=5)
    _file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logging.getLogger().addHandler(_file_handler)
logger = logging.getLogger(__name__)

_started_at = time.time()

# -- FastAPI app ---------------------------------------------------------------
fastapi_app = FastAPI(title=SERVICE_NAME, version=VERSION)

fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -- Error mapping -------------------------------------------------------------
@fastapi_app.exception_handler(AuthHeaderError)
async def _auth_header_error(request: Request, exc: AuthHeaderError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@fastapi_app.exception_handler(JobValidationError)
async def _job_validation_error(request: Request, exc: JobValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "missing_fields": exc.missing_fields})


@fastapi_app.exception_handler(ConcurrentJobError)
async def _concurrent_job_error(request: Request, exc: ConcurrentJobError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@fastapi_app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("[HTTP] Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# -- Request helpers -----------------------------------------------------------
async def verified_body(request: Request) -> bytes:
    """Raw request body after signature verification."""
    if not settings.hmac_secret:
        logger.error("[AUTH] HMAC_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Signing secret not configured")
    body = await request.body()
    verify_signature(
        body,
        request.headers.get(SIGNATURE_HEADER),
        request.headers.get(TIMESTAMP_HEADER),
        settings.hmac_secret,
        tolerance=settings.signature_tolerance_seconds,
    )
    return body


def _parse_json(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body or b"{}")
    except ValueError:
        raise JobValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise JobValidationError("Request body must be a JSON object")
    return data


def _to_job_validation_error(exc: ValidationError) -> JobValidationError:
    missing = []
    invalid = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"])
        if err["type"] in ("missing", "string_too_short"):
            missing.append(name)
        else:
            invalid.append(name)
    if missing:
        return JobValidationError(f"Missing required field(s): {', '.join(missing)}", missing_fields=missing)
    return JobValidationError(f"Invalid field(s): {', '.join(invalid)}")


# -- Health --------------------------------------------------------------------
@fastapi_app.get("/")
async def root():
    """Service identity."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "running",
        "environment": ENVIRONMENT,
    }


@fastapi_app.get("/api/health")
async def health():
    """Health check."""
    return {
        "status": "healthy",
        "uptime": round(time.time() - _started_at, 3),
        "environment": ENVIRONMENT,
        "version": VERSION,
    }


@fastapi_app.get("/api/health/detailed")
async def health_detailed():
    """Health check with a configuration presence report."""
    missing = settings.missing_required()
    return {
        "status": "degraded" if missing else "healthy",
        "environment": ENVIRONMENT,
        "version": VERSION,
        "job_running": job_processor.busy,
        "configuration": {
            name: ("missing" if name in missing else "set")
            for name in (
                "HMAC_SECRET",
                "CALLBACK_BASE_URL",
                "GOOGLE_SERVICE_ACCOUNT_EMAIL",
                "GOOGLE_PRIVATE_KEY",
                "TARGET_LOGIN_URL",
                "TARGET_USERNAME",
                "TARGET_PASSWORD",
            )
        },
    }


@fastapi_app.get("/api/health/live")
async def health_live():
    """Liveness probe."""
    return {"status": "alive", "service": SERVICE_NAME, "pid": os.getpid()}


@fastapi_app.get("/api/health/ready")
async def health_ready():
    """Readiness probe — 503 while a job holds the processing slot."""
    if job_processor.busy:
        return JSONResponse(status_code=503, content={"status": "busy", "accepting_jobs": False})
    return {"status": "ready", "accepting_jobs": True}


# -- Jobs ----------------------------------------------------------------------
@fastapi_app.post("/api/jobs/process", response_model=JobAcceptedResponse)
async def process_job(body: bytes = Depends(verified_body)):
    """Accept a signed job and start processing it in the background.

    Returns as soon as the job holds the processing slot; progress and the
    final outcome are delivered through status callbacks.
    """
    data = _parse_json(body)
    logger.info("[POST /api/jobs/process] Received job request %s", sanitize_for_logging(data))

    try:
        descriptor = JobDescriptor.model_validate(data)
    except ValidationError as e:
        raise _to_job_validation_error(e)

    if not is_valid_mapping_id(descriptor.mapping_id):
        raise JobValidationError(
            "Invalid mapping format. Expected format: Category.Type (e.g., Customers.Basic)"
        )

    ctx = job_processor.submit(descriptor)
    return JobAcceptedResponse(job_id=ctx.job_id)


@fastapi_app.post("/api/jobs/validate", response_model=ValidateSheetResponse)
async def validate_sheet(body: bytes = Depends(verified_body)):
    """Check sheet access and return a small preview of its data."""
    try:
        request = ValidateSheetRequest.model_validate(_parse_json(body))
    except ValidationError as e:
        raise _to_job_validation_error(e)

    logger.info("[POST /api/jobs/validate] Validating %s!%s", request.source_id, request.range)

    if not await sheets_source.probe_access(request.source_id):
        raise HTTPException(
            status_code=403,
            detail="Access denied to Google Sheets. Check permissions and service account configuration.",
        )

    try:
        metadata = await sheets_source.get_metadata(request.source_id)
        table = await sheets_source.fetch_table(request.source_id, request.range)
    except SourceError as e:
        raise HTTPException(status_code=502, detail=f"Google Sheets validation failed: {e}")

    if len(table) < 2:
        raise HTTPException(
            status_code=400,
            detail="No data found in sheet or insufficient rows. Ensure sheet has headers and data rows.",
        )

    return ValidateSheetResponse(
        title=metadata.get("title"),
        total_sheets=len(metadata.get("sheets", [])),
        data_preview=DataPreview(
            headers=[str(h) for h in table[0]],
            sample_rows=[[str(c) for c in row] for row in table[1 : PREVIEW_ROWS + 1]],
            total_rows=len(table) - 1,
        ),
    )


@fastapi_app.get("/api/jobs/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str):
    """Local view of an active or recently finished job."""
    ctx = job_processor.get_job(job_id)
    if ctx is None:
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found.")
    return JobStatusResponse(
        job_id=ctx.job_id,
        dry_run=ctx.descriptor.dry_run,
        cancel_requested=ctx.cancel_event.is_set(),
        state=ctx.state,
    )


@fastapi_app.post("/api/jobs/cancel/{job_id}", response_model=CancelResponse)
async def cancel_job(job_id: str, body: bytes = Depends(verified_body)):
    """Request cooperative cancellation; the job stops before its next row."""
    ctx = job_processor.get_job(job_id)
    if ctx is None:
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found.")

    if job_processor.cancel(job_id):
        return CancelResponse(success=True, job_id=job_id, message="Job cancellation requested")
    return CancelResponse(success=False, job_id=job_id, message=f"Job is already {ctx.state.status}")


@fastapi_app.get("/api/jobs/mappings", response_model=MappingsResponse)
async def get_mappings():
    """Available mapping configurations."""
    return MappingsResponse(
        mappings=[
            MappingInfo(
                id=rule.id,
                name=rule.name,
                description=rule.description,
                required_fields=rule.required_fields,
                optional_fields=rule.optional_fields,
            )
            for rule in list_mappings()
        ]
    )
