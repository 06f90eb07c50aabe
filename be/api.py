"""FastAPI app with health, spreadsheet upload and personnel CRUD endpoints.

Record payloads use camelCase keys (``workingArea``, ``validUpto``,
``codeNo``, ``adhaarNo``).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from io import BytesIO
from typing import Any

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .db import get_session
from .logging_config import setup_logging
from .parsers import ParseError
from .pipelines.importing import ImportAbortedError, ImportReport, import_file
from .pipelines.personnel import (
    DuplicatePersonnelError,
    InvalidDateError,
    MissingIdentityError,
    PersonnelNotFoundError,
    bulk_delete_personnel,
    create_personnel,
    delete_personnel,
    lookup_personnel,
    update_personnel,
)
from .repository import PersonnelRecord, PersonnelStore, SqlPersonnelStore, StorageError

logger = logging.getLogger(__name__)


# Pydantic request/response models
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class SkipDetailDTO(CamelModel):
    """Skipped row sample."""
    reason: str
    row_number: int
    found: int | None = None
    row: dict[str, Any]


class ImportReportResponse(CamelModel):
    """Spreadsheet upload response."""
    status: str
    message: str
    total_rows: int
    inserted: int
    skipped: int
    unresolved_fields: list[str] = Field(default_factory=list)
    skipped_details: list[SkipDetailDTO] = Field(default_factory=list)


class PersonnelPayload(CamelModel):
    """Single-record create/update body; ``validUpto`` may be text or a serial."""
    name: str | None = None
    designation: str | None = None
    working_area: str | None = None
    valid_upto: str | float | date | None = None
    code_no: str | int | None = None
    adhaar_no: str | int | None = None


class PersonnelResponse(CamelModel):
    message: str
    user: PersonnelRecord


class LookupResponse(CamelModel):
    message: str
    data: list[PersonnelRecord]


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str


async def get_store(session: AsyncSession = Depends(get_session)) -> PersonnelStore:
    """Storage dependency; tests override this."""
    return SqlPersonnelStore(session)


def _report_response(report: ImportReport) -> ImportReportResponse:
    return ImportReportResponse(
        status="success",
        message=report.message,
        total_rows=report.total_rows,
        inserted=report.inserted,
        skipped=report.skipped,
        unresolved_fields=report.unresolved_fields,
        skipped_details=[
            SkipDetailDTO(reason=d.reason, row_number=d.row_number, found=d.found_id, row=d.row)
            for d in report.skipped_details
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Spreadsheet import and administration of personnel records",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


# Exception handlers
@app.exception_handler(ParseError)
async def parse_error_handler(request, exc: ParseError):
    """Handle spreadsheet decoding errors."""
    logger.error(f"Parse error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "parse_error", str(exc))


@app.exception_handler(ImportAbortedError)
async def import_aborted_handler(request, exc: ImportAbortedError):
    """Handle imports stopped by a storage failure."""
    logger.error(f"Import aborted at row {exc.row_number} after {exc.inserted} inserts: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "import_failed", str(exc))


@app.exception_handler(MissingIdentityError)
async def missing_identity_handler(request, exc: MissingIdentityError):
    logger.warning(f"Rejected record without identity: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "missing_identity", str(exc))


@app.exception_handler(InvalidDateError)
async def invalid_date_handler(request, exc: InvalidDateError):
    logger.warning(f"Rejected record with invalid date: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "invalid_date", str(exc))


@app.exception_handler(DuplicatePersonnelError)
async def duplicate_handler(request, exc: DuplicatePersonnelError):
    logger.warning(f"Duplicate of record {exc.existing_id}: {exc}")
    return _error(status.HTTP_409_CONFLICT, "duplicate", str(exc))


@app.exception_handler(PersonnelNotFoundError)
async def not_found_handler(request, exc: PersonnelNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "not_found", str(exc))


@app.exception_handler(StorageError)
async def storage_error_handler(request, exc: StorageError):
    """Handle database failures."""
    logger.error(f"Storage error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "storage_error", str(exc))


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "upload": "/upload",
            "list": "/users",
            "search": "/search?q=",
            "lookup": "/user/{query}",
            "create": "/user",
            "update": "/user/{id}",
            "delete": "/user/{id}",
            "bulk_delete": "/users/bulk-delete",
            "docs": "/docs",
        },
    }


@app.post("/upload", response_model=ImportReportResponse)
async def upload(
    excel: UploadFile | None = File(default=None, description="Spreadsheet file (Excel or CSV)"),
    store: PersonnelStore = Depends(get_store),
) -> ImportReportResponse:
    """Import a spreadsheet of personnel records.

    Rows without a code number and Aadhaar number, and rows colliding with
    stored records (or earlier rows of the same sheet), are skipped and
    reported; everything else is inserted in sheet order.
    """
    if excel is None or not excel.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    logger.info(f"Received spreadsheet upload: {excel.filename}")

    try:
        content = await excel.read()
        if len(content) > settings.imports.max_upload_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File exceeds {settings.imports.max_upload_bytes} bytes",
            )

        report = await import_file(store, BytesIO(content), excel.filename, content=content)
        return _report_response(report)

    except (HTTPException, ParseError, ImportAbortedError):
        # Re-raise to be caught by exception handlers
        raise
    except Exception as e:
        logger.error(f"Unexpected error processing upload: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing file: {str(e)}",
        )
    finally:
        await excel.close()


@app.get("/users", response_model=list[PersonnelRecord])
@app.get("/employees", response_model=list[PersonnelRecord])
async def list_users(store: PersonnelStore = Depends(get_store)) -> list[PersonnelRecord]:
    """All records, newest first."""
    return await store.find_all()


@app.get("/search", response_model=list[PersonnelRecord])
async def search_users(q: str = "", store: PersonnelStore = Depends(get_store)) -> list[PersonnelRecord]:
    """Case-insensitive substring match on code number or Aadhaar number."""
    if not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search query is required",
        )
    return await store.search(q)


@app.get("/user/{query}", response_model=LookupResponse)
async def lookup_user(query: str, store: PersonnelStore = Depends(get_store)) -> LookupResponse:
    """Exact lookup by code number (any case) or Aadhaar number."""
    records = await lookup_personnel(store, query)
    return LookupResponse(message=f"Found {len(records)}", data=records)


@app.post("/user", response_model=PersonnelResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: PersonnelPayload,
    store: PersonnelStore = Depends(get_store),
) -> PersonnelResponse:
    """Create a single record (duplicate-checked)."""
    record = await create_personnel(store, request.model_dump())
    return PersonnelResponse(message="User created", user=record)


@app.put("/user/{record_id}", response_model=PersonnelResponse)
async def update_user(
    record_id: int,
    request: PersonnelPayload,
    store: PersonnelStore = Depends(get_store),
) -> PersonnelResponse:
    """Replace a record's fields (duplicate-checked against other records)."""
    record = await update_personnel(store, record_id, request.model_dump())
    return PersonnelResponse(message="User updated", user=record)


@app.delete("/user/{record_id}", response_model=MessageResponse)
async def delete_user(record_id: int, store: PersonnelStore = Depends(get_store)) -> MessageResponse:
    await delete_personnel(store, record_id)
    return MessageResponse(message="User deleted")


@app.post("/users/bulk-delete", response_model=MessageResponse)
async def bulk_delete_users(
    request: BulkDeleteRequest,
    store: PersonnelStore = Depends(get_store),
) -> MessageResponse:
    """Delete every record in ``ids``."""
    if not request.ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No ids provided",
        )
    deleted = await bulk_delete_personnel(store, request.ids)
    return MessageResponse(message=f"Deleted {deleted} users")
