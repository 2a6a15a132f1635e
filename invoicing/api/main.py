"""FastAPI application for invoice upload and review.

Production-ready API with:
- Health and readiness checks for Kubernetes
- Invoice upload with validation and storage
- Document-created events delivered via arq or in-process background tasks
- Owner-scoped review operations (reprocess, save, finalize, delete, bulk delete)
- Dashboard listing with search, status and total filters, sorting and counts
- Prometheus metrics for monitoring

Callers are identified by the ``X-User-Id`` header set by the fronting
authentication proxy.

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from typing import Any

from arq import create_pool
from arq.connections import ArqRedis
from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from invoicing.lifecycle import guard
from invoicing.lifecycle.errors import InvalidArgument, InvoiceError
from invoicing.queue.tasks import WorkerSettings, build_processor
from invoicing.records.models import InvoiceRecord
from invoicing.records.query import InvoiceListing, InvoiceQuery, InvoiceSort, StatusFilter
from invoicing.shared import metrics
from invoicing.shared.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"application/pdf", "image/png", "image/jpeg", "image/tiff"})

settings = get_settings()
app = FastAPI(
    title="Invoice Review Platform",
    description="Invoice upload, extraction and review API",
    version=settings.service_version,
)

processor = build_processor(settings)

_arq_pool: ArqRedis | None = None


async def get_arq_pool() -> ArqRedis:
    """Get or create the shared arq connection pool."""
    global _arq_pool
    if _arq_pool is None:
        _arq_pool = await create_pool(WorkerSettings.get_redis_settings())
    return _arq_pool


def get_caller_id(x_user_id: str | None = Header(None)) -> str | None:  # noqa: B008
    """Caller identity from the authentication proxy (None when signed out)."""
    return x_user_id


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


@app.exception_handler(InvoiceError)
async def invoice_error_handler(request: Request, exc: InvoiceError) -> JSONResponse:
    """Render lifecycle errors as ``{"error": code, "detail": message}``."""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    storage: bool
    extraction: bool


class InvoiceIdRequest(BaseModel):
    """Body of the invoice operation endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    invoice_id: str | None = Field(None, alias="invoiceId")


class InvoiceEditRequest(InvoiceIdRequest):
    """Body of save/finalize: the invoice id plus edited fields."""

    fields: dict[str, Any] | None = None


class BulkDeleteRequest(BaseModel):
    """Body of the bulk delete endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    invoice_ids: list[str] | None = Field(None, alias="invoiceIds")


class BulkDeleteResponse(BaseModel):
    ok: bool
    deleted: list[str]
    failed: dict[str, str]


class OkResponse(BaseModel):
    ok: bool


class FileUrlResponse(BaseModel):
    url: str
    expires_in_seconds: int | None = None


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Ready when object storage answers and an extraction provider is configured.
    """
    storage_ok = processor.storage.health_check()
    extraction_ok = processor.extraction.is_available()
    return ReadinessResponse(
        ready=storage_ok and extraction_ok,
        storage=storage_ok,
        extraction=extraction_ok,
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post(
    "/api/v1/invoices",
    response_model=InvoiceRecord,
    status_code=status.HTTP_201_CREATED,
    tags=["Invoices"],
)
async def upload_invoice(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Invoice file (PDF, PNG, JPEG or TIFF)"),  # noqa: B008
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> InvoiceRecord:
    """Upload an invoice file and create its record.

    The file is stored under ``invoices/{user}/{timestamp}_{name}`` and an
    ``uploaded`` record is created. Processing starts from the document-created
    event: on the arq worker when the queue is enabled, otherwise as a
    background task of this request.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/invoices" \\
      -H "X-User-Id: user-1" -F "file=@invoice.pdf"
    ```

    ## Error Handling

    - Returns 400 if the file is missing, empty, or of an unsupported type
    - Returns 401 without a caller identity
    - Returns 413 if the file exceeds the configured size limit
    """
    caller = guard.require_caller(caller_id)

    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No filename provided")

    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type: {file.content_type}. Only PDF and images are supported.",
        )

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        metrics.invoices_uploaded_total.labels(status="failed").inc()
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_bytes} bytes",
        )

    metrics.invoice_upload_size_bytes.observe(len(content))

    try:
        record = await processor.upload(caller, file.filename, content, file.content_type)
    except InvoiceError:
        metrics.invoices_uploaded_total.labels(status="failed").inc()
        raise
    metrics.invoices_uploaded_total.labels(status="success").inc()

    snapshot = record.model_dump(mode="json")
    if settings.queue_enabled:
        pool = await get_arq_pool()
        await pool.enqueue_job("process_created_invoice", record.id, snapshot)
        logger.info(f"Enqueued created event for invoice {record.id}")
    else:
        background_tasks.add_task(processor.handle_created, record.id, snapshot)

    return record


@app.get("/api/v1/invoices", response_model=InvoiceListing, tags=["Invoices"])
async def list_invoices(
    status_filter: StatusFilter = Query(StatusFilter.ALL, alias="status"),  # noqa: B008
    search: str | None = Query(None, description="Supplier, invoice number or file name"),
    min_total: float | None = Query(None),
    max_total: float | None = Query(None),
    sort: InvoiceSort = Query(InvoiceSort.CREATED_DESC),  # noqa: B008
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> InvoiceListing:
    """List the caller's invoices with dashboard filters.

    ``status`` accepts a lifecycle status, ``all`` or ``active`` (not finalized).
    The active and finalized counts always cover all of the caller's invoices.
    """
    try:
        query = InvoiceQuery(
            status=status_filter,
            search=search,
            min_total=min_total,
            max_total=max_total,
            sort=sort,
        )
    except ValidationError as e:
        raise InvalidArgument(f"Invalid listing options: {e.errors()[0]['msg']}") from e
    return await processor.list_invoices(caller_id, query)


@app.get("/api/v1/invoices/{invoice_id}", response_model=InvoiceRecord, tags=["Invoices"])
async def get_invoice(
    invoice_id: str,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> InvoiceRecord:
    """Get one of the caller's invoices."""
    return await processor.get_invoice(invoice_id, caller_id)


@app.get("/api/v1/invoices/{invoice_id}/file", response_model=FileUrlResponse, tags=["Invoices"])
async def get_invoice_file(
    invoice_id: str,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> FileUrlResponse:
    """Presigned download URL for the original invoice file."""
    record = await processor.get_invoice(invoice_id, caller_id)
    if not record.storage_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file stored")

    result = processor.storage.get_presigned_url(record.storage_path)
    if not result.success or not result.url:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not create download URL: {result.error}",
        )
    return FileUrlResponse(url=result.url, expires_in_seconds=result.expires_in_seconds)


@app.post("/api/v1/invoices/reprocess", response_model=OkResponse, tags=["Invoices"])
async def reprocess_invoice(
    body: InvoiceIdRequest,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> OkResponse:
    """Re-run extraction for an invoice that is not finalized."""
    return OkResponse(**await processor.reprocess(body.invoice_id, caller_id))


@app.post("/api/v1/invoices/save", response_model=InvoiceRecord, tags=["Invoices"])
async def save_invoice(
    body: InvoiceEditRequest,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> InvoiceRecord:
    """Save reviewed field values."""
    return await processor.update_fields(body.invoice_id, caller_id, body.fields or {})


@app.post("/api/v1/invoices/finalize", response_model=InvoiceRecord, tags=["Invoices"])
async def finalize_invoice(
    body: InvoiceEditRequest,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> InvoiceRecord:
    """Finalize an invoice, saving any edited fields with it."""
    return await processor.finalize(body.invoice_id, caller_id, body.fields)


@app.post("/api/v1/invoices/delete", response_model=OkResponse, tags=["Invoices"])
async def delete_invoice(
    body: InvoiceIdRequest,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> OkResponse:
    """Delete an invoice record and its stored file."""
    return OkResponse(**await processor.delete(body.invoice_id, caller_id))


@app.post("/api/v1/invoices/bulk-delete", response_model=BulkDeleteResponse, tags=["Invoices"])
async def bulk_delete_invoices(
    body: BulkDeleteRequest,
    caller_id: str | None = Depends(get_caller_id),  # noqa: B008
) -> BulkDeleteResponse:
    """Delete several invoices and their stored files.

    All ids are checked first; a missing or foreign invoice rejects the request
    without deleting anything.
    """
    return BulkDeleteResponse(**await processor.bulk_delete(body.invoice_ids, caller_id))
