"""Async task definitions for invoice processing.

Uses arq (async Redis queue) to deliver document-created events to a
background worker, which runs the processing orchestrator.

Based on arq documentation:
https://arq-docs.helpmanual.io/
"""

import logging
from typing import Any

from arq.connections import RedisSettings

from invoicing.extraction.documentai_provider import max_call_seconds
from invoicing.extraction.factory import create_extraction_service
from invoicing.lifecycle.processor import InvoiceProcessor
from invoicing.records.factory import create_invoice_store
from invoicing.shared.config import Settings, get_settings
from invoicing.storage.service import StorageService

logger = logging.getLogger(__name__)


async def process_created_invoice(
    ctx: dict[str, Any],
    invoice_id: str,
    snapshot: dict[str, Any],
) -> dict[str, Any]:
    """Run processing for a newly created invoice record.

    Duplicate deliveries are harmless: the orchestrator only starts from the
    ``uploaded`` status, so a second delivery is ignored.

    Args:
        ctx: arq context (contains redis connection and worker services)
        invoice_id: Id of the created record
        snapshot: Record field values at creation time

    Returns:
        Summary with the invoice id and whether processing ran
    """
    logger.info(f"Received created event for invoice {invoice_id}")

    processor: InvoiceProcessor = ctx["processor"]
    processed = await processor.handle_created(invoice_id, snapshot)

    logger.info(f"Created event for invoice {invoice_id} handled (processed={processed})")
    return {"invoice_id": invoice_id, "processed": processed}


def build_processor(settings: Settings, redis: Any = None) -> InvoiceProcessor:
    """Wire the orchestrator with the configured store, storage and provider."""
    return InvoiceProcessor(
        store=create_invoice_store(settings, redis=redis),
        storage=StorageService(settings),
        extraction=create_extraction_service(settings),
    )


def check_job_timeout(settings: Settings) -> bool:
    """Warn when a job can time out before a Document AI call gives up.

    Returns:
        True if the job timeout exceeds the worst-case extraction call
    """
    if settings.extraction_provider != "documentai":
        return True

    worst_case = max_call_seconds(settings)
    if settings.queue_job_timeout <= worst_case:
        logger.warning(
            f"Job timeout {settings.queue_job_timeout}s does not exceed the worst-case "
            f"Document AI call ({worst_case:.0f}s); slow invoices will be interrupted. "
            f"Raise APP_QUEUE_JOB_TIMEOUT."
        )
        return False
    return True


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup hook - initialize services.

    Called once when worker starts. Initializes shared services
    to avoid re-creating them for each job.
    """
    logger.info("Initializing worker services...")
    settings = get_settings()
    check_job_timeout(settings)
    ctx["settings"] = settings
    ctx["processor"] = build_processor(settings, redis=ctx.get("redis"))
    logger.info("Worker services initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown hook - cleanup resources."""
    logger.info("Worker shutting down...")


class WorkerSettings:
    """arq worker settings.

    Defines the worker configuration including:
    - Task functions to register
    - Redis connection settings
    - Job timeout settings
    """

    functions = [process_created_invoice]
    on_startup = startup
    on_shutdown = shutdown

    # These will be set from environment
    redis_settings: RedisSettings | None = None
    max_jobs = 10
    job_timeout = 600

    @classmethod
    def get_redis_settings(cls) -> RedisSettings:
        """Get Redis settings from configuration."""
        return RedisSettings.from_dsn(get_settings().redis_url)
