"""Invoice processing orchestrator.

Drives an invoice through its lifecycle: upload, extraction on the
document-created event, explicit reprocessing, user edits, finalization and
deletion. Collaborators (record store, object storage, extraction provider)
are injected so the orchestrator can run against fakes in tests.

Processing runs at most once per observed state: the move to ``processing``
is a conditional write against the status the trigger saw, so a duplicate
event delivery racing a manual reprocess results in a single extraction call.
"""

import asyncio
import logging
import re
import time
from collections.abc import Collection
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from invoicing.extraction.base import ExtractionProvider
from invoicing.extraction.entities import EntityDiagnostic, summarize_entities
from invoicing.extraction.normalizer import normalize_invoice
from invoicing.extraction.schema import InvoiceFields
from invoicing.lifecycle import guard
from invoicing.lifecycle.errors import (
    ExtractionFailure,
    FailedPrecondition,
    InvalidArgument,
    InvoiceError,
    NormalizationFailure,
    NotFound,
)
from invoicing.records.base import InvoiceStore, merge_changes
from invoicing.records.models import EDITABLE_FIELDS, InvoiceRecord, InvoiceStatus, utc_now
from invoicing.records.query import InvoiceListing, InvoiceQuery, build_listing
from invoicing.shared import metrics
from invoicing.storage.service import DEFAULT_CONTENT_TYPE, StorageService

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

NOT_FINALIZED = tuple(s for s in InvoiceStatus if s != InvoiceStatus.FINALIZED)

INTERRUPTED_MESSAGE = "Processing was interrupted before extraction finished; reprocess to retry."

MAX_BULK_DELETE = 100


def build_storage_path(user_id: str, file_name: str, now: datetime | None = None) -> str:
    """Object key for an uploaded invoice: ``invoices/{user}/{millis}_{name}``."""
    now = now or datetime.now(UTC)
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", file_name.strip()) or "invoice"
    return f"invoices/{user_id}/{int(now.timestamp() * 1000)}_{safe_name}"


class InvoiceProcessor:
    """Lifecycle driver for invoice records."""

    def __init__(
        self,
        store: InvoiceStore,
        storage: StorageService,
        extraction: ExtractionProvider,
    ) -> None:
        """Initialize processor.

        Args:
            store: Record store holding invoice documents
            storage: Object storage holding the original files
            extraction: Document-understanding provider
        """
        self.store = store
        self.storage = storage
        self.extraction = extraction

    # Event entry point

    async def handle_created(self, invoice_id: str, snapshot: dict[str, Any]) -> bool:
        """Handle the document-created event for a new invoice record.

        Args:
            invoice_id: Id of the created record
            snapshot: Field values of the record at creation time

        Returns:
            True if processing ran, False if the event was ignored
        """
        status = snapshot.get("status")
        if not guard.can_start_processing(status, bool(snapshot.get("skip_processing"))):
            logger.info(f"Ignoring created event for invoice {invoice_id} (status={status})")
            metrics.invoice_processing_total.labels(outcome="skipped").inc()
            return False

        return await self._process(
            invoice_id,
            storage_path=snapshot.get("storage_path"),
            content_type=snapshot.get("content_type"),
            expected_status=(InvoiceStatus.UPLOADED,),
        )

    # User operations

    async def upload(
        self,
        caller_id: str | None,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> InvoiceRecord:
        """Store an uploaded file and create its ``uploaded`` record.

        Raises:
            Unauthenticated: If there is no caller
            InvalidArgument: If the file is empty
        """
        caller = guard.require_caller(caller_id)
        if not content:
            raise InvalidArgument("Empty file.")

        storage_path = build_storage_path(caller, file_name)
        result = await asyncio.to_thread(
            self.storage.upload_bytes,
            content,
            storage_path,
            content_type,
        )
        if not result.success:
            raise InvoiceError(f"Upload failed: {result.error}")

        record = InvoiceRecord(
            user_id=caller,
            storage_path=storage_path,
            original_file_name=file_name,
            content_type=content_type,
        )
        await self.store.create(record)
        logger.info(f"Created invoice {record.id} for {caller} at {storage_path}")
        return record

    async def get_invoice(self, invoice_id: str, caller_id: str | None) -> InvoiceRecord:
        caller = guard.require_caller(caller_id)
        record = await self._load(guard.require_invoice_id(invoice_id))
        guard.require_owner(record, caller)
        return record

    async def list_invoices(
        self, caller_id: str | None, query: InvoiceQuery | None = None
    ) -> InvoiceListing:
        """The caller's invoices filtered and sorted for the dashboard."""
        caller = guard.require_caller(caller_id)
        return build_listing(await self.store.list_for_owner(caller), query)

    async def reprocess(self, invoice_id: str, caller_id: str | None) -> dict[str, bool]:
        """Re-run extraction for an invoice on the owner's request.

        Returns:
            ``{"ok": True}`` once processing has completed (successfully or
            with the failure recorded on the invoice)

        Raises:
            Unauthenticated, InvalidArgument, NotFound, PermissionDenied,
            FailedPrecondition
        """
        caller = guard.require_caller(caller_id)
        record = await self._load(guard.require_invoice_id(invoice_id))
        guard.check_reprocess(record, caller)

        started = await self._process(
            record.id,
            storage_path=record.storage_path,
            content_type=record.content_type,
            expected_status=(record.status,),
        )
        if not started:
            raise FailedPrecondition("Invoice changed while reprocessing was starting; try again.")
        return {"ok": True}

    async def update_fields(
        self, invoice_id: str, caller_id: str | None, changes: dict[str, Any]
    ) -> InvoiceRecord:
        """Save the owner's edits to extracted fields."""
        caller = guard.require_caller(caller_id)
        record = await self._load(guard.require_invoice_id(invoice_id))
        guard.check_edit(record, caller)

        updates = self._validated_edits(record, changes)
        if not await self.store.update(record.id, updates, expected_status=NOT_FINALIZED):
            raise FailedPrecondition("Finalized invoices cannot be edited.")
        return await self._load(record.id)

    async def finalize(
        self,
        invoice_id: str,
        caller_id: str | None,
        changes: dict[str, Any] | None = None,
    ) -> InvoiceRecord:
        """Mark an invoice finalized, optionally saving last edits with it."""
        caller = guard.require_caller(caller_id)
        record = await self._load(guard.require_invoice_id(invoice_id))
        guard.check_finalize(record, caller)

        updates = self._validated_edits(record, changes or {})
        updates["status"] = InvoiceStatus.FINALIZED
        updates["finalized_at"] = utc_now()
        if not await self.store.update(record.id, updates, expected_status=NOT_FINALIZED):
            raise FailedPrecondition("Invoice is already finalized.")

        logger.info(f"Invoice {record.id} finalized by {caller}")
        return await self._load(record.id)

    async def delete(self, invoice_id: str, caller_id: str | None) -> dict[str, bool]:
        """Delete the stored file (missing files are fine) and then the record."""
        caller = guard.require_caller(caller_id)
        record = await self._load(guard.require_invoice_id(invoice_id))
        guard.check_delete(record, caller)

        await self._delete_record(record)
        logger.info(f"Invoice {record.id} deleted by {caller}")
        return {"ok": True}

    async def bulk_delete(self, invoice_ids: Any, caller_id: str | None) -> dict[str, Any]:
        """Delete several of the caller's invoices.

        Every id is checked before anything is deleted, so a missing or foreign
        invoice aborts the whole request. A file that cannot be removed leaves
        its record in place and is reported under ``failed``.

        Returns:
            ``{"ok": bool, "deleted": [ids], "failed": {id: message}}``

        Raises:
            Unauthenticated, InvalidArgument, NotFound, PermissionDenied
        """
        caller = guard.require_caller(caller_id)
        ids = guard.require_invoice_ids(invoice_ids, limit=MAX_BULK_DELETE)

        records = [await self._load(invoice_id) for invoice_id in ids]
        for record in records:
            guard.check_delete(record, caller)

        deleted: list[str] = []
        failed: dict[str, str] = {}
        for record in records:
            try:
                await self._delete_record(record)
            except InvoiceError as e:
                logger.error(f"Bulk delete of invoice {record.id} failed: {e.message}")
                failed[record.id] = e.message
            else:
                deleted.append(record.id)

        logger.info(f"Bulk delete by {caller}: {len(deleted)} deleted, {len(failed)} failed")
        return {"ok": not failed, "deleted": deleted, "failed": failed}

    # Processing body

    async def _process(
        self,
        invoice_id: str,
        storage_path: str | None,
        content_type: str | None,
        expected_status: Collection[InvoiceStatus],
    ) -> bool:
        started = await self.store.update(
            invoice_id,
            {"status": InvoiceStatus.PROCESSING, "error_message": None},
            expected_status=expected_status,
        )
        if not started:
            logger.info(f"Invoice {invoice_id} no longer in {list(expected_status)}; not processing")
            metrics.invoice_processing_total.labels(outcome="skipped").inc()
            return False

        logger.info(f"Processing invoice {invoice_id}")
        try:
            fields, diagnostics = await asyncio.to_thread(
                self._extract_fields, storage_path, content_type
            )
        except asyncio.CancelledError:
            # Job timeout or shutdown; the record must not stay in processing
            logger.warning(f"Processing invoice {invoice_id} was interrupted")
            await asyncio.shield(
                self._finish(
                    invoice_id,
                    {"status": InvoiceStatus.ERROR, "error_message": INTERRUPTED_MESSAGE},
                    outcome="error",
                )
            )
            raise
        except Exception as e:
            message = e.message if isinstance(e, InvoiceError) else str(e)
            logger.exception(f"Processing invoice {invoice_id} failed: {message}")
            await self._finish(
                invoice_id,
                {"status": InvoiceStatus.ERROR, "error_message": message},
                outcome="error",
            )
            return True

        changes: dict[str, Any] = fields.model_dump()
        changes.update(
            raw_entities=diagnostics,
            status=InvoiceStatus.NEEDS_REVIEW,
            extracted_at=utc_now(),
        )
        await self._finish(invoice_id, changes, outcome="needs_review")
        return True

    async def _finish(self, invoice_id: str, changes: dict[str, Any], outcome: str) -> None:
        # Only leave processing; a record finalized or deleted meanwhile is not touched
        applied = await self.store.update(
            invoice_id, changes, expected_status=(InvoiceStatus.PROCESSING,)
        )
        if not applied:
            logger.warning(f"Invoice {invoice_id} left processing before results were written")
            return
        metrics.invoice_processing_total.labels(outcome=outcome).inc()
        logger.info(f"Invoice {invoice_id} is now {changes['status'].value}")

    def _extract_fields(
        self, storage_path: str | None, content_type: str | None
    ) -> tuple[InvoiceFields, list[EntityDiagnostic]]:
        """Fetch the original file, call the extraction service and normalize.

        Raises:
            ExtractionFailure: If the file cannot be fetched or extraction fails
            NormalizationFailure: If the entity list cannot be normalized
        """
        if not storage_path:
            raise ExtractionFailure("Missing storagePath on invoice document.")

        download = self.storage.download_bytes(storage_path)
        if not download.success or download.data is None:
            raise ExtractionFailure(f"Could not fetch invoice file: {download.error}")

        mime_type = content_type or download.content_type or DEFAULT_CONTENT_TYPE
        provider = self.extraction.provider_name

        start = time.time()
        result = self.extraction.process_document(download.data, mime_type)
        metrics.extraction_processing_duration_seconds.observe(time.time() - start)

        if not result.success:
            metrics.extraction_requests_total.labels(provider=provider, status="failed").inc()
            raise ExtractionFailure(result.error or "Extraction failed")
        metrics.extraction_requests_total.labels(provider=provider, status="success").inc()

        try:
            fields = normalize_invoice(result.entities)
        except Exception as e:
            raise NormalizationFailure(f"Could not normalize extraction output: {e}") from e

        return fields, summarize_entities(result.entities)

    # Helpers

    async def _delete_record(self, record: InvoiceRecord) -> None:
        """Delete the stored file (missing files are fine) and then the record."""
        if record.storage_path:
            result = await asyncio.to_thread(
                self.storage.delete_object, record.storage_path, ignore_not_found=True
            )
            if not result.success:
                raise InvoiceError(f"Could not delete invoice file: {result.error}")
        await self.store.delete(record.id)

    async def _load(self, invoice_id: str) -> InvoiceRecord:
        record = await self.store.get(invoice_id)
        if record is None:
            raise NotFound("Invoice not found.")
        return record

    @staticmethod
    def _validated_edits(record: InvoiceRecord, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidArgument(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        try:
            validated = merge_changes(record, changes)
        except ValidationError as e:
            raise InvalidArgument(f"Invalid field values: {e.error_count()} errors") from e
        return {name: getattr(validated, name) for name in changes}
