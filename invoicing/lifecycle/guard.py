"""Lifecycle guard: which invoice transitions are legal.

Pure functions over the stored record and the caller identity. Checks raise
the matching error kind; none of them perform I/O.
"""

from invoicing.lifecycle.errors import (
    FailedPrecondition,
    InvalidArgument,
    PermissionDenied,
    Unauthenticated,
)
from invoicing.records.models import InvoiceRecord, InvoiceStatus


def can_start_processing(status: InvoiceStatus | str | None, skip_processing: bool = False) -> bool:
    """Whether a document-created event should start processing.

    Only a record still in ``uploaded`` qualifies; anything else is a
    duplicate or late delivery and is ignored.
    """
    return status == InvoiceStatus.UPLOADED and not skip_processing


def require_caller(caller_id: str | None) -> str:
    if not caller_id or not caller_id.strip():
        raise Unauthenticated("Sign in required.")
    return caller_id.strip()


def require_invoice_id(invoice_id: object) -> str:
    value = str(invoice_id or "").strip()
    if not value:
        raise InvalidArgument("Missing invoiceId.")
    return value


def require_invoice_ids(invoice_ids: object, limit: int) -> list[str]:
    """Non-empty, de-duplicated list of ids in request order."""
    if not isinstance(invoice_ids, list | tuple):
        raise InvalidArgument("invoiceIds must be a list.")
    ids = list(dict.fromkeys(require_invoice_id(value) for value in invoice_ids))
    if not ids:
        raise InvalidArgument("Missing invoiceIds.")
    if len(ids) > limit:
        raise InvalidArgument(f"At most {limit} invoices can be deleted at once.")
    return ids


def require_owner(record: InvoiceRecord, caller_id: str) -> None:
    if record.user_id != caller_id:
        raise PermissionDenied("Not allowed.")


def check_reprocess(record: InvoiceRecord, caller_id: str) -> None:
    """Reprocess needs the owner, a non-finalized record and a stored file."""
    require_owner(record, caller_id)
    if record.status == InvoiceStatus.FINALIZED:
        raise FailedPrecondition("Finalized invoices cannot be reprocessed.")
    if not record.storage_path:
        raise FailedPrecondition("No storage file available for reprocessing.")


def check_finalize(record: InvoiceRecord, caller_id: str) -> None:
    require_owner(record, caller_id)
    if record.status == InvoiceStatus.FINALIZED:
        raise FailedPrecondition("Invoice is already finalized.")


def check_edit(record: InvoiceRecord, caller_id: str) -> None:
    require_owner(record, caller_id)
    if record.status == InvoiceStatus.FINALIZED:
        raise FailedPrecondition("Finalized invoices cannot be edited.")


def check_delete(record: InvoiceRecord, caller_id: str) -> None:
    require_owner(record, caller_id)
