"""Dashboard listing: filtering, sorting and status counts over an owner's invoices.

Filtering runs in process over the owner's records, after they are loaded
from the store.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from invoicing.records.models import InvoiceRecord, InvoiceStatus


class StatusFilter(str, Enum):
    """Status filter values: every lifecycle status plus ``all`` and ``active``."""

    ALL = "all"
    ACTIVE = "active"  # anything not finalized
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    NEEDS_REVIEW = "needs_review"
    ERROR = "error"
    FINALIZED = "finalized"


class InvoiceSort(str, Enum):
    CREATED_DESC = "created_desc"
    CREATED_ASC = "created_asc"
    TOTAL_DESC = "total_desc"
    TOTAL_ASC = "total_asc"
    SUPPLIER_ASC = "supplier_asc"


class InvoiceQuery(BaseModel):
    """Listing options.

    Attributes:
        status: Status to keep, ``all`` or ``active``
        search: Case-insensitive substring of supplier, invoice number or file name
        min_total: Keep invoices whose total is at least this amount
        max_total: Keep invoices whose total is at most this amount
        sort: Sort order, newest first by default
    """

    status: StatusFilter = StatusFilter.ALL
    search: str | None = None
    min_total: float | None = None
    max_total: float | None = None
    sort: InvoiceSort = InvoiceSort.CREATED_DESC

    @model_validator(mode="after")
    def _check_total_range(self) -> "InvoiceQuery":
        if (
            self.min_total is not None
            and self.max_total is not None
            and self.min_total > self.max_total
        ):
            raise ValueError("min_total must not exceed max_total")
        return self


class InvoiceListing(BaseModel):
    """One page of the dashboard: matching invoices and counts over all of them."""

    invoices: list[InvoiceRecord] = Field(default_factory=list)
    active_count: int = 0
    finalized_count: int = 0


def _matches(record: InvoiceRecord, query: InvoiceQuery, needle: str) -> bool:
    if query.status == StatusFilter.ACTIVE:
        if record.status == InvoiceStatus.FINALIZED:
            return False
    elif query.status != StatusFilter.ALL and record.status.value != query.status.value:
        return False

    if needle:
        haystack = " ".join(
            value
            for value in (record.supplier_name, record.invoice_number, record.original_file_name)
            if value
        )
        if needle not in haystack.casefold():
            return False

    # Range filters skip invoices without a total
    if query.min_total is not None and (record.total is None or record.total < query.min_total):
        return False
    if query.max_total is not None and (record.total is None or record.total > query.max_total):
        return False
    return True


def _sort(records: list[InvoiceRecord], sort: InvoiceSort) -> list[InvoiceRecord]:
    if sort == InvoiceSort.CREATED_ASC:
        return sorted(records, key=lambda r: r.created_at)
    if sort == InvoiceSort.TOTAL_DESC:
        return sorted(records, key=lambda r: r.total or 0.0, reverse=True)
    if sort == InvoiceSort.TOTAL_ASC:
        return sorted(records, key=lambda r: r.total or 0.0)
    if sort == InvoiceSort.SUPPLIER_ASC:
        return sorted(records, key=lambda r: (r.supplier_name or "").casefold())
    return sorted(records, key=lambda r: r.created_at, reverse=True)


def build_listing(records: list[InvoiceRecord], query: InvoiceQuery | None = None) -> InvoiceListing:
    """Filter and sort ``records``; counts cover all of them, not just the matches."""
    query = query or InvoiceQuery()
    needle = (query.search or "").strip().casefold()

    matching = [r for r in records if _matches(r, query, needle)]
    finalized = sum(1 for r in records if r.status == InvoiceStatus.FINALIZED)
    return InvoiceListing(
        invoices=_sort(matching, query.sort),
        active_count=len(records) - finalized,
        finalized_count=finalized,
    )
