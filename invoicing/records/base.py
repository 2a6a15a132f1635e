"""
Abstract base class for invoice record stores.

Defines the interface that all record stores must implement,
enabling dependency injection and easy swapping of storage backends.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection
from typing import Any

from invoicing.records.models import InvoiceRecord, InvoiceStatus, utc_now


class InvoiceStore(ABC):
    """
    Abstract base class for invoice persistence.

    Implementations can use:
    - In-memory storage (for testing/demo)
    - Redis (shared between the API and the worker)
    """

    @abstractmethod
    async def create(self, record: InvoiceRecord) -> InvoiceRecord:
        """
        Persist a new invoice record.

        Args:
            record: Record to store (its id must not exist yet)

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    async def get(self, invoice_id: str) -> InvoiceRecord | None:
        """
        Get an invoice record by ID.

        Returns:
            The record, or None if not found
        """
        pass

    @abstractmethod
    async def list_for_owner(self, user_id: str) -> list[InvoiceRecord]:
        """
        List an owner's invoices, newest first.
        """
        pass

    @abstractmethod
    async def update(
        self,
        invoice_id: str,
        changes: dict[str, Any],
        expected_status: Collection[InvoiceStatus] | None = None,
    ) -> bool:
        """
        Merge named fields into a record.

        Fields not named in ``changes`` are left as stored and ``updated_at``
        is always stamped. When ``expected_status`` is given the write only
        happens if the stored status is one of those values, checked
        atomically with the write.

        Args:
            invoice_id: Record to update
            changes: Field name to new value
            expected_status: Allowed stored statuses for the write to apply

        Returns:
            True if the record was updated, False if it is missing or its
            status did not match
        """
        pass

    @abstractmethod
    async def delete(self, invoice_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted
        """
        pass


def merge_changes(record: InvoiceRecord, changes: dict[str, Any]) -> InvoiceRecord:
    """Apply a partial update and re-validate the result."""
    merged = record.model_dump()
    merged.update(changes)
    merged["updated_at"] = utc_now()
    return InvoiceRecord.model_validate(merged)
