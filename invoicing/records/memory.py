"""
In-memory invoice record store (for demo and tests).
In production, use the Redis store so the API and worker share records.
"""

from collections.abc import Collection
from typing import Any

from invoicing.records.base import InvoiceStore, merge_changes
from invoicing.records.models import InvoiceRecord, InvoiceStatus


class InMemoryInvoiceStore(InvoiceStore):
    def __init__(self) -> None:
        self._records: dict[str, InvoiceRecord] = {}

    async def create(self, record: InvoiceRecord) -> InvoiceRecord:
        if record.id in self._records:
            raise ValueError(f"Invoice already exists: {record.id}")
        self._records[record.id] = record
        return record

    async def get(self, invoice_id: str) -> InvoiceRecord | None:
        return self._records.get(invoice_id)

    async def list_for_owner(self, user_id: str) -> list[InvoiceRecord]:
        owned = [r for r in self._records.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def update(
        self,
        invoice_id: str,
        changes: dict[str, Any],
        expected_status: Collection[InvoiceStatus] | None = None,
    ) -> bool:
        # No await between the check and the write, so this is atomic on the event loop
        record = self._records.get(invoice_id)
        if record is None:
            return False
        if expected_status is not None and record.status not in expected_status:
            return False

        self._records[invoice_id] = merge_changes(record, changes)
        return True

    async def delete(self, invoice_id: str) -> bool:
        return self._records.pop(invoice_id, None) is not None
