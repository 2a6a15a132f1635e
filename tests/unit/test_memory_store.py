"""Unit tests for the in-memory invoice store."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from invoicing.records.memory import InMemoryInvoiceStore
from invoicing.records.models import InvoiceRecord, InvoiceStatus


@pytest.fixture
def store() -> InMemoryInvoiceStore:
    return InMemoryInvoiceStore()


@pytest.fixture
def record() -> InvoiceRecord:
    return InvoiceRecord(user_id="user-1", storage_path="invoices/user-1/1_a.pdf")


class TestInMemoryInvoiceStore:
    """Test InMemoryInvoiceStore."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: InMemoryInvoiceStore, record: InvoiceRecord) -> None:
        await store.create(record)

        stored = await store.get(record.id)

        assert stored == record
        assert stored is not None
        assert stored.status is InvoiceStatus.UPLOADED

    @pytest.mark.asyncio
    async def test_create_duplicate_raises(
        self, store: InMemoryInvoiceStore, record: InvoiceRecord
    ) -> None:
        await store.create(record)

        with pytest.raises(ValueError, match="already exists"):
            await store.create(record)

    @pytest.mark.asyncio
    async def test_get_missing(self, store: InMemoryInvoiceStore) -> None:
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_list_for_owner_newest_first(self, store: InMemoryInvoiceStore) -> None:
        older = InvoiceRecord(user_id="user-1")
        newer = InvoiceRecord(user_id="user-1", created_at=older.created_at + timedelta(seconds=1))
        other = InvoiceRecord(user_id="user-2")
        for r in (older, newer, other):
            await store.create(r)

        listed = await store.list_for_owner("user-1")

        assert [r.id for r in listed] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_update_merges_named_fields(
        self, store: InMemoryInvoiceStore, record: InvoiceRecord
    ) -> None:
        """Should change only the named fields and stamp updated_at."""
        await store.create(record)

        applied = await store.update(record.id, {"supplier_name": "Contoso", "total": 10.5})

        stored = await store.get(record.id)
        assert applied is True
        assert stored is not None
        assert stored.supplier_name == "Contoso"
        assert stored.total == 10.5
        assert stored.storage_path == record.storage_path
        assert stored.updated_at >= record.updated_at

    @pytest.mark.asyncio
    async def test_update_with_expected_status(
        self, store: InMemoryInvoiceStore, record: InvoiceRecord
    ) -> None:
        """Should only write when the stored status is one of the expected ones."""
        await store.create(record)

        skipped = await store.update(
            record.id,
            {"status": InvoiceStatus.FINALIZED},
            expected_status=(InvoiceStatus.NEEDS_REVIEW,),
        )
        applied = await store.update(
            record.id,
            {"status": InvoiceStatus.PROCESSING},
            expected_status=(InvoiceStatus.UPLOADED,),
        )

        stored = await store.get(record.id)
        assert skipped is False
        assert applied is True
        assert stored is not None
        assert stored.status is InvoiceStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_update_missing(self, store: InMemoryInvoiceStore) -> None:
        assert await store.update("missing", {"total": 1.0}) is False

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(
        self, store: InMemoryInvoiceStore, record: InvoiceRecord
    ) -> None:
        await store.create(record)

        with pytest.raises(ValidationError):
            await store.update(record.id, {"not_a_field": 1})

    @pytest.mark.asyncio
    async def test_delete(self, store: InMemoryInvoiceStore, record: InvoiceRecord) -> None:
        await store.create(record)

        assert await store.delete(record.id) is True
        assert await store.get(record.id) is None
        assert await store.delete(record.id) is False
