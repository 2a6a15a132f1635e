"""Unit tests for lifecycle transition checks."""

import pytest

from invoicing.lifecycle import guard
from invoicing.lifecycle.errors import (
    FailedPrecondition,
    InvalidArgument,
    PermissionDenied,
    Unauthenticated,
)
from invoicing.records.models import InvoiceRecord, InvoiceStatus


def make_record(status: InvoiceStatus, storage_path: str | None = "invoices/u/1_a.pdf") -> InvoiceRecord:
    return InvoiceRecord(user_id="user-1", status=status, storage_path=storage_path)


class TestCanStartProcessing:
    """Test the created-event trigger condition."""

    def test_uploaded(self) -> None:
        assert guard.can_start_processing(InvoiceStatus.UPLOADED) is True

    def test_uploaded_as_plain_string(self) -> None:
        """Should accept the serialized status from an event snapshot."""
        assert guard.can_start_processing("uploaded") is True

    def test_skip_processing_flag(self) -> None:
        assert guard.can_start_processing(InvoiceStatus.UPLOADED, skip_processing=True) is False

    @pytest.mark.parametrize(
        "status",
        [
            InvoiceStatus.PROCESSING,
            InvoiceStatus.NEEDS_REVIEW,
            InvoiceStatus.ERROR,
            InvoiceStatus.FINALIZED,
            None,
        ],
    )
    def test_other_statuses(self, status: InvoiceStatus | None) -> None:
        assert guard.can_start_processing(status) is False


class TestCallerChecks:
    """Test identity and argument checks."""

    @pytest.mark.parametrize("caller", [None, "", "   "])
    def test_require_caller(self, caller: str | None) -> None:
        with pytest.raises(Unauthenticated, match="Sign in required."):
            guard.require_caller(caller)

    def test_require_caller_returns_identity(self) -> None:
        assert guard.require_caller(" user-1 ") == "user-1"

    @pytest.mark.parametrize("invoice_id", [None, "", "  "])
    def test_require_invoice_id(self, invoice_id: str | None) -> None:
        with pytest.raises(InvalidArgument, match="Missing invoiceId."):
            guard.require_invoice_id(invoice_id)

    def test_require_invoice_ids_dedupes_in_order(self) -> None:
        assert guard.require_invoice_ids([" b", "a", "b"], limit=5) == ["b", "a"]

    @pytest.mark.parametrize(
        ("invoice_ids", "message"),
        [
            (None, "must be a list"),
            ("inv-1", "must be a list"),
            ([], "Missing invoiceIds"),
            (["a", "b", "c"], "At most 2"),
        ],
    )
    def test_require_invoice_ids_rejects(self, invoice_ids: object, message: str) -> None:
        with pytest.raises(InvalidArgument, match=message):
            guard.require_invoice_ids(invoice_ids, limit=2)

    def test_require_owner(self) -> None:
        record = make_record(InvoiceStatus.NEEDS_REVIEW)

        guard.require_owner(record, "user-1")
        with pytest.raises(PermissionDenied, match="Not allowed."):
            guard.require_owner(record, "user-2")


class TestTransitionChecks:
    """Test reprocess, finalize, edit and delete preconditions."""

    @pytest.mark.parametrize(
        "status",
        [
            InvoiceStatus.UPLOADED,
            InvoiceStatus.PROCESSING,
            InvoiceStatus.NEEDS_REVIEW,
            InvoiceStatus.ERROR,
        ],
    )
    def test_reprocess_allowed(self, status: InvoiceStatus) -> None:
        guard.check_reprocess(make_record(status), "user-1")

    def test_reprocess_finalized(self) -> None:
        with pytest.raises(FailedPrecondition, match="Finalized invoices cannot be reprocessed."):
            guard.check_reprocess(make_record(InvoiceStatus.FINALIZED), "user-1")

    def test_reprocess_without_file(self) -> None:
        with pytest.raises(FailedPrecondition, match="No storage file available"):
            guard.check_reprocess(make_record(InvoiceStatus.ERROR, storage_path=None), "user-1")

    def test_ownership_is_checked_first(self) -> None:
        """Should deny a non-owner even when the state check would also fail."""
        with pytest.raises(PermissionDenied):
            guard.check_reprocess(make_record(InvoiceStatus.FINALIZED), "user-2")

    def test_finalize_twice(self) -> None:
        guard.check_finalize(make_record(InvoiceStatus.NEEDS_REVIEW), "user-1")
        with pytest.raises(FailedPrecondition, match="already finalized"):
            guard.check_finalize(make_record(InvoiceStatus.FINALIZED), "user-1")

    def test_edit_finalized(self) -> None:
        with pytest.raises(FailedPrecondition, match="cannot be edited"):
            guard.check_edit(make_record(InvoiceStatus.FINALIZED), "user-1")

    def test_delete_finalized_by_owner(self) -> None:
        guard.check_delete(make_record(InvoiceStatus.FINALIZED), "user-1")

    def test_delete_by_other_user(self) -> None:
        with pytest.raises(PermissionDenied):
            guard.check_delete(make_record(InvoiceStatus.NEEDS_REVIEW), "user-2")
