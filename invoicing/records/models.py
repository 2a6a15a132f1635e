"""Persisted invoice record model."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import ConfigDict, Field

from invoicing.extraction.entities import EntityDiagnostic
from invoicing.extraction.schema import InvoiceFields


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states.

    uploaded -> processing -> needs_review | error; needs_review and error may
    go back to processing on reprocess; finalized is terminal.
    """

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    NEEDS_REVIEW = "needs_review"
    ERROR = "error"
    FINALIZED = "finalized"


def utc_now() -> datetime:
    return datetime.now(UTC)


class InvoiceRecord(InvoiceFields):
    """Invoice document as stored in the record store.

    Extracted fields live at the top level next to the lifecycle fields so a
    partial update can name any of them.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = Field(..., description="Owner identity")
    status: InvoiceStatus = InvoiceStatus.UPLOADED
    storage_path: str | None = Field(None, description="Object key of the original file")
    original_file_name: str | None = None
    content_type: str | None = None
    skip_processing: bool = False
    error_message: str | None = None
    raw_entities: list[EntityDiagnostic] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    extracted_at: datetime | None = None
    finalized_at: datetime | None = None


# Field names a user may change when reviewing an invoice.
EDITABLE_FIELDS = frozenset(InvoiceFields.model_fields)
