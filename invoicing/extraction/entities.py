"""Entity models for document-understanding service output.

The service returns a loosely typed list of entities: an open-ended ``type``
string, an optional normalized value and, for line items, nested child
properties. Payloads are decoded once here into pydantic models so the
normalization code works against a closed set of entity kinds.

Entity shape follows the Document AI ``Document.Entity`` resource:
https://cloud.google.com/document-ai/docs/reference/rest/v1/Document#entity
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from invoicing.lifecycle.errors import NormalizationFailure

logger = logging.getLogger(__name__)

DIAGNOSTICS_LIMIT = 200


class EntityKind(str, Enum):
    """Entity type names recognized by the normalizer.

    Anything else decodes to UNKNOWN and is ignored by field selection.
    """

    # Supplier
    SUPPLIER_NAME = "supplier_name"
    SUPPLIER = "supplier"
    VENDOR_NAME = "vendor_name"
    VENDOR = "vendor"
    SUPPLIER_ADDRESS = "supplier_address"
    VENDOR_ADDRESS = "vendor_address"
    ADDRESS = "address"

    # Identifiers
    INVOICE_ID = "invoice_id"
    INVOICE_NUMBER = "invoice_number"
    INVOICE_NO = "invoice_no"
    PURCHASE_ORDER = "purchase_order"
    PURCHASE_ORDER_NUMBER = "purchase_order_number"
    PO_NUMBER = "po_number"
    PO = "po"

    # Dates
    INVOICE_DATE = "invoice_date"
    DATE = "date"
    DUE_DATE = "due_date"

    # Totals
    SUBTOTAL_AMOUNT = "subtotal_amount"
    SUBTOTAL = "subtotal"
    NET_AMOUNT = "net_amount"
    TOTAL_TAX_AMOUNT = "total_tax_amount"
    TAX_AMOUNT = "tax_amount"
    TAX = "tax"
    TOTAL_AMOUNT = "total_amount"
    INVOICE_TOTAL = "invoice_total"
    AMOUNT_DUE = "amount_due"
    TOTAL = "total"
    CURRENCY = "currency"

    # Line items and their properties
    LINE_ITEM = "line_item"
    DESCRIPTION = "description"
    ITEM_DESCRIPTION = "item_description"
    PRODUCT_DESCRIPTION = "product_description"
    NAME = "name"
    QUANTITY = "quantity"
    QTY = "qty"
    UNIT_PRICE = "unit_price"
    PRICE = "price"
    UNIT_COST = "unit_cost"
    AMOUNT = "amount"
    LINE_ITEM_AMOUNT = "line_item_amount"
    TOTAL_PRICE = "total_price"

    UNKNOWN = "unknown"

    @classmethod
    def from_type(cls, raw_type: str | None) -> "EntityKind":
        """Classify a raw entity type string.

        Matching is case-insensitive and ignores a parent prefix, so
        ``Line_Item/Quantity`` classifies as QUANTITY.
        """
        name = (raw_type or "").strip().lower().rsplit("/", 1)[-1]
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


class MoneyValue(BaseModel):
    """Fixed-point money: whole ``units`` plus ``nanos`` billionths of a unit."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    currency_code: str | None = Field(None, alias="currencyCode")
    units: int | None = None
    nanos: int | None = None


class DateValue(BaseModel):
    """Calendar date with possibly missing parts."""

    model_config = ConfigDict(extra="ignore")

    year: int | None = None
    month: int | None = None
    day: int | None = None


class NormalizedValue(BaseModel):
    """Typed value supplied by the extraction service, when available."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str | None = None
    money_value: MoneyValue | None = Field(None, alias="moneyValue")
    date_value: DateValue | None = Field(None, alias="dateValue")


class RawEntity(BaseModel):
    """One extracted entity, read-only input to normalization.

    Attributes:
        type: Entity type tag as reported by the service
        mention_text: Literal source-document substring
        normalized_value: Structured value, when the service produced one
        properties: Child entities (only used by line items)
        confidence: Service confidence, kept for diagnostics only
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    type: str | None = None
    mention_text: str | None = Field(None, alias="mentionText")
    normalized_value: NormalizedValue | None = Field(None, alias="normalizedValue")
    properties: list["RawEntity"] = Field(default_factory=list)
    confidence: float | None = None

    @field_validator("properties", mode="before")
    @classmethod
    def _decode_properties(cls, value: Any) -> list["RawEntity"]:
        """Decode children one by one; a bad child is dropped, not its parent."""
        if not isinstance(value, list):
            return []
        children: list[RawEntity] = []
        for index, item in enumerate(value):
            try:
                children.append(RawEntity.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed property at index {index}: {e.error_count()} errors")
        return children

    @field_validator("normalized_value", mode="before")
    @classmethod
    def _decode_normalized_value(cls, value: Any) -> NormalizedValue | None:
        """An unreadable normalized value leaves the mention text to work with."""
        if value is None:
            return None
        try:
            return NormalizedValue.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed normalizedValue: {e.error_count()} errors")
            return None

    @field_validator("confidence", mode="before")
    @classmethod
    def _decode_confidence(cls, value: Any) -> float | None:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @property
    def kind(self) -> EntityKind:
        return EntityKind.from_type(self.type)


class EntityDiagnostic(BaseModel):
    """Compact view of an entity stored on the invoice record for debugging."""

    type: str | None = None
    mention_text: str | None = None
    normalized_text: str | None = None
    confidence: float | None = None


def decode_entities(payload: Any) -> list[RawEntity]:
    """Decode a raw entity list from the extraction service.

    Entities that fail validation are dropped with a warning (bad sub-fields
    only drop the sub-field, see ``RawEntity``); a payload that is
    not a list at all means the response is structurally unexpected.

    Args:
        payload: ``document.entities`` from the service response (may be None)

    Returns:
        Decoded entities in input order

    Raises:
        NormalizationFailure: If the payload is not a list
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise NormalizationFailure(
            f"Expected a list of entities, got {type(payload).__name__}"
        )

    entities: list[RawEntity] = []
    for index, item in enumerate(payload):
        try:
            entities.append(RawEntity.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed entity at index {index}: {e.error_count()} errors")
    return entities


def summarize_entities(
    entities: list[RawEntity], limit: int = DIAGNOSTICS_LIMIT
) -> list[EntityDiagnostic]:
    """Build the diagnostics rows persisted next to the normalized fields."""
    return [
        EntityDiagnostic(
            type=entity.type or None,
            mention_text=entity.mention_text,
            normalized_text=entity.normalized_value.text if entity.normalized_value else None,
            confidence=entity.confidence,
        )
        for entity in entities[:limit]
    ]


RawEntity.model_rebuild()
