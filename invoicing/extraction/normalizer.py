"""Normalization of an extracted entity list into canonical invoice fields."""

from invoicing.extraction.coercion import entity_currency, entity_date, entity_money
from invoicing.extraction.entities import RawEntity
from invoicing.extraction.line_items import parse_line_items
from invoicing.extraction.schema import InvoiceFields
from invoicing.extraction.selector import (
    CURRENCY_ALIASES,
    DUE_DATE_ALIASES,
    INVOICE_DATE_ALIASES,
    INVOICE_NUMBER_ALIASES,
    PURCHASE_ORDER_ALIASES,
    SUBTOTAL_ALIASES,
    SUPPLIER_ADDRESS_ALIASES,
    SUPPLIER_NAME_ALIASES,
    TAX_ALIASES,
    TOTAL_ALIASES,
    entity_text,
    pick_entity,
)


def normalize_invoice(entities: list[RawEntity]) -> InvoiceFields:
    """Resolve header fields and line items from extracted entities.

    The result depends only on the entity list, so running it twice on the
    same input yields identical fields. Missing or unusable entities leave
    the corresponding field as None.

    Args:
        entities: Decoded entities from the extraction service

    Returns:
        Best-effort canonical invoice fields
    """
    total_entity = pick_entity(entities, TOTAL_ALIASES)

    return InvoiceFields(
        supplier_name=entity_text(pick_entity(entities, SUPPLIER_NAME_ALIASES)),
        supplier_address=entity_text(pick_entity(entities, SUPPLIER_ADDRESS_ALIASES)),
        invoice_number=entity_text(pick_entity(entities, INVOICE_NUMBER_ALIASES)),
        purchase_order_number=entity_text(pick_entity(entities, PURCHASE_ORDER_ALIASES)),
        invoice_date=entity_date(pick_entity(entities, INVOICE_DATE_ALIASES)),
        due_date=entity_date(pick_entity(entities, DUE_DATE_ALIASES)),
        subtotal=entity_money(pick_entity(entities, SUBTOTAL_ALIASES)),
        tax=entity_money(pick_entity(entities, TAX_ALIASES)),
        total=entity_money(total_entity),
        currency=entity_currency(pick_entity(entities, CURRENCY_ALIASES), total_entity),
        line_items=parse_line_items(entities),
    )
