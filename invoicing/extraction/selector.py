"""Entity selection by ordered alias groups.

Each canonical field owns a tuple of entity kinds that may carry it. The
tuple order documents precedence for reviewers; at lookup time the first
entity in input order whose kind is in the group wins.
"""

from collections.abc import Iterable, Sequence

from invoicing.extraction.entities import EntityKind, RawEntity

# Header fields
SUPPLIER_NAME_ALIASES = (
    EntityKind.SUPPLIER_NAME,
    EntityKind.SUPPLIER,
    EntityKind.VENDOR_NAME,
    EntityKind.VENDOR,
)
SUPPLIER_ADDRESS_ALIASES = (
    EntityKind.SUPPLIER_ADDRESS,
    EntityKind.VENDOR_ADDRESS,
    EntityKind.ADDRESS,
)
INVOICE_NUMBER_ALIASES = (
    EntityKind.INVOICE_ID,
    EntityKind.INVOICE_NUMBER,
    EntityKind.INVOICE_NO,
)
PURCHASE_ORDER_ALIASES = (
    EntityKind.PURCHASE_ORDER,
    EntityKind.PURCHASE_ORDER_NUMBER,
    EntityKind.PO_NUMBER,
    EntityKind.PO,
)
INVOICE_DATE_ALIASES = (EntityKind.INVOICE_DATE, EntityKind.DATE)
DUE_DATE_ALIASES = (EntityKind.DUE_DATE,)
SUBTOTAL_ALIASES = (
    EntityKind.SUBTOTAL_AMOUNT,
    EntityKind.SUBTOTAL,
    EntityKind.NET_AMOUNT,
)
TAX_ALIASES = (
    EntityKind.TOTAL_TAX_AMOUNT,
    EntityKind.TAX_AMOUNT,
    EntityKind.TAX,
)
TOTAL_ALIASES = (
    EntityKind.TOTAL_AMOUNT,
    EntityKind.INVOICE_TOTAL,
    EntityKind.AMOUNT_DUE,
    EntityKind.TOTAL,
)
CURRENCY_ALIASES = (EntityKind.CURRENCY,)

# Line item properties
DESCRIPTION_ALIASES = (
    EntityKind.DESCRIPTION,
    EntityKind.ITEM_DESCRIPTION,
    EntityKind.PRODUCT_DESCRIPTION,
    EntityKind.NAME,
)
QUANTITY_ALIASES = (EntityKind.QUANTITY, EntityKind.QTY)
UNIT_PRICE_ALIASES = (
    EntityKind.UNIT_PRICE,
    EntityKind.PRICE,
    EntityKind.UNIT_COST,
)
AMOUNT_ALIASES = (
    EntityKind.AMOUNT,
    EntityKind.LINE_ITEM_AMOUNT,
    EntityKind.TOTAL_PRICE,
)


def pick_entity(
    entities: Iterable[RawEntity], aliases: Sequence[EntityKind]
) -> RawEntity | None:
    """Return the first entity whose kind is one of ``aliases``.

    Args:
        entities: Header entities or a line item's child properties
        aliases: Acceptable kinds for the field being resolved

    Returns:
        First matching entity in input order, or None
    """
    accepted = frozenset(aliases)
    for entity in entities:
        if entity.kind in accepted:
            return entity
    return None


def entity_text(entity: RawEntity | None) -> str | None:
    """Prefer the normalized text, fall back to the mention text."""
    if entity is None:
        return None
    if entity.normalized_value is not None and entity.normalized_value.text is not None:
        return entity.normalized_value.text
    return entity.mention_text
