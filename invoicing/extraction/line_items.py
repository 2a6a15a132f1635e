"""Line item parsing.

Structured child properties are preferred. When a line item carries no
properties, or none of them resolve, the mention text is parsed
heuristically and only fills the fields that are still missing.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

from invoicing.extraction.coercion import entity_money, to_number_loose
from invoicing.extraction.entities import EntityKind, RawEntity
from invoicing.extraction.schema import LineItem
from invoicing.extraction.selector import (
    AMOUNT_ALIASES,
    DESCRIPTION_ALIASES,
    QUANTITY_ALIASES,
    UNIT_PRICE_ALIASES,
    entity_text,
    pick_entity,
)

# 1-3 digits, optional ",ddd" groups, exactly two decimals: 20.00, 1,234.56
MONEY_PATTERN = re.compile(r"\b\d{1,3}(?:,\d{3})*\.\d{2}\b", re.ASCII)
INTEGER_PATTERN = re.compile(r"\b\d+\b", re.ASCII)
_WHITESPACE = re.compile(r"\s+")

_CENTS = Decimal("0.01")


def round_money(value: float) -> float:
    """Round half up to two decimal places."""
    return float(Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def backfill_line_item(item: LineItem) -> LineItem:
    """Derive a missing amount or unit price from the other two values.

    Resolved values are never overwritten and a zero quantity is never
    divided by.
    """
    amount = item.amount
    unit_price = item.unit_price

    if amount is None and item.quantity is not None and unit_price is not None:
        amount = round_money(item.quantity * unit_price)
    if unit_price is None and amount is not None and item.quantity:
        unit_price = round_money(amount / item.quantity)

    return item.model_copy(update={"amount": amount, "unit_price": unit_price})


def _strip_quantity(text: str, match: re.Match[str]) -> str:
    """Remove the quantity token when it stands alone at either end of text."""
    start, end = match.span()
    standalone = (start == 0 or text[start - 1].isspace()) and (
        end == len(text) or text[end].isspace()
    )
    if not standalone:
        return text
    if not text[end:].strip():
        return text[:start]
    if not text[:start].strip():
        return text[end:]
    return text


def parse_mention_text(text: str | None) -> LineItem:
    """Heuristically parse a line item from its raw mention text.

    With two or more money-shaped values the last two are read as unit price
    and extended amount; a single one is the amount. The quantity is the last
    bare integer before the first money value and the description is the text
    before it.

    Example:
        >>> parse_mention_text("2 Widget A 10.00 20.00")
        LineItem(description='Widget A', quantity=2.0, unit_price=10.0, amount=20.0)
    """
    collapsed = _WHITESPACE.sub(" ", text or "").strip()
    if not collapsed:
        return LineItem()

    money_values: list[float] = []
    money_starts: list[int] = []
    for match in MONEY_PATTERN.finditer(collapsed):
        value = to_number_loose(match.group(0))
        if value is None:
            continue
        money_values.append(value)
        money_starts.append(match.start())

    unit_price = None
    amount = None
    if len(money_values) >= 2:
        unit_price, amount = money_values[-2], money_values[-1]
    elif len(money_values) == 1:
        amount = money_values[0]

    first_money = money_starts[0] if money_starts else len(collapsed)
    before_money = collapsed[:first_money].strip()

    quantity = None
    description = before_money
    integers = list(INTEGER_PATTERN.finditer(before_money))
    if integers:
        last = integers[-1]
        quantity = float(int(last.group(0)))
        description = _strip_quantity(before_money, last)

    description = description.strip() or collapsed

    return backfill_line_item(
        LineItem(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
        )
    )


def parse_line_item(entity: RawEntity) -> LineItem:
    """Build one line item from a ``line_item`` entity."""
    props = entity.properties

    quantity_text = entity_text(pick_entity(props, QUANTITY_ALIASES))
    item = LineItem(
        description=entity_text(pick_entity(props, DESCRIPTION_ALIASES)),
        quantity=to_number_loose(quantity_text) if quantity_text else None,
        unit_price=entity_money(pick_entity(props, UNIT_PRICE_ALIASES)),
        amount=entity_money(pick_entity(props, AMOUNT_ALIASES)),
    )

    mention = entity.mention_text or ""
    needs_fallback = not props or (item.is_empty() and bool(mention))
    if not (needs_fallback and mention):
        return item

    fallback = parse_mention_text(mention)
    return LineItem(
        description=item.description if item.description is not None else fallback.description,
        quantity=item.quantity if item.quantity is not None else fallback.quantity,
        unit_price=item.unit_price if item.unit_price is not None else fallback.unit_price,
        amount=item.amount if item.amount is not None else fallback.amount,
    )


def parse_line_items(entities: list[RawEntity]) -> list[LineItem]:
    """One line item per top-level ``line_item`` entity, in input order."""
    return [parse_line_item(e) for e in entities if e.kind is EntityKind.LINE_ITEM]
