"""Coercion of selected entities into canonical scalar values.

All functions are total: anything that cannot be coerced yields None.
"""

import math
import re
from datetime import datetime

from invoicing.extraction.entities import RawEntity
from invoicing.extraction.selector import entity_text

NANOS_PER_UNIT = 1e9

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def to_number_loose(text: str | None) -> float | None:
    """Parse a number after discarding everything but digits, '.' and '-'.

    Currency symbols, thousands separators and whitespace are dropped, so
    ``"$1,234.56"`` parses as 1234.56 and ``"n/a"`` as None.
    """
    if text is None:
        return None
    cleaned = _NON_NUMERIC.sub("", str(text))
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def entity_money(entity: RawEntity | None) -> float | None:
    """Money amount of an entity as a number.

    Uses the structured money value when either part is set, otherwise
    parses the entity text loosely.
    """
    if entity is None:
        return None

    money = entity.normalized_value.money_value if entity.normalized_value else None
    if money is not None and (money.units is not None or money.nanos is not None):
        return (money.units or 0) + (money.nanos or 0) / NANOS_PER_UNIT

    return to_number_loose(entity_text(entity))


def entity_date(entity: RawEntity | None) -> datetime | None:
    """Local-midnight timestamp of a structured date value.

    Only a complete, valid year/month/day triple is accepted. Free-text dates
    are not parsed.
    """
    if entity is None or entity.normalized_value is None:
        return None

    date_value = entity.normalized_value.date_value
    if date_value is None or not (date_value.year and date_value.month and date_value.day):
        return None

    try:
        return datetime(date_value.year, date_value.month, date_value.day).astimezone()
    except (ValueError, OverflowError):
        return None


def entity_currency(
    currency_entity: RawEntity | None, amount_entity: RawEntity | None
) -> str | None:
    """Currency code from a currency entity, else from a money value."""
    text = entity_text(currency_entity)
    if text and text.strip():
        return text.strip().upper()

    if amount_entity is None or amount_entity.normalized_value is None:
        return None
    money = amount_entity.normalized_value.money_value
    if money is None or not money.currency_code:
        return None
    return money.currency_code.upper()
