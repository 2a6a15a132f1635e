"""Unit tests for alias-based entity selection."""

from invoicing.extraction.entities import RawEntity
from invoicing.extraction.selector import (
    SUBTOTAL_ALIASES,
    SUPPLIER_NAME_ALIASES,
    TOTAL_ALIASES,
    entity_text,
    pick_entity,
)


def entity(type_: str, mention: str | None = None, normalized: str | None = None) -> RawEntity:
    value = {"text": normalized} if normalized is not None else None
    return RawEntity.model_validate(
        {"type": type_, "mentionText": mention, "normalizedValue": value}
    )


class TestPickEntity:
    """Test pick_entity."""

    def test_first_match_in_input_order(self) -> None:
        """Should return the earliest entity in the list, not the earliest alias."""
        entities = [
            entity("vendor", "Acme"),
            entity("supplier_name", "Acme Pty Ltd"),
        ]

        picked = pick_entity(entities, SUPPLIER_NAME_ALIASES)

        assert picked is entities[0]

    def test_no_match(self) -> None:
        """Should return None when no entity carries the field."""
        assert pick_entity([entity("invoice_id", "INV-1")], TOTAL_ALIASES) is None

    def test_empty_list(self) -> None:
        """Should return None for an empty entity list."""
        assert pick_entity([], TOTAL_ALIASES) is None

    def test_net_amount_is_a_subtotal(self) -> None:
        """Should accept Document AI's net_amount as the subtotal."""
        net = entity("net_amount", "350.00")

        assert pick_entity([net], SUBTOTAL_ALIASES) is net

    def test_case_insensitive_types(self) -> None:
        """Should match type tags regardless of case."""
        total = entity("Total_Amount", "10.00")

        assert pick_entity([total], TOTAL_ALIASES) is total


class TestEntityText:
    """Test entity_text."""

    def test_prefers_normalized_text(self) -> None:
        assert entity_text(entity("invoice_date", "30 Sep", "2025-09-30")) == "2025-09-30"

    def test_falls_back_to_mention_text(self) -> None:
        assert entity_text(entity("invoice_id", "INV-1")) == "INV-1"

    def test_none(self) -> None:
        assert entity_text(None) is None
        assert entity_text(entity("invoice_id")) is None
