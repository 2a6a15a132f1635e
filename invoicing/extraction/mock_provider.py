"""Mock extraction provider for local development.

Returns a fixed Document AI style entity list so the full upload, processing
and review flow can be exercised without cloud credentials.
"""

import logging

from invoicing.extraction.base import ExtractionProvider, ExtractionResult
from invoicing.extraction.entities import decode_entities

logger = logging.getLogger(__name__)

MOCK_ENTITIES = [
    {"type": "supplier_name", "mentionText": "Contoso Pty Ltd", "confidence": 0.98},
    {
        "type": "supplier_address",
        "mentionText": "1 Collins St\nMelbourne VIC 3000",
        "confidence": 0.91,
    },
    {"type": "invoice_id", "mentionText": "INV-10023", "confidence": 0.97},
    {"type": "purchase_order", "mentionText": "PO-7781", "confidence": 0.88},
    {
        "type": "invoice_date",
        "mentionText": "30 Sep 2025",
        "normalizedValue": {"text": "2025-09-30", "dateValue": {"year": 2025, "month": 9, "day": 30}},
        "confidence": 0.95,
    },
    {
        "type": "due_date",
        "mentionText": "15 Oct 2025",
        "normalizedValue": {"text": "2025-10-15", "dateValue": {"year": 2025, "month": 10, "day": 15}},
        "confidence": 0.93,
    },
    {
        "type": "net_amount",
        "mentionText": "350.00",
        "normalizedValue": {"moneyValue": {"currencyCode": "AUD", "units": "350"}},
        "confidence": 0.9,
    },
    {
        "type": "total_tax_amount",
        "mentionText": "35.00",
        "normalizedValue": {"moneyValue": {"currencyCode": "AUD", "units": "35"}},
        "confidence": 0.9,
    },
    {
        "type": "total_amount",
        "mentionText": "$385.00",
        "normalizedValue": {"moneyValue": {"currencyCode": "AUD", "units": "385"}},
        "confidence": 0.96,
    },
    {
        "type": "line_item",
        "mentionText": "Consulting hours 5 50.00 250.00",
        "confidence": 0.85,
        "properties": [
            {"type": "line_item/description", "mentionText": "Consulting hours"},
            {"type": "line_item/quantity", "mentionText": "5"},
            {
                "type": "line_item/unit_price",
                "mentionText": "50.00",
                "normalizedValue": {"moneyValue": {"units": "50"}},
            },
            {
                "type": "line_item/amount",
                "mentionText": "250.00",
                "normalizedValue": {"moneyValue": {"units": "250"}},
            },
        ],
    },
    {"type": "line_item", "mentionText": "2 Travel 50.00 100.00", "confidence": 0.72},
]


class MockExtractionProvider(ExtractionProvider):
    """Provider that ignores the document and returns canned entities."""

    @property
    def provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return True

    def process_document(self, content: bytes, mime_type: str) -> ExtractionResult:
        logger.warning(
            "Using MOCK extraction - set APP_EXTRACTION_PROVIDER=documentai for real extraction"
        )

        if not content:
            return ExtractionResult(
                success=False,
                error="Empty document provided",
                provider=self.provider_name,
            )

        return ExtractionResult(
            entities=decode_entities(MOCK_ENTITIES),
            success=True,
            provider=self.provider_name,
        )
