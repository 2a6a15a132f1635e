"""Unit tests for extraction base classes and interfaces.

Tests cover:
- Abstract base class enforcement
- ExtractionResult model validation
- Type safety and interface contracts
"""

import pytest

from invoicing.extraction.base import ExtractionProvider, ExtractionResult
from invoicing.extraction.entities import RawEntity
from invoicing.shared.config import Settings


def test_extraction_result_with_success() -> None:
    """Test ExtractionResult with successful extraction."""
    entities = [RawEntity(type="invoice_id", mention_text="INV-001")]

    result = ExtractionResult(entities=entities, success=True, error=None, provider="test")

    assert result.success is True
    assert result.entities[0].mention_text == "INV-001"
    assert result.error is None
    assert result.provider == "test"


def test_extraction_result_with_failure() -> None:
    """Test ExtractionResult with failed extraction."""
    result = ExtractionResult(success=False, error="Test error", provider="test")

    assert result.success is False
    assert result.entities == []
    assert result.error == "Test error"


def test_extraction_provider_is_abstract() -> None:
    """Test that ExtractionProvider cannot be instantiated directly."""
    settings = Settings(_env_file=None)

    with pytest.raises(TypeError, match="Can't instantiate abstract class"):
        ExtractionProvider(settings)  # type: ignore[abstract]


def test_extraction_provider_requires_implementation() -> None:
    """Test that concrete providers must implement all abstract methods."""

    # Create incomplete implementation missing provider_name
    class IncompleteProvider(ExtractionProvider):
        def process_document(self, content: bytes, mime_type: str) -> ExtractionResult:
            return ExtractionResult(success=False, error="Not implemented", provider="incomplete")

        def is_available(self) -> bool:
            return True

    with pytest.raises(TypeError):
        IncompleteProvider(Settings(_env_file=None))  # type: ignore[abstract]


def test_complete_provider_implementation() -> None:
    """Test that a complete implementation can be instantiated and used."""

    class CompleteProvider(ExtractionProvider):
        def process_document(self, content: bytes, mime_type: str) -> ExtractionResult:
            return ExtractionResult(
                entities=[RawEntity(type="total", mention_text="1.00")],
                success=True,
                provider=self.provider_name,
            )

        def is_available(self) -> bool:
            return True

        @property
        def provider_name(self) -> str:
            return "complete"

    settings = Settings(_env_file=None)
    provider = CompleteProvider(settings)

    result = provider.process_document(b"data", "application/pdf")

    assert provider.settings is settings
    assert result.success is True
    assert result.provider == "complete"
