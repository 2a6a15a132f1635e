"""Abstract base class for extraction services.

Enables switching between document-understanding backends (Document AI,
a canned mock for local development) behind one interface.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from invoicing.extraction.entities import RawEntity
from invoicing.shared.config import Settings


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        entities: Entities returned by the service (empty if extraction failed)
        success: Whether operation succeeded
        error: Error message if operation failed
        provider: Name of provider that performed extraction (e.g., 'documentai')
    """

    entities: list[RawEntity] = Field(default_factory=list)
    success: bool
    error: str | None = None
    provider: str


class ExtractionProvider(ABC):
    """Abstract base class for document-understanding providers.

    Providers never raise for service failures; they report them through
    ``ExtractionResult.success`` and ``ExtractionResult.error``.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def process_document(self, content: bytes, mime_type: str) -> ExtractionResult:
        """Extract typed entities from a binary document.

        Args:
            content: Raw document bytes
            mime_type: Document MIME type (e.g., 'application/pdf')

        Returns:
            ExtractionResult with the entity list or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'documentai', 'mock')
        """
        pass
