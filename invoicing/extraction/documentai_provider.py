"""Google Document AI extraction provider.

Sends the raw document to an invoice parser processor through the
``processors.process`` REST method and returns the entity list of the
processed document.

See: https://cloud.google.com/document-ai/docs/reference/rest/v1/projects.locations.processors/process

Requests are authorized with Application Default Credentials, refreshed when
the access token expires. A static ``APP_DOCAI_ACCESS_TOKEN`` overrides ADC.

Includes retry logic with exponential backoff for transient API errors.
"""

import base64
import logging
import threading
from typing import Any

import google.auth
import httpx
from google.auth.credentials import Credentials
from google.auth.transport.requests import Request
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoicing.extraction.base import ExtractionProvider, ExtractionResult
from invoicing.extraction.entities import decode_entities
from invoicing.lifecycle.errors import NormalizationFailure
from invoicing.shared.config import Settings

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_ATTEMPTS = 3
MAX_BACKOFF_SECONDS = 30


def _is_retryable(exc: BaseException) -> bool:
    """Transport errors, throttling and server errors are worth retrying."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


def max_call_seconds(settings: Settings) -> float:
    """Upper bound on one process call including retries and back-off."""
    return MAX_ATTEMPTS * settings.docai_timeout_seconds + (MAX_ATTEMPTS - 1) * MAX_BACKOFF_SECONDS


class DocumentAIExtractionProvider(ExtractionProvider):
    """Document AI invoice parser provider.

    Requires a project id and processor id. Credentials come from ADC unless
    a static access token is configured.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize Document AI provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._location = settings.docai_location
        self._client = httpx.Client(
            base_url=f"https://{self._location}-documentai.googleapis.com",
            timeout=settings.docai_timeout_seconds,
        )
        self._credentials: Credentials | None = None
        self._credentials_lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'documentai'
        """
        return "documentai"

    @property
    def processor_name(self) -> str:
        """Full resource name of the configured processor."""
        return (
            f"projects/{self.settings.docai_project_id}"
            f"/locations/{self._location}"
            f"/processors/{self.settings.docai_processor_id}"
        )

    def is_available(self) -> bool:
        """Check if the project and processor are configured.

        Credentials are resolved on the first call.

        Returns:
            True if the Document AI processor settings are present
        """
        return bool(self.settings.docai_project_id and self.settings.docai_processor_id)

    def _access_token(self) -> str:
        """Bearer token for the process call.

        Raises:
            google.auth.exceptions.GoogleAuthError: If ADC cannot be loaded or refreshed
        """
        if self.settings.docai_access_token:
            return self.settings.docai_access_token

        with self._credentials_lock:
            if self._credentials is None:
                self._credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
                logger.info("Loaded Application Default Credentials for Document AI")
            if not self._credentials.valid:
                self._credentials.refresh(Request())
            return str(self._credentials.token)

    def process_document(self, content: bytes, mime_type: str) -> ExtractionResult:
        """Extract entities from a document using Document AI.

        Args:
            content: Raw document bytes
            mime_type: Document MIME type

        Returns:
            ExtractionResult with decoded entities or error, provider='documentai'
        """
        if not self.is_available():
            return ExtractionResult(
                success=False,
                error="Document AI is not configured (project or processor missing)",
                provider=self.provider_name,
            )

        if not content:
            return ExtractionResult(
                success=False,
                error="Empty document provided",
                provider=self.provider_name,
            )

        try:
            payload = self._call_documentai_with_retry(content, mime_type)
            document = payload.get("document") or {}
            entities = decode_entities(document.get("entities"))

            logger.info(
                f"Document AI returned {len(entities)} entities for {len(content)} bytes"
            )
            return ExtractionResult(
                entities=entities,
                success=True,
                provider=self.provider_name,
            )

        except httpx.HTTPStatusError as e:
            logger.error(f"Document AI request failed: {e.response.status_code}")
            return ExtractionResult(
                success=False,
                error=f"Document AI error {e.response.status_code}: {self._error_detail(e.response)}",
                provider=self.provider_name,
            )
        except NormalizationFailure as e:
            logger.warning(f"Unexpected Document AI response shape: {e.message}")
            return ExtractionResult(
                success=False,
                error=f"Unexpected response: {e.message}",
                provider=self.provider_name,
            )
        except Exception as e:
            logger.error(f"Document AI extraction failed: {e}")
            return ExtractionResult(
                success=False,
                error=f"Extraction failed: {str(e)}",
                provider=self.provider_name,
            )

    @retry(
        retry=retry_if_exception(_is_retryable),
        wait=wait_exponential_jitter(initial=1, max=MAX_BACKOFF_SECONDS),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        reraise=True,
    )
    def _call_documentai_with_retry(self, content: bytes, mime_type: str) -> dict[str, Any]:
        """Call the process method with retry logic for transient errors.

        Args:
            content: Raw document bytes
            mime_type: Document MIME type

        Returns:
            Parsed JSON response

        Raises:
            httpx.HTTPError: After all retry attempts exhausted
        """
        response = self._client.post(
            f"/v1/{self.processor_name}:process",
            headers={"Authorization": f"Bearer {self._access_token()}"},
            json={
                "rawDocument": {
                    "content": base64.b64encode(content).decode("ascii"),
                    "mimeType": mime_type,
                },
            },
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Pull the message out of a Google API error body."""
        try:
            return str(response.json()["error"]["message"])
        except Exception:
            return response.text[:200]
