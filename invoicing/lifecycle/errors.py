"""Error kinds raised by invoice lifecycle operations.

Guard violations on user-invoked operations are raised to the caller and
mapped to HTTP responses by the API. Extraction and normalization failures
never reach a caller: the processor records them on the invoice instead.
"""


class InvoiceError(Exception):
    """Base class for categorized invoice errors.

    Attributes:
        code: Stable error category identifier
        http_status: Status code used when surfaced through the API
        message: Human-readable description
    """

    code = "internal"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(InvoiceError):
    code = "unauthenticated"
    http_status = 401


class InvalidArgument(InvoiceError):
    code = "invalid-argument"
    http_status = 400


class NotFound(InvoiceError):
    code = "not-found"
    http_status = 404


class PermissionDenied(InvoiceError):
    code = "permission-denied"
    http_status = 403


class FailedPrecondition(InvoiceError):
    code = "failed-precondition"
    http_status = 409


class ExtractionFailure(InvoiceError):
    """Document fetch or extraction-service call failed."""

    code = "extraction-failure"
    http_status = 502


class NormalizationFailure(InvoiceError):
    """Extraction output was structurally unexpected."""

    code = "normalization-failure"
    http_status = 502
