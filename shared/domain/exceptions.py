"""
Domain error taxonomy.

Every error carries a machine readable ``code`` and the HTTP status the
API layer answers with. Domain code raises these; the DRF exception
handler in ``shared.infrastructure.exception_handler`` renders them.

- ValidationError: malformed input, no state change (400)
- ClientError: unauthorized actor, bad signature, order/booking mismatch (400/401/403)
- NotFoundError: unknown booking/order/unit (404)
- ConflictError: overlapping booking, paying a cancelled booking (409)
- PaymentProviderError: gateway failure, transient or client (503/502)
- InternalError: storage failure mid-transaction (500)
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base exception for all booking/payment core errors."""

    default_code = "error"
    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        **metadata: Any,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if http_status is not None:
            self.http_status = http_status
        self.metadata = metadata

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for API responses"""
        return {"detail": self.message, "code": self.code}


class ValidationError(DomainError):
    default_code = "validation_error"
    http_status = 400


class ClientError(DomainError):
    """The caller is not allowed to do this, or sent inconsistent data."""

    default_code = "client_error"
    http_status = 400


class NotFoundError(DomainError):
    default_code = "not_found"
    http_status = 404


class ConflictError(DomainError):
    default_code = "conflict"
    http_status = 409


class InternalError(DomainError):
    default_code = "internal_error"
    http_status = 500


class PaymentProviderError(DomainError):
    """
    Failure talking to a payment gateway.

    ``classification`` tells the caller whether retrying can help:
    transient errors (unreachable, timeout, 5xx) are safe to retry,
    client errors (4xx) are not.
    """

    TRANSIENT = "transient"
    CLIENT = "client"

    default_code = "payment_provider_error"

    def __init__(
        self,
        message: str,
        *,
        classification: str,
        provider: str = "",
        status_code: Optional[int] = None,
        **metadata: Any,
    ):
        super().__init__(
            message,
            http_status=503 if classification == self.TRANSIENT else 502,
            **metadata,
        )
        self.classification = classification
        self.provider = provider
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return self.classification == self.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["classification"] = self.classification
        data["retryable"] = self.is_transient
        return data
