"""
Payment gateway interface and the HTTP plumbing shared by the adapters.

Adapters translate between the provider's REST API and a small set of
provider-neutral records (``CreatedOrder``, ``ProviderStatus``,
``WebhookEvent``). They never touch the database and keep no state beyond
their immutable ``GatewayConfig`` and an HTTP session.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from shared.domain.exceptions import PaymentProviderError, ValidationError
from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)

RETRY_STATUSES = (500, 502, 503, 504)


class ProviderPaymentStatus:
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"


class WebhookKind:
    CAPTURED = "captured"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class GatewayConfig:
    name: str
    key_id: str
    key_secret: str
    webhook_secret: str
    base_url: str
    timeout: float = 10.0
    max_retries: int = 2
    environment: str = "sandbox"
    return_url: str = ""
    webhook_tolerance_seconds: int = 300


@dataclass(frozen=True)
class Payer:
    user_id: int
    email: str
    phone: str = ""
    name: str = ""


@dataclass(frozen=True)
class CreatedOrder:
    provider_order_id: str
    client_session_token: str
    checkout_options: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderStatus:
    status: str
    provider_payment_id: str | None = None
    raw: Any = None

    @property
    def is_final(self) -> bool:
        return self.status != ProviderPaymentStatus.PENDING


@dataclass(frozen=True)
class WebhookEvent:
    kind: str
    event_type: str
    provider_order_id: str | None = None
    provider_payment_id: str | None = None
    order_ref: str | None = None
    reason: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class PaymentGateway(Protocol):
    name: str
    supports_client_signature: bool

    def create_order(self, order_ref: str, amount: Money, payer: Payer) -> CreatedOrder:
        """Create a provider order for ``amount``. Never retried."""

    def fetch_status(self, provider_order_id: str) -> ProviderStatus:
        """Ask the provider what happened to the order's payments."""

    def verify_signature(self, payload: bytes, signature: str | None, secret: str) -> bool:
        """Constant-time check of a provider HMAC over ``payload``."""

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        """Check the signed order/payment pair handed to the client after checkout."""

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        """Authenticate a webhook delivery against the webhook secret."""

    def parse_webhook(self, body: bytes) -> WebhookEvent:
        """Map a verified webhook body to a provider-neutral event."""


def hmac_sha256(secret: str, payload: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()


def signatures_match(expected: str, received: str | None) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))


def hex_signature(secret: str, payload: bytes) -> str:
    return hmac_sha256(secret, payload).hex()


def base64_signature(secret: str, payload: bytes) -> str:
    return base64.b64encode(hmac_sha256(secret, payload)).decode("ascii")


def lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(key).lower(): value for key, value in headers.items()}


def load_json_body(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Webhook body is not valid JSON: {exc}", code="malformed_webhook")
    if not isinstance(data, dict):
        raise ValidationError("Webhook body must be a JSON object", code="malformed_webhook")
    return data


def build_session(max_retries: int) -> requests.Session:
    """
    HTTP session for provider calls.

    Retries are limited to idempotent GETs on connection errors and 5xx
    answers; with ``max_retries=0`` nothing is retried at all.
    """
    session = requests.Session()
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=0.3,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class HttpGateway:
    """Base class for REST adapters: sessions, timeouts and error classification."""

    name = ""
    supports_client_signature = False

    def __init__(self, config: GatewayConfig):
        self.config = config
        # Order creation must never be replayed, so it gets a session without retries.
        self._session = build_session(config.max_retries)
        self._create_session = build_session(0)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.config.base_url!r})"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    def _auth(self):
        return None

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, retry: bool = True, **kwargs) -> Any:
        session = self._session if retry else self._create_session
        url = self._url(path)
        try:
            response = session.request(
                method,
                url,
                headers=self._headers(),
                auth=self._auth(),
                timeout=self.config.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning(f"{self.name} {method} {path} failed: {exc}")
            raise PaymentProviderError(
                f"{self.name} is unreachable: {exc.__class__.__name__}",
                classification=PaymentProviderError.TRANSIENT,
                provider=self.name,
            )

        if response.status_code >= 500:
            logger.warning(f"{self.name} {method} {path} answered {response.status_code}")
            raise PaymentProviderError(
                f"{self.name} server error ({response.status_code})",
                classification=PaymentProviderError.TRANSIENT,
                provider=self.name,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            logger.error(
                f"{self.name} {method} {path} rejected with {response.status_code}: "
                f"{response.text[:500]}"
            )
            raise PaymentProviderError(
                f"{self.name} rejected the request ({response.status_code})",
                classification=PaymentProviderError.CLIENT,
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise PaymentProviderError(
                f"{self.name} returned a non-JSON response",
                classification=PaymentProviderError.TRANSIENT,
                provider=self.name,
                status_code=response.status_code,
            )

    def _malformed(self, what: str) -> PaymentProviderError:
        return PaymentProviderError(
            f"{self.name} response is missing {what}",
            classification=PaymentProviderError.CLIENT,
            provider=self.name,
        )
