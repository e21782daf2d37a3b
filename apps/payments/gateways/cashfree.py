"""Cashfree adapter (PG orders API, version 2023-08-01).

Cashfree uses our ``order_ref`` as the merchant order id, so the provider
order id and the internal reference are the same string. The client never
receives a signed payment triple; confirmation always goes through a
status fetch or a signed webhook.
"""

from __future__ import annotations

import logging
import time
from typing import Mapping

from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import Money

from .base import (
    CreatedOrder,
    HttpGateway,
    Payer,
    ProviderPaymentStatus,
    ProviderStatus,
    WebhookEvent,
    WebhookKind,
    base64_signature,
    load_json_body,
    lower_headers,
    signatures_match,
)

logger = logging.getLogger(__name__)

API_VERSION = "2023-08-01"

SIGNATURE_HEADER = "x-webhook-signature"
TIMESTAMP_HEADER = "x-webhook-timestamp"

SUCCESS_WEBHOOKS = {"PAYMENT_SUCCESS_WEBHOOK"}
FAILURE_WEBHOOKS = {"PAYMENT_FAILED_WEBHOOK", "PAYMENT_USER_DROPPED_WEBHOOK"}

FAILED_STATUSES = {"FAILED", "USER_DROPPED", "CANCELLED", "VOID"}
PENDING_STATUSES = {"PENDING", "NOT_ATTEMPTED"}

# Cashfree sends epoch milliseconds; anything this large cannot be seconds.
MILLISECOND_TIMESTAMPS_FROM = 10**11


class CashfreeGateway(HttpGateway):
    name = "cashfree"
    supports_client_signature = False

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers.update(
            {
                "x-client-id": self.config.key_id,
                "x-client-secret": self.config.key_secret,
                "x-api-version": API_VERSION,
            }
        )
        return headers

    def create_order(self, order_ref: str, amount: Money, payer: Payer) -> CreatedOrder:
        if not payer.phone:
            raise ValidationError("Cashfree requires the payer's phone number", code="payer_phone_required")

        data = self._request(
            "POST",
            "orders",
            retry=False,
            json={
                "order_id": order_ref,
                "order_amount": float(amount.major),
                "order_currency": amount.currency,
                "customer_details": {
                    "customer_id": str(payer.user_id),
                    "customer_email": payer.email,
                    "customer_phone": payer.phone,
                    "customer_name": payer.name,
                },
                "order_meta": {"return_url": self.config.return_url},
                "order_note": "Property booking payment",
            },
        )
        session_id = data.get("payment_session_id") if isinstance(data, dict) else None
        if not session_id:
            raise self._malformed("payment_session_id")

        order_id = data.get("order_id") or order_ref
        logger.info(f"Cashfree order {order_id} created")
        return CreatedOrder(
            provider_order_id=order_id,
            client_session_token=session_id,
            checkout_options={
                "payment_session_id": session_id,
                "order_id": order_id,
                "mode": self.config.environment,
            },
            raw=data,
        )

    def fetch_status(self, provider_order_id: str) -> ProviderStatus:
        data = self._request("GET", f"orders/{provider_order_id}/payments")
        items = data if isinstance(data, list) else []

        for item in items:
            if item.get("payment_status") == "SUCCESS":
                return ProviderStatus(ProviderPaymentStatus.SUCCEEDED, _payment_id(item), items)
        for item in items:
            if item.get("payment_status") in PENDING_STATUSES:
                return ProviderStatus(ProviderPaymentStatus.PENDING, _payment_id(item), items)
        if items and all(item.get("payment_status") in FAILED_STATUSES for item in items):
            return ProviderStatus(ProviderPaymentStatus.FAILED, _payment_id(items[0]), items)
        return ProviderStatus(ProviderPaymentStatus.PENDING, None, items)

    def verify_signature(self, payload: bytes, signature: str | None, secret: str) -> bool:
        return signatures_match(base64_signature(secret, payload), signature)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        # No signed client triple exists; callers fall back to a status fetch.
        return False

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        normalized = lower_headers(headers)
        timestamp = normalized.get(TIMESTAMP_HEADER)
        if not timestamp or not self._is_fresh(timestamp):
            return False
        return self.verify_signature(
            timestamp.encode("utf-8") + body,
            normalized.get(SIGNATURE_HEADER),
            self.config.webhook_secret,
        )

    def _is_fresh(self, timestamp: str) -> bool:
        try:
            sent_at = int(timestamp)
        except ValueError:
            logger.warning(f"Cashfree webhook timestamp {timestamp!r} is not an integer")
            return False
        if sent_at > MILLISECOND_TIMESTAMPS_FROM:
            sent_at //= 1000

        tolerance = self.config.webhook_tolerance_seconds
        skew = abs(time.time() - sent_at)
        if tolerance > 0 and skew > tolerance:
            logger.warning(f"Rejecting Cashfree webhook signed {int(skew)}s away from now")
            return False
        return True

    def parse_webhook(self, body: bytes) -> WebhookEvent:
        data = load_json_body(body)
        event_type = str(data.get("type", ""))
        payload = data.get("data") or {}
        order = payload.get("order") or {}
        payment = payload.get("payment") or {}

        if event_type in SUCCESS_WEBHOOKS:
            kind = WebhookKind.CAPTURED
        elif event_type in FAILURE_WEBHOOKS:
            kind = WebhookKind.FAILED
        else:
            kind = WebhookKind.IGNORED

        order_id = order.get("order_id")
        if kind != WebhookKind.IGNORED and not order_id:
            logger.warning(f"Cashfree {event_type} webhook carries no order id; ignoring")
            kind = WebhookKind.IGNORED

        return WebhookEvent(
            kind=kind,
            event_type=event_type,
            provider_order_id=order_id,
            provider_payment_id=_payment_id(payment),
            order_ref=order_id,
            reason=payment.get("payment_message") or "",
            raw=data,
        )


def _payment_id(item) -> str | None:
    value = item.get("cf_payment_id") if isinstance(item, dict) else None
    return str(value) if value is not None else None
