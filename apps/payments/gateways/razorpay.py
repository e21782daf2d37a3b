"""Razorpay adapter (Orders API, key id / key secret Basic auth)."""

from __future__ import annotations

import logging
from typing import Mapping

from shared.domain.value_objects import Money

from .base import (
    CreatedOrder,
    HttpGateway,
    Payer,
    ProviderPaymentStatus,
    ProviderStatus,
    WebhookEvent,
    WebhookKind,
    hex_signature,
    load_json_body,
    lower_headers,
    signatures_match,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"

CAPTURE_EVENTS = {"payment.captured", "order.paid"}
FAILURE_EVENTS = {"payment.failed"}

PENDING_STATUSES = {"created", "authorized"}


class RazorpayGateway(HttpGateway):
    name = "razorpay"
    supports_client_signature = True

    def _auth(self):
        return (self.config.key_id, self.config.key_secret)

    def create_order(self, order_ref: str, amount: Money, payer: Payer) -> CreatedOrder:
        data = self._request(
            "POST",
            "orders",
            retry=False,
            json={
                "amount": amount.amount,
                "currency": amount.currency,
                "receipt": order_ref,
                "notes": {"order_ref": order_ref, "payer_id": str(payer.user_id)},
            },
        )
        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            raise self._malformed("the order id")

        logger.info(f"Razorpay order {order_id} created for {order_ref}")
        return CreatedOrder(
            provider_order_id=order_id,
            client_session_token=order_id,
            checkout_options={
                "key": self.config.key_id,
                "order_id": order_id,
                "amount": amount.amount,
                "currency": amount.currency,
                "prefill": {"name": payer.name, "email": payer.email, "contact": payer.phone},
            },
            raw=data,
        )

    def fetch_status(self, provider_order_id: str) -> ProviderStatus:
        data = self._request("GET", f"orders/{provider_order_id}/payments")
        items = data.get("items", []) if isinstance(data, dict) else []

        for item in items:
            if item.get("status") == "captured":
                return ProviderStatus(ProviderPaymentStatus.SUCCEEDED, item.get("id"), data)
        for item in items:
            if item.get("status") in PENDING_STATUSES:
                return ProviderStatus(ProviderPaymentStatus.PENDING, item.get("id"), data)
        if items and all(item.get("status") == "failed" for item in items):
            return ProviderStatus(ProviderPaymentStatus.FAILED, items[-1].get("id"), data)
        return ProviderStatus(ProviderPaymentStatus.PENDING, None, data)

    def verify_signature(self, payload: bytes, signature: str | None, secret: str) -> bool:
        return signatures_match(hex_signature(secret, payload), signature)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        return self.verify_signature(f"{order_id}|{payment_id}".encode("utf-8"), signature, self.config.key_secret)

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        signature = lower_headers(headers).get(SIGNATURE_HEADER)
        return self.verify_signature(body, signature, self.config.webhook_secret)

    def parse_webhook(self, body: bytes) -> WebhookEvent:
        data = load_json_body(body)
        event_type = str(data.get("event", ""))
        payload = data.get("payload") or {}
        entity = (payload.get("payment") or {}).get("entity") or {}
        order_entity = (payload.get("order") or {}).get("entity") or {}
        notes = entity.get("notes") or order_entity.get("notes") or {}

        if event_type in CAPTURE_EVENTS:
            kind = WebhookKind.CAPTURED
        elif event_type in FAILURE_EVENTS:
            kind = WebhookKind.FAILED
        else:
            kind = WebhookKind.IGNORED

        order_id = entity.get("order_id") or order_entity.get("id")
        if kind != WebhookKind.IGNORED and not order_id:
            logger.warning(f"Razorpay {event_type} webhook carries no order id; ignoring")
            kind = WebhookKind.IGNORED

        return WebhookEvent(
            kind=kind,
            event_type=event_type,
            provider_order_id=order_id,
            provider_payment_id=entity.get("id"),
            order_ref=notes.get("order_ref") if isinstance(notes, dict) else None,
            reason=entity.get("error_description") or "",
            raw=data,
        )
