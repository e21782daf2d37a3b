"""
Trigger adapters: the three ways a provider confirmation reaches the
reconciliation engine, plus the fetch path the periodic sweep reuses.

Authentication always happens before anything is mutated: the client
triple is checked against the key secret, webhooks against the webhook
secret, and fetch-based paths only act on what the provider itself says.
"""

from __future__ import annotations

import logging
from typing import Mapping

from shared.domain.exceptions import ClientError, ConflictError, NotFoundError, ValidationError

from .gateways import PaymentGateway, ProviderPaymentStatus, WebhookKind, get_gateway
from .models import Payment, PaymentEvent
from .reconciliation import (
    Outcome,
    ReconciliationResult,
    apply_confirmed_payment,
    apply_failed_payment,
    stored_result,
)

logger = logging.getLogger(__name__)

Trigger = PaymentEvent.Trigger


def _payment_for_payer(provider_order_id: str, payer) -> Payment:
    payment = Payment.objects.select_related("booking").filter(provider_order_id=provider_order_id).first()
    if payment is None:
        raise NotFoundError(f"No payment for order {provider_order_id}", code="payment_not_found")
    if payment.user_id != payer.pk:
        raise ClientError("This payment belongs to another user.", code="not_payment_owner", http_status=403)
    return payment


def _gateway_for(payment: Payment, gateway: PaymentGateway | None) -> PaymentGateway:
    if gateway is None:
        return get_gateway(payment.provider)
    if gateway.name != payment.provider:
        raise ClientError(
            f"Payment {payment.order_ref} was raised on {payment.provider}, not {gateway.name}",
            code="provider_mismatch",
        )
    return gateway


def _raise_for_anomaly(result: ReconciliationResult) -> ReconciliationResult:
    if result.is_anomaly:
        raise ConflictError(
            f"Payment {result.payment.order_ref} cannot be applied: {result.payment.failure_reason}. "
            f"The charge will be refunded.",
            code=f"payment_{result.payment.anomaly}",
        )
    return result


def reconcile_from_provider(payment: Payment, gateway: PaymentGateway, trigger: str) -> ReconciliationResult:
    """Fetch the order status from the provider and apply what it reports."""

    stored = stored_result(payment)
    if stored is not None:
        return stored

    status = gateway.fetch_status(payment.provider_order_id)
    logger.info(f"{gateway.name} reports {status.status} for order {payment.provider_order_id} ({trigger})")
    if not status.is_final:
        return ReconciliationResult(Outcome.PENDING, payment, payment.booking)

    if status.status == ProviderPaymentStatus.SUCCEEDED:
        return apply_confirmed_payment(
            payment.provider_order_id,
            status.provider_payment_id,
            trigger,
            raw=status.raw,
        )
    if status.status == ProviderPaymentStatus.FAILED:
        return apply_failed_payment(
            payment.provider_order_id,
            status.provider_payment_id,
            trigger=trigger,
            reason="provider reported the payment failed",
            raw=status.raw,
        )
    return ReconciliationResult(Outcome.PENDING, payment, payment.booking)


def verify_payment(
    payer,
    provider_order_id: str,
    provider_payment_id: str | None = None,
    signature: str | None = None,
    gateway: PaymentGateway | None = None,
) -> ReconciliationResult:
    """
    Client-side confirmation after checkout.

    With a signature (and a provider that signs the client triple) the
    HMAC is checked before anything else and a mismatch changes nothing.
    Without one, the provider is asked for the order status.
    """
    payment = _payment_for_payer(provider_order_id, payer)
    gateway = _gateway_for(payment, gateway)

    if signature and gateway.supports_client_signature:
        if not provider_payment_id:
            raise ValidationError("Payment id is required with a signature", code="payment_id_required")
        if not gateway.verify_payment_signature(provider_order_id, provider_payment_id, signature):
            logger.warning(f"Invalid client signature for order {provider_order_id} from user {payer.pk}")
            raise ClientError("Invalid payment signature.", code="invalid_signature")
        result = apply_confirmed_payment(
            provider_order_id,
            provider_payment_id,
            Trigger.VERIFY,
            raw={
                "order_id": provider_order_id,
                "payment_id": provider_payment_id,
                "signature": signature,
            },
        )
    else:
        result = reconcile_from_provider(payment, gateway, Trigger.VERIFY)

    return _raise_for_anomaly(result)


def handle_webhook(body: bytes, headers: Mapping[str, str], gateway: PaymentGateway) -> ReconciliationResult | None:
    """
    Apply a provider webhook. Returns None when the delivery was
    acknowledged without touching any payment.
    """
    if not gateway.verify_webhook(body, headers):
        logger.warning(f"Rejected {gateway.name} webhook with an invalid signature")
        raise ClientError("Invalid webhook signature.", code="invalid_webhook_signature")

    event = gateway.parse_webhook(body)
    if event.kind == WebhookKind.IGNORED:
        logger.info(f"Ignoring {gateway.name} webhook {event.event_type or '<untyped>'}")
        return None

    payment = Payment.objects.filter(provider_order_id=event.provider_order_id).only("provider").first()
    if payment is None:
        logger.warning(
            f"{gateway.name} webhook {event.event_type} for unknown order {event.provider_order_id}; acknowledged"
        )
        return None
    if payment.provider != gateway.name:
        raise ClientError(
            f"Order {event.provider_order_id} was not raised on {gateway.name}",
            code="provider_mismatch",
        )

    if event.kind == WebhookKind.CAPTURED:
        return apply_confirmed_payment(
            event.provider_order_id,
            event.provider_payment_id,
            Trigger.WEBHOOK,
            order_ref=event.order_ref,
            raw=event.raw,
        )
    return apply_failed_payment(
        event.provider_order_id,
        event.provider_payment_id,
        trigger=Trigger.WEBHOOK,
        reason=event.reason or event.event_type,
        order_ref=event.order_ref,
        raw=event.raw,
    )


def poll_payment_status(
    payer,
    provider_order_id: str,
    gateway: PaymentGateway | None = None,
) -> ReconciliationResult:
    """Status check from the client; completed payments answer without a provider call."""

    payment = _payment_for_payer(provider_order_id, payer)
    return reconcile_from_provider(payment, _gateway_for(payment, gateway), Trigger.POLL)
