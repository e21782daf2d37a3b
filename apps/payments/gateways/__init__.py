"""Payment provider adapters behind one ``PaymentGateway`` interface."""

from __future__ import annotations

from shared.domain.exceptions import ValidationError

from .base import (
    CreatedOrder,
    GatewayConfig,
    Payer,
    PaymentGateway,
    ProviderPaymentStatus,
    ProviderStatus,
    WebhookEvent,
    WebhookKind,
)
from .cashfree import CashfreeGateway
from .razorpay import RazorpayGateway

GATEWAY_CLASSES = {
    RazorpayGateway.name: RazorpayGateway,
    CashfreeGateway.name: CashfreeGateway,
}

__all__ = [
    "CashfreeGateway",
    "CreatedOrder",
    "GatewayConfig",
    "Payer",
    "PaymentGateway",
    "ProviderPaymentStatus",
    "ProviderStatus",
    "RazorpayGateway",
    "WebhookEvent",
    "WebhookKind",
    "build_gateway",
    "get_gateway",
]


def build_gateway(config: GatewayConfig) -> PaymentGateway:
    try:
        gateway_class = GATEWAY_CLASSES[config.name]
    except KeyError:
        raise ValidationError(f"Unknown payment provider: {config.name!r}", code="unknown_provider")
    return gateway_class(config)


def get_gateway(provider: str | None = None) -> PaymentGateway:
    """Configured gateway for ``provider``, or for the default provider."""
    from django.apps import apps  # type: ignore

    return apps.get_app_config("payments").get_gateway(provider)
