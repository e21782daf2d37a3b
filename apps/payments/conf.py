"""Payment settings, read once from ``settings.PAYMENTS`` at startup."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .gateways.base import GatewayConfig

PROVIDERS = ("razorpay", "cashfree")


@dataclass(frozen=True)
class PaymentsSettings:
    default_provider: str = "razorpay"
    currency: str = "INR"
    timeout: float = 10.0
    max_retries: int = 2
    max_order_amount: int = 10_000_000
    pending_ttl_hours: int = 24
    sweep_batch_size: int = 100
    sweep_min_age_seconds: int = 120
    frontend_url: str = "http://localhost:5173"
    providers: dict[str, GatewayConfig] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PaymentsSettings":
        timeout = float(raw.get("TIMEOUT", cls.timeout))
        max_retries = int(raw.get("MAX_RETRIES", cls.max_retries))
        frontend_url = str(raw.get("FRONTEND_URL", cls.frontend_url)).rstrip("/")
        tolerance = int(raw.get("WEBHOOK_TOLERANCE_SECONDS", 300))

        providers = {}
        for name in PROVIDERS:
            options = raw.get(name.upper()) or {}
            providers[name] = GatewayConfig(
                name=name,
                key_id=options.get("KEY_ID", ""),
                key_secret=options.get("KEY_SECRET", ""),
                webhook_secret=options.get("WEBHOOK_SECRET") or options.get("KEY_SECRET", ""),
                base_url=options.get("BASE_URL", ""),
                timeout=timeout,
                max_retries=max_retries,
                environment=options.get("ENVIRONMENT", "sandbox"),
                return_url=f"{frontend_url}/payment-status/{{order_id}}",
                webhook_tolerance_seconds=tolerance,
            )

        return cls(
            default_provider=raw.get("DEFAULT_PROVIDER", cls.default_provider),
            currency=raw.get("CURRENCY", cls.currency),
            timeout=timeout,
            max_retries=max_retries,
            max_order_amount=int(raw.get("MAX_ORDER_AMOUNT", cls.max_order_amount)),
            pending_ttl_hours=int(raw.get("PENDING_TTL_HOURS", cls.pending_ttl_hours)),
            sweep_batch_size=int(raw.get("SWEEP_BATCH_SIZE", cls.sweep_batch_size)),
            sweep_min_age_seconds=int(raw.get("SWEEP_MIN_AGE_SECONDS", cls.sweep_min_age_seconds)),
            frontend_url=frontend_url,
            providers=providers,
        )


def get_payments_settings() -> PaymentsSettings:
    from django.apps import apps  # type: ignore

    return apps.get_app_config("payments").payments_settings
