"""Celery tasks for payment reconciliation housekeeping."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from celery import shared_task
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import DomainError, PaymentProviderError

logger = logging.getLogger(__name__)


@shared_task(name="payments.reconcile_pending_payments")
def reconcile_pending_payments(batch_size: int | None = None) -> dict:
    """
    Re-drive pending payments through the provider fetch path.

    Catches confirmations whose webhook never arrived and whose client
    never came back to verify.
    """
    from .conf import get_payments_settings
    from .gateways import get_gateway
    from .models import Payment, PaymentEvent
    from .triggers import reconcile_from_provider

    conf = get_payments_settings()
    cutoff = timezone.now() - timedelta(seconds=conf.sweep_min_age_seconds)
    payments = list(
        Payment.objects.select_related("booking")
        .filter(status=Payment.Status.PENDING, anomaly="", created_at__lte=cutoff)
        .order_by("created_at")[: batch_size or conf.sweep_batch_size]
    )

    outcomes: Counter = Counter()
    for payment in payments:
        try:
            result = reconcile_from_provider(payment, get_gateway(payment.provider), PaymentEvent.Trigger.SWEEP)
        except PaymentProviderError as e:
            outcomes["provider_error"] += 1
            logger.warning(f"Sweep could not fetch {payment.provider_order_id}: {e}")
            continue
        except DomainError as e:
            outcomes["error"] += 1
            logger.error(f"Sweep failed on payment {payment.pk}: {e}", exc_info=True)
            continue
        outcomes[result.outcome] += 1

    logger.info(f"Payment sweep checked {len(payments)} pending payments: {dict(outcomes)}")
    return dict(outcomes)


@shared_task(name="payments.expire_stale_payments")
def expire_stale_payments() -> int:
    """
    Mark pending payments older than the TTL as failed.

    They stay as history; a late provider success can still complete them.
    """
    from .conf import get_payments_settings
    from .models import Payment, PaymentEvent
    from .reconciliation import Outcome, apply_failed_payment

    ttl_hours = get_payments_settings().pending_ttl_hours
    cutoff = timezone.now() - timedelta(hours=ttl_hours)
    stale = Payment.objects.filter(
        status=Payment.Status.PENDING, anomaly="", created_at__lt=cutoff
    ).values_list("provider_order_id", flat=True)

    expired = 0
    for provider_order_id in list(stale):
        try:
            result = apply_failed_payment(
                provider_order_id,
                trigger=PaymentEvent.Trigger.SWEEP,
                reason="expired",
            )
        except DomainError as e:
            logger.error(f"Could not expire payment order {provider_order_id}: {e}", exc_info=True)
            continue
        if result.outcome == Outcome.FAILED:
            expired += 1

    logger.info(f"Expired {expired} pending payments older than {ttl_hours}h")
    return expired
