"""
Unit of Work

Wraps one database transaction and holds back the domain events raised
inside it until the transaction has committed. Booking cancellation,
handover confirmation and payment reconciliation all write several rows
and then tell other contexts about it; the notifications must never
describe a write that was rolled back.
"""

from typing import List, Optional
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    ``transaction.atomic()`` plus an outbox of domain events.

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = Booking.objects.select_for_update().get(pk=booking_id)
            ...
            uow.add_event(PaymentConfirmed(...))
        # handlers run once the outermost transaction commits

    Nested inside another atomic block the events wait for the outer
    commit, which is what ``transaction.on_commit`` does for savepoints.
    """

    def __init__(self, bus=None):
        self._bus = bus
        self._events: List[DomainEvent] = []
        self._atomic: Optional[transaction.Atomic] = None

    def __enter__(self):
        self._atomic = transaction.atomic()
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self._schedule_publish()
            elif self._events:
                logger.warning(
                    f"Transaction aborted by {exc_type.__name__}, "
                    f"dropping {len(self._events)} pending events"
                )
        finally:
            self._events = []
            self._atomic.__exit__(exc_type, exc_val, exc_tb)

    def add_event(self, event: DomainEvent):
        self._events.append(event)
        logger.debug(f"Recorded event {event.__class__.__name__} (aggregate {event.aggregate_id})")

    def _schedule_publish(self):
        if not self._events:
            return
        events = list(self._events)
        transaction.on_commit(lambda: self._publish(events))

    def _publish(self, events: List[DomainEvent]):
        bus = self._bus
        if bus is None:
            from shared.application.message_bus import message_bus as bus

        logger.info(f"Publishing {len(events)} domain events after commit")
        try:
            bus.publish_events(events)
        except Exception as e:
            # Writes are already committed; a publishing failure must not surface.
            logger.error(f"Error publishing events: {e}", exc_info=True)
