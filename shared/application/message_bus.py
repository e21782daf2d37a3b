"""
Message Bus

Routes domain events raised by bookings, listings and payments to the
handlers that react to them (today: the notification fanout). Apps
register handlers in ``AppConfig.ready()``; ``DjangoUnitOfWork`` publishes
after commit.
"""

from typing import Callable, Dict, Iterable, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    """
    Event-only bus, many handlers per event type.

    A failing handler is logged and skipped: a payment that has been
    confirmed stays confirmed even when one of its notifications cannot
    be written.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """Subscribe ``handler``; subscribing the same callable twice is a no-op."""
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Registered {_name(handler)} for {event_type.__name__}")

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[EventHandler]:
        return list(self._handlers.get(event_type, []))

    def publish_events(self, events: Iterable[DomainEvent]):
        for event in events:
            self._dispatch(event)

    def _dispatch(self, event: DomainEvent):
        event_name = type(event).__name__
        handlers = self._handlers.get(type(event))
        if not handlers:
            logger.warning(f"No handlers registered for event {event_name}")
            return

        logger.info(f"Publishing event: {event_name} (ID: {event.event_id})")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler {_name(handler)} for event {event_name}: {e}",
                    exc_info=True,
                )


def _name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))


message_bus = MessageBus()
