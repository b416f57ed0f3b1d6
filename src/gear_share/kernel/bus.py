"""
In-process Event Bus

Fire-and-forget delivery of committed events to notification subscribers
("request approved", "request rejected", ...). Subscribers run after the
owning transition is durable, and a failing subscriber is logged and skipped:
it can never roll back the transition that produced the event.

Fun fact: This is a "mediator" pattern - it decouples the lifecycle engine
from whoever wants to hear about it. Swapping in an email gateway or a
message queue never touches domain code!
"""

from collections import defaultdict
from typing import Callable, Protocol

from gear_share.kernel.events import Event
from gear_share.kernel.logging import get_logger
from gear_share.kernel.metrics import notification_failures_total

logger = get_logger(__name__)


EventHandler = Callable[[Event], None]


class Notifier(Protocol):
    """Notification collaborator - receives committed domain events"""

    def notify(self, event: Event) -> None:
        ...


class InProcessBus:
    """
    Simple synchronous in-process event bus

    Handlers are called in registration order. Wildcard subscribers
    (registered for "*") receive every published event.
    """

    WILDCARD = "*"

    def __init__(self) -> None:
        self._event_handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def register_event_handler(self, event_type: str, handler: EventHandler) -> None:
        """
        Register an event handler (can have multiple per event type)

        Args:
            event_type: Type of event to handle (e.g., "EquipmentRequestApproved"),
                or "*" for all events
            handler: Callable receiving the committed event
        """
        self._event_handlers[event_type].append(handler)
        logger.debug(
            "Event handler registered",
            event_type=event_type,
            total_handlers=len(self._event_handlers[event_type]),
        )

    def subscribe(self, notifier: Notifier, event_types: list[str] | None = None) -> None:
        """Subscribe a notification collaborator to some or all event types"""
        for event_type in event_types or [self.WILDCARD]:
            self.register_event_handler(event_type, notifier.notify)

    def publish_event(self, event: Event) -> None:
        """
        Publish an event to all registered handlers

        Failures are logged and counted, never propagated.
        """
        handlers = self._event_handlers.get(event.event_type, []) + self._event_handlers.get(
            self.WILDCARD, []
        )

        if not handlers:
            return

        logger.debug(
            "Publishing event",
            event_type=event.event_type,
            event_id=event.event_id,
            stream_id=event.stream_id,
            handler_count=len(handlers),
        )

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                notification_failures_total.labels(event_type=event.event_type).inc()
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    stream_id=event.stream_id,
                    error=str(e),
                    exc_info=True,
                )

    def publish_events(self, events: list[Event]) -> None:
        """Publish multiple events in order"""
        for event in events:
            self.publish_event(event)

    def get_event_types(self) -> list[str]:
        """Event types with at least one subscriber"""
        return list(self._event_handlers.keys())

    def clear(self) -> None:
        """Remove all handlers (useful for testing)"""
        self._event_handlers.clear()
