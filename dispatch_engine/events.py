"""
Engine events and the subscription port

State changes (booking transitions, aggregate finalization, pricing
updates) are published as semantic events. Collaborators subscribe to the
bus; the engine never assumes a push-capable transport.
"""

from collections import defaultdict
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, List, Literal, Optional

from loguru import logger
from pydantic import BaseModel, Field

EventType = Literal[
    "booking_created",
    "booking_transitioned",
    "booking_assigned",
    "booking_completed",
    "booking_reviewed",
    "aggregate_finalized",
    "pricing_updated",
]

EventHandler = Callable[["EngineEvent"], None]

WILDCARD = "*"


class EngineEvent(BaseModel):
    """
    Semantic event emitted after a committed state change

    Event types:
    - booking_created / booking_transitioned / booking_assigned /
      booking_completed / booking_reviewed: lifecycle changes
    - aggregate_finalized: a backfill wrote daily aggregates
    - pricing_updated: service pricing committed
    """
    event: EventType
    subject_id: Optional[str] = None  # Booking id, date range, or pricing record id
    actor: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "event": "booking_transitioned",
                    "subject_id": "bk-1001",
                    "actor": "tech-7",
                    "from_status": "confirmed",
                    "to_status": "en_route",
                },
                {
                    "event": "aggregate_finalized",
                    "subject_id": "2024-01-01..2024-01-31",
                    "payload": {"days_written": 31},
                },
            ]
        }
    }


class EventBus:
    """
    In-process publish/subscribe port.

    Handler failures are logged and isolated so a broken subscriber never
    undoes or interrupts an already-committed state change.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for one event type (or ``"*"`` for all).

        Returns:
            Callable that removes the subscription
        """
        with self._lock:
            self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers.get(event_type, []):
                    self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: EngineEvent) -> int:
        """
        Deliver an event to its subscribers.

        Returns:
            Number of handlers that ran without raising
        """
        with self._lock:
            handlers = list(self._handlers.get(event.event, [])) + list(self._handlers.get(WILDCARD, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.exception(f"Event handler failed for {event.event} ({event.subject_id}): {e}")
        return delivered


class NullEventBus(EventBus):
    """Bus that drops every event"""

    def publish(self, event: EngineEvent) -> int:
        return 0
