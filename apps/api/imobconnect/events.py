"""In-process domain events.

Every published event is wrapped in an envelope carrying the actor and the
request correlation id, handed to the subscribers registered for its type and
kept in ``published_events``, which holds only the latest
``EVENT_HISTORY_LIMIT`` envelopes.
"""

from __future__ import annotations

import uuid
from collections import defaultdict, deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from imobconnect.context import get_correlation_id

EventEnvelope = dict[str, Any]
EventHandler = Callable[[EventEnvelope], None]

EVENT_HISTORY_LIMIT = 256


class DomainEventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def dispatch(self, envelope: EventEnvelope) -> None:
        for handler in list(self._handlers.get(envelope["event_type"], [])):
            handler(envelope)


event_bus = DomainEventBus()
published_events: deque[EventEnvelope] = deque(maxlen=EVENT_HISTORY_LIMIT)


def publish(event_type: str, actor_user_id: int | None, payload: dict[str, Any]) -> EventEnvelope:
    envelope: EventEnvelope = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": actor_user_id,
        "correlation_id": get_correlation_id(),
        "version": 1,
        "payload": payload,
    }
    published_events.append(envelope)
    event_bus.dispatch(envelope)
    return envelope
