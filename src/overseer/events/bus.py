"""In-process event bus used to publish engine outcomes.

The production transport is an external at-least-once pub/sub system; this bus
is the seam it plugs into. Adapters subscribe to the topics they forward.

Usage:
    from overseer.events import EventBus, Topic

    bus = EventBus()
    bus.subscribe(Topic.SUPERVISION_ACTIVATED, lambda msg: print(msg.payload))
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping

from pydantic import BaseModel

from overseer.observability.logging import get_logger

logger = get_logger(__name__)

__all__ = ["Topic", "BusMessage", "EventBus", "Handler"]


class Topic(str, Enum):
    """Topics published by the engine."""

    ADJUDICATION_DECIDED = "adjudication.decided"
    ADJUDICATION_INVESTIGATE = "adjudication.investigate"
    SUPERVISION_ACTIVATED = "supervision.activated"
    SCOPE_CLASSIFIED = "scope.classified"
    SCOPE_SUSPEND = "scope.suspend"
    PLANNER_REPLAN_REQUESTED = "planner.replan_requested"
    USER_NOTIFICATION = "user.notification"
    DEGRADED_MODE_ALERT = "alerts.degraded_mode"


@dataclass(frozen=True)
class BusMessage:
    topic: Topic
    payload: Dict[str, Any]
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[BusMessage], None]


def _serialize(payload: BaseModel | Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return dict(payload)


class EventBus:
    """Synchronous fan-out of messages to topic subscribers.

    A failing subscriber is logged and skipped; the remaining subscribers still
    receive the message.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Topic, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: Topic, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: Topic, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(topic)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def publish(self, topic: Topic, payload: BaseModel | Mapping[str, Any]) -> BusMessage:
        message = BusMessage(topic=topic, payload=_serialize(payload))
        with self._lock:
            handlers = list(self._handlers.get(topic, ()))
        for handler in handlers:
            try:
                handler(message)
            except Exception:
                logger.error(
                    "bus_handler_failed",
                    topic=topic.value,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    exc_info=True,
                )
        logger.debug("bus_message_published", topic=topic.value, subscribers=len(handlers))
        return message
