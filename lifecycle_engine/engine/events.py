"""
Domain events for the Lifecycle Engine.

Events are produced by a committed, version-guarded save and delivered
to subscribers through an in-process EventBus.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, DefaultDict, List, Type

from pydantic import BaseModel, Field

from ..models import LifecycleType, new_id, utcnow

logger = logging.getLogger(__name__)


class DomainEvent(BaseModel):
    """Base class for lifecycle domain events."""
    event_id: str = Field(default_factory=new_id)
    occurred_at: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}


class LifecycleCompleted(DomainEvent):
    """A lifecycle reached Completed because all of its tasks were completed."""
    lifecycle_id: str
    employee_id: str
    lifecycle_type: LifecycleType
    version: int = Field(..., description="Version at which the completion was committed")


EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe dispatcher.

    Handlers run inline in subscription order. A failing handler is logged
    and does not prevent the remaining handlers from running.
    """

    def __init__(self):
        self._handlers: DefaultDict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler):
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent):
        handlers = self._handlers.get(type(event), [])
        logger.debug(f"Publishing {type(event).__name__} {event.event_id} to {len(handlers)} handlers")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for "
                             f"{type(event).__name__} {event.event_id}: {e}")

    def publish_all(self, events: List[DomainEvent]):
        for event in events:
            self.publish(event)
