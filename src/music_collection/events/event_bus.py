"""
Event Bus - Event-driven communication system.

This module provides a lightweight event bus for domain events, so that
the track catalog can notify the playlist engine of deletions without
depending on it.
"""

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from uuid import uuid4

logger = logging.getLogger(__name__)


class EventPriority(Enum):
    """Priority levels for events."""
    NORMAL = 1
    CRITICAL = 3


T = TypeVar('T', bound='DomainEvent')


@dataclass(kw_only=True)
class DomainEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: f"evt_{uuid4().hex}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: Optional[str] = None
    aggregate_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Set aggregate_type from class name if not provided
        if not self.aggregate_type and self.aggregate_id:
            self.aggregate_type = self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "event_type": self.__class__.__name__,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "metadata": self.metadata,
            "data": self._get_event_data(),
        }

    def _get_event_data(self) -> Dict[str, Any]:
        """Get event-specific data for serialization."""
        return {}


class EventHandler(ABC):
    """Base class for event handlers."""

    @abstractmethod
    async def handle(self, event: DomainEvent) -> None:
        """Handle the event."""
        pass

    @property
    @abstractmethod
    def event_types(self) -> List[Type[DomainEvent]]:
        """Return the list of event types this handler can handle."""
        pass


class EventBus:
    """
    Central event bus for publishing and subscribing to domain events.

    Handlers are held by weak reference so a discarded service does not
    keep receiving events. ``CRITICAL`` events are delivered to handlers
    one after another, in subscription order; other events fan out
    concurrently. Either way ``publish`` returns only after every handler
    has finished. A failing handler is logged and does not stop the
    others.
    """

    def __init__(self, max_events_in_memory: int = 1000):
        self._handlers: Dict[Type[DomainEvent], List[weakref.ref]] = {}
        self._middleware: List[Callable] = []
        self._event_store: List[DomainEvent] = []
        self._max_events_in_memory = max_events_in_memory

    def subscribe(
        self,
        event_type: Type[T],
        handler: Callable[[T], Any]
    ) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: The event class to subscribe to
            handler: The handler function/method
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []

        if hasattr(handler, '__self__'):
            ref = weakref.WeakMethod(handler)
        else:
            ref = weakref.ref(handler)

        self._handlers[event_type].append(ref)

    def register(self, handler: EventHandler) -> None:
        """Subscribe an ``EventHandler`` to all of its event types."""
        for event_type in handler.event_types:
            self.subscribe(event_type, handler.handle)

    def unsubscribe(
        self,
        event_type: Type[DomainEvent],
        handler: Callable
    ) -> None:
        """Unsubscribe a handler from events of a specific type."""
        if event_type in self._handlers:
            self._handlers[event_type] = [
                ref for ref in self._handlers[event_type]
                if ref() is not None and ref() != handler
            ]

    async def publish(
        self,
        event: DomainEvent,
        priority: EventPriority = EventPriority.NORMAL
    ) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event: The event to publish
            priority: Event priority for processing order
        """
        self._event_store.append(event)
        if len(self._event_store) > self._max_events_in_memory:
            self._event_store.pop(0)

        for middleware in self._middleware:
            event = await middleware(event)

        handlers = []
        event_type = type(event)

        if event_type in self._handlers:
            handlers.extend(ref() for ref in self._handlers[event_type] if ref() is not None)

        for parent_type in event_type.__mro__[1:]:
            if issubclass(parent_type, DomainEvent) and parent_type in self._handlers:
                handlers.extend(ref() for ref in self._handlers[parent_type] if ref() is not None)

        if not handlers:
            logger.debug(f"No subscribers for {event_type.__name__}")
            return

        if priority == EventPriority.CRITICAL:
            await self._handle_sync(event, handlers)
        else:
            await self._handle_async(event, handlers)

    def add_middleware(self, middleware: Callable[[DomainEvent], Any]) -> None:
        """
        Add middleware to process events before handling.

        Middleware must be a coroutine function returning the (possibly
        modified) event.
        """
        self._middleware.append(middleware)

    def get_events(
        self,
        aggregate_id: Optional[str] = None,
        event_type: Optional[Type[DomainEvent]] = None
    ) -> List[DomainEvent]:
        """Get events from the store with optional filtering."""
        filtered_events = self._event_store

        if aggregate_id:
            filtered_events = [e for e in filtered_events if e.aggregate_id == aggregate_id]

        if event_type:
            filtered_events = [e for e in filtered_events if isinstance(e, event_type)]

        return filtered_events

    async def _handle_sync(self, event: DomainEvent, handlers: List[Callable]) -> None:
        """Handle event handler by handler, in order."""
        for handler in handlers:
            await self._safe_handle(handler, event)

    async def _handle_async(self, event: DomainEvent, handlers: List[Callable]) -> None:
        """Fan the event out to all handlers concurrently."""
        tasks = [asyncio.create_task(self._safe_handle(handler, event)) for handler in handlers]
        await asyncio.gather(*tasks)

    async def _safe_handle(self, handler: Callable, event: DomainEvent) -> None:
        try:
            result = handler(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception(f"Error in event handler {handler} for {type(event).__name__}")

    def clear(self) -> None:
        """Clear all handlers and events."""
        self._handlers.clear()
        self._middleware.clear()
        self._event_store.clear()
