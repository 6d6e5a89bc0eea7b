"""EventBus and graph mutation events.

Events are emitted only after the mutating transaction has committed, so
handlers (embedding refresh, caches) always observe durable state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of committed graph mutation."""

    NODE_WRITTEN = "node_written"
    NODE_DELETED = "node_deleted"
    EDGE_WRITTEN = "edge_written"
    EDGE_DELETED = "edge_deleted"


@dataclass(frozen=True, slots=True)
class GraphEvent:
    """Immutable record of a committed node or edge mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        tenant_id: Tenant that owns the entity.
        entity_id: Id of the node or edge.
        text_changed: Whether fields feeding the embedding text may have changed.
    """

    event_type: EventType
    tenant_id: str
    entity_id: str
    text_changed: bool = True


class EventBus:
    """Dispatches graph events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated: a failing handler
    leaves a derived index stale, it never fails the committed write.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: GraphEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s/%s",
                    handler,
                    event.event_type.value,
                    event.tenant_id,
                    event.entity_id,
                    exc_info=True,
                )

    async def emit_all(self, events: list[GraphEvent]) -> None:
        for event in events:
            await self.emit(event)

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
