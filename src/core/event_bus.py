"""EventBus - in-process notification channel between services and the front end

Rules:
- services never import each other; they announce committed changes here
- events carry identifiers only, never ORM objects
- nested propagation is capped at MAX_DEPTH
- the same source may not re-emit the same event type inside one propagation chain
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import local
from typing import Any, Callable, Dict, List, Set

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5


@dataclass
class DomainEvent:
    """Event container

    Args:
        event_type: event name (see EventTypes)
        data: identifiers describing the change
        source: emitting service name
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """Synchronous event bus

    Usage:
        bus = EventBus()
        bus.subscribe(EventTypes.REQUEST_CLAIMED, notifier.on_claimed)
        bus.emit(DomainEvent(event_type=EventTypes.REQUEST_CLAIMED, data={"request_id": 7}, source="request_store"))

    Propagation state is tracked per thread, so concurrent handlers of
    different interactions do not see each other's chains.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._state = local()

    def _chain(self) -> Set[str]:
        if not hasattr(self._state, "emitted"):
            self._state.emitted = set()
            self._state.depth = 0
        return self._state.emitted

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler"""
        self._handlers[event_type].append(handler)
        logger.debug(f"EventBus subscribe: {event_type} -> {handler.__qualname__}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler"""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    f"EventBus unsubscribe: {event_type} -> {handler.__qualname__}"
                )
            except ValueError:
                logger.warning(
                    f"Handler not registered: {event_type} -> {handler.__qualname__}"
                )

    def emit(self, event: DomainEvent) -> None:
        """Deliver an event to every handler synchronously.

        Guards:
        1. events beyond MAX_DEPTH nested emissions are dropped
        2. a repeated source:event_type inside one chain is dropped
        """
        emitted = self._chain()
        depth = self._state.depth

        if depth >= MAX_DEPTH:
            logger.warning(
                f"EventBus depth exceeded ({MAX_DEPTH}): "
                f"{event.source}:{event.event_type} dropped"
            )
            return

        chain_key = f"{event.source}:{event.event_type}"
        if depth > 0 and chain_key in emitted:
            logger.warning(f"EventBus duplicate event blocked: {chain_key}")
            return

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug(f"EventBus: no subscribers for {event.event_type}")
            return

        emitted.add(chain_key)
        event._depth = depth

        logger.info(
            f"EventBus dispatch: {event.event_type} (source={event.source}, "
            f"depth={depth}, handlers={len(handlers)})"
        )

        self._state.depth = depth + 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"EventBus handler error: {handler.__qualname__} "
                        f"(event={event.event_type})"
                    )
        finally:
            self._state.depth = depth
            if depth == 0:
                emitted.clear()

    def clear(self) -> None:
        """Drop every subscription (tests)"""
        self._handlers.clear()
        self._chain().clear()
        self._state.depth = 0

    @property
    def handler_count(self) -> int:
        """Total registered handlers"""
        return sum(len(h) for h in self._handlers.values())
