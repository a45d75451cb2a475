"""
Event Bus for Marquee.

This module provides a small typed pub/sub system for decoupled communication
between the player manager and whoever owns it (the server, the web board,
tests). Handlers are registered per event class, not per string name.

Event types:
- PlayersConnectedEvent: the first player was admitted
- PlayersDisconnectedEvent: the last player was removed
- ActivePlayerUpdateEvent: the active player changed, or reported an update
- ActivePlayerRemoveEvent: there is no active player anymore

Handlers are plain callables and run synchronously inside the transition
that publishes the event, so an observer always sees the manager in the
state that produced the event.

Usage:
    events = EventBus()

    def on_active(event: ActivePlayerUpdateEvent) -> None:
        print(f"Active player is now {event.state.status}")

    events.subscribe(ActivePlayerUpdateEvent, on_active)
    events.publish(ActivePlayerUpdateEvent(state=PlayerState()))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TypeVar

if TYPE_CHECKING:
    from marquee.player.handle import PlayerState

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class PlayersConnectedEvent(Event):
    """Fired when the first player is admitted (bus-wide observers may attach)."""

    event_type: str = field(default="players.connected", init=False)


@dataclass
class PlayersDisconnectedEvent(Event):
    """Fired when the last tracked player is removed."""

    event_type: str = field(default="players.disconnected", init=False)


@dataclass
class ActivePlayerUpdateEvent(Event):
    """
    Fired when the active player changes or reports an update.

    On a change of active player, `state` is the full state of the new
    player. On an update of the current one, `state` only carries the
    fields that changed.
    """

    event_type: str = field(default="player.active.update", init=False)
    state: PlayerState | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.event_type}
        if self.state is not None:
            result["state"] = self.state.to_dict()
        return result


@dataclass
class ActivePlayerRemoveEvent(Event):
    """Fired when no player is active anymore."""

    event_type: str = field(default="player.active.remove", init=False)


E = TypeVar("E", bound=Event)
EventHandler = Callable[[Any], None]


class EventBus:
    """
    Simple synchronous pub/sub event bus.

    Supports:
    - Multiple handlers per event class
    - Subscribing to the `Event` base class to receive everything
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[EventHandler]] = {}

    def subscribe(self, event_class: type[E], handler: Callable[[E], None]) -> None:
        """
        Subscribe to events of a specific class.

        Args:
            event_class: Event class to subscribe to. Subclasses match too.
            handler: Function to call when a matching event is published.
        """
        self._handlers.setdefault(event_class, []).append(handler)
        logger.debug("Subscribed to %s: %s", event_class.__name__, handler)

    def unsubscribe(self, event_class: type[E], handler: Callable[[E], None]) -> bool:
        """
        Unsubscribe a handler from an event class.

        Returns True if handler was found and removed.
        """
        handlers = self._handlers.get(event_class)
        if handlers is None:
            return False
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        logger.debug("Unsubscribed from %s: %s", event_class.__name__, handler)
        return True

    def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers that received the event.
        """
        matching_handlers: list[EventHandler] = []
        for event_class, handlers in self._handlers.items():
            if isinstance(event, event_class):
                matching_handlers.extend(handlers)

        handlers_called = 0
        for handler in matching_handlers:
            try:
                handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event.event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event.event_type, handlers_called)

        return handlers_called

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        logger.debug("Cleared all event subscriptions")
