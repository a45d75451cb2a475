"""
Player board - the presentation side of Marquee.

The board is an ordered list of the tracked players plus a "now playing"
summary of the active player. HTTP clients read it through the API; the
player manager writes it through the sink methods (`add_at`, `remove_for`,
`reveal`, `hide`). Clients mark the board open or closed, which tells the
manager whether revealing a player is visible to anyone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from marquee.core.events import (
    ActivePlayerRemoveEvent,
    ActivePlayerUpdateEvent,
    EventBus,
    PlayersConnectedEvent,
    PlayersDisconnectedEvent,
)
from marquee.player.handle import PlayerState

logger = logging.getLogger(__name__)


@dataclass
class BoardItem:
    """One player shown on the board."""

    handle: Any
    revealed: bool = False

    def to_dict(self) -> dict[str, Any]:
        state = self.handle.state
        return {
            "owner": self.handle.owner,
            "bus_name": self.handle.bus_name,
            "status": state.status.value if state.status else None,
            "metadata": state.metadata or {},
            "revealed": self.revealed,
        }


class PlayerBoard:
    """
    In-memory presentation sink.

    Items keep the order they were inserted in; `add_at` clamps the
    position to the current length.
    """

    def __init__(self) -> None:
        self._items: list[BoardItem] = []
        self._open = False
        self._open_handlers: list[Callable[[bool], None]] = []

        self.watching = False
        self.now_playing: PlayerState | None = None

    # -------------------------------------------------------------------------
    # Sink methods
    # -------------------------------------------------------------------------

    def add_at(self, handle: Any, position: int) -> None:
        position = max(0, min(position, len(self._items)))
        self._items.insert(position, BoardItem(handle=handle))
        logger.debug("Board: added %s at %d", handle.bus_name, position)

    def remove_for(self, handle: Any) -> None:
        item = self._find(handle)
        if item is not None:
            self._items.remove(item)
            logger.debug("Board: removed %s", handle.bus_name)

    def reveal(self, handle: Any) -> None:
        item = self._find(handle)
        if item is not None:
            item.revealed = True

    def hide(self, handle: Any) -> None:
        item = self._find(handle)
        if item is not None:
            item.revealed = False

    def is_container_visible(self) -> bool:
        return self._open

    def subscribe_open_state(self, handler: Callable[[bool], None]) -> Callable[[], None]:
        """
        Subscribe to the board being opened or closed.

        Returns:
            A function that removes the subscription.
        """
        self._open_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._open_handlers:
                self._open_handlers.remove(handler)

        return unsubscribe

    def set_open(self, is_open: bool) -> None:
        """Open or close the board and notify subscribers on change."""
        if is_open == self._open:
            return
        self._open = is_open
        logger.debug("Board %s", "opened" if is_open else "closed")
        for handler in list(self._open_handlers):
            try:
                handler(is_open)
            except Exception as e:
                logger.exception("Error in board open-state handler: %s", e)

    def _find(self, handle: Any) -> BoardItem | None:
        for item in self._items:
            if item.handle is handle:
                return item
        return None

    # -------------------------------------------------------------------------
    # Active player summary
    # -------------------------------------------------------------------------

    def attach(self, events: EventBus) -> None:
        """Follow a player manager's events."""
        events.subscribe(PlayersConnectedEvent, self._on_players_connected)
        events.subscribe(PlayersDisconnectedEvent, self._on_players_disconnected)
        events.subscribe(ActivePlayerUpdateEvent, self._on_active_update)
        events.subscribe(ActivePlayerRemoveEvent, self._on_active_remove)

    def detach(self, events: EventBus) -> None:
        events.unsubscribe(PlayersConnectedEvent, self._on_players_connected)
        events.unsubscribe(PlayersDisconnectedEvent, self._on_players_disconnected)
        events.unsubscribe(ActivePlayerUpdateEvent, self._on_active_update)
        events.unsubscribe(ActivePlayerRemoveEvent, self._on_active_remove)

    def _on_players_connected(self, event: PlayersConnectedEvent) -> None:
        self.watching = True

    def _on_players_disconnected(self, event: PlayersDisconnectedEvent) -> None:
        self.watching = False

    def _on_active_update(self, event: ActivePlayerUpdateEvent) -> None:
        update = event.state or PlayerState()
        if self.now_playing is None:
            self.now_playing = PlayerState(status=update.status, metadata=update.metadata)
            return
        if update.status is not None:
            self.now_playing.status = update.status
        if update.metadata is not None:
            self.now_playing.metadata = update.metadata

    def _on_active_remove(self, event: ActivePlayerRemoveEvent) -> None:
        self.now_playing = None

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    def items(self) -> list[BoardItem]:
        """Get the items in display order (copy, safe to iterate)."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
