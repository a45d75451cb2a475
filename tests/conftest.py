"""
Shared fakes for the player manager tests.

The bus gateway and the player handles are replaced by small in-memory
fakes; the real PlayerBoard is used as the presentation sink.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from marquee.config import KEEP_ACTIVE_OPEN_KEY, Settings
from marquee.core.events import Event, EventBus
from marquee.player.handle import PlaybackStatus, PlayerState, PlayerUpdates
from marquee.player.manager import PlayerManager
from marquee.web.board import PlayerBoard

# Short enough to keep the suite fast, long enough to debounce two calls
ADD_DELAY = 0.02


class FakeGateway:
    """In-memory bus: a name -> owner map plus a NameOwnerChanged emitter."""

    def __init__(self, owners: dict[str, str] | None = None) -> None:
        self.owners: dict[str, str] = dict(owners or {})
        self.extra_names: list[str] = ["org.freedesktop.DBus", "org.freedesktop.Notifications"]
        self.handler: Callable[[str, str | None, str | None], None] | None = None
        self.resolved: list[str] = []

    async def list_service_names(self) -> list[str]:
        return self.extra_names + list(self.owners)

    async def resolve_owner(self, name: str) -> str | None:
        self.resolved.append(name)
        return self.owners.get(name)

    def subscribe_owner_changed(self, handler: Callable[[str, str | None, str | None], None]) -> Callable[[], None]:
        self.handler = handler

        def unsubscribe() -> None:
            self.handler = None

        return unsubscribe

    def emit(self, name: str, old_owner: str | None, new_owner: str | None) -> None:
        if self.handler is not None:
            self.handler(name, old_owner, new_owner)


class FakePlayer:
    """Player handle whose state is driven by the test."""

    def __init__(self, bus_name: str, owner: str, status: PlaybackStatus = PlaybackStatus.STOPPED) -> None:
        self.bus_name = bus_name
        self.owner = owner
        self.state = PlayerState(status=status, metadata={})
        self.disposed = False
        self._updates = PlayerUpdates()

    def subscribe(self, listener: Callable[[Any, PlayerState], None]) -> Callable[[], None]:
        return self._updates.subscribe(listener)

    @property
    def listeners(self) -> int:
        return len(self._updates)

    def emit(self, status: PlaybackStatus | None = None, metadata: dict[str, Any] | None = None) -> None:
        update = PlayerState(status=status, metadata=metadata)
        if status is not None:
            self.state.status = status
        if metadata is not None:
            self.state.metadata = metadata
        self._updates.notify(self, update)

    def dispose(self) -> None:
        self.disposed = True
        self._updates.clear()

    def __repr__(self) -> str:
        return f"FakePlayer({self.bus_name!r}, {self.owner!r})"


class PlayerFactory:
    """Records every handle the manager creates."""

    def __init__(self) -> None:
        self.created: list[FakePlayer] = []
        self.statuses: dict[str, PlaybackStatus] = {}

    def __call__(self, bus_name: str, owner: str) -> FakePlayer:
        player = FakePlayer(bus_name, owner, self.statuses.get(bus_name, PlaybackStatus.STOPPED))
        self.created.append(player)
        return player


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, events: EventBus) -> None:
        self.events: list[Event] = []
        events.subscribe(Event, self.events.append)

    def of_type(self, event_class: type[Event]) -> list[Event]:
        return [e for e in self.events if isinstance(e, event_class)]

    def clear(self) -> None:
        self.events.clear()


async def settle(delay: float = ADD_DELAY * 3) -> None:
    """Let pending add delays fire."""
    await asyncio.sleep(delay)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def factory() -> PlayerFactory:
    return PlayerFactory()


@pytest.fixture
def board() -> PlayerBoard:
    return PlayerBoard()


@pytest.fixture
def settings() -> Settings:
    return Settings({KEEP_ACTIVE_OPEN_KEY: False})


@pytest.fixture
def manager(gateway: FakeGateway, factory: PlayerFactory, board: PlayerBoard, settings: Settings) -> PlayerManager:
    manager = PlayerManager(
        gateway=gateway,
        player_factory=factory,
        sink=board,
        settings=settings,
        add_delay=ADD_DELAY,
    )
    board.attach(manager.events)
    yield manager
    manager.destroy()


@pytest.fixture
def recorder(manager: PlayerManager) -> EventRecorder:
    return EventRecorder(manager.events)
