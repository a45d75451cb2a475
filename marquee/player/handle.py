"""
Player handle representation for Marquee.

This module defines the state types shared by every player and the
MprisPlayer class which represents one MPRIS media player on the bus
(e.g. VLC, Rhythmbox, a browser tab).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol

from dbus_next import Variant
from dbus_next.errors import DBusError, InterfaceNotFoundError

from marquee.bus.names import OBJECT_PATH, PLAYER_INTERFACE, player_name

if TYPE_CHECKING:
    from dbus_next.aio import MessageBus

logger = logging.getLogger(__name__)

PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"


class PlaybackStatus(Enum):
    """MPRIS playback status, in order of preference for the active player."""

    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"

    @classmethod
    def from_mpris(cls, value: str) -> "PlaybackStatus":
        """Get status from the MPRIS PlaybackStatus string."""
        try:
            return cls(value)
        except ValueError:
            return cls.STOPPED


@dataclass
class PlayerState:
    """
    Status and metadata of a player.

    A handle's `state` always has both fields. An update passed to
    listeners only carries the fields that changed; the others are None.
    """

    status: PlaybackStatus | None = None
    metadata: dict[str, Any] | None = None

    @property
    def title(self) -> str:
        return str((self.metadata or {}).get("xesam:title", ""))

    @property
    def artists(self) -> list[str]:
        artists = (self.metadata or {}).get("xesam:artist", [])
        if isinstance(artists, str):
            return [artists]
        return [str(a) for a in artists]

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.status is not None:
            result["status"] = self.status.value
        if self.metadata is not None:
            result["metadata"] = self.metadata
        return result


# listener(handle, update)
UpdateListener = Callable[[Any, PlayerState], None]


class PlayerHandle(Protocol):
    """What the player manager needs from one connected player."""

    bus_name: str
    owner: str
    state: PlayerState

    def subscribe(self, listener: UpdateListener) -> Callable[[], None]: ...

    def dispose(self) -> None: ...


def unpack_variant(value: Any) -> Any:
    """Recursively replace dbus-next Variants with their plain values."""
    if isinstance(value, Variant):
        value = value.value
    if isinstance(value, dict):
        return {k: unpack_variant(v) for k, v in value.items()}
    if isinstance(value, list):
        return [unpack_variant(v) for v in value]
    return value


class PlayerUpdates:
    """
    Listener bookkeeping shared by player handles.

    Listeners are called with `(handle, update)`; the list is copied before
    dispatch so a listener may unsubscribe itself or others.
    """

    def __init__(self) -> None:
        self._listeners: list[UpdateListener] = []

    def subscribe(self, listener: UpdateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, handle: Any, update: PlayerState) -> None:
        for listener in list(self._listeners):
            listener(handle, update)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


class MprisPlayer:
    """
    Represents one MPRIS player on the bus.

    The handle is usable as soon as it is created: its state starts out as
    STOPPED with empty metadata and is filled in by a background task that
    reads `PlaybackStatus` and `Metadata`. After that, PropertiesChanged
    signals keep it current.

    Attributes:
        bus_name: The advertised service name. The manager may upgrade it
            from the master name to an instance name.
        state: Current status and metadata.
    """

    def __init__(self, bus: "MessageBus", bus_name: str, owner: str) -> None:
        """
        Initialize a new player handle and start loading its state.

        Args:
            bus: Connected message bus.
            bus_name: Service name, e.g. "org.mpris.MediaPlayer2.vlc".
            owner: Unique bus owner, e.g. ":1.42".
        """
        self._bus = bus
        self.bus_name = bus_name
        self._owner = owner

        self.state = PlayerState(status=PlaybackStatus.STOPPED, metadata={})
        self._updates = PlayerUpdates()
        self._properties = None
        self._disposed = False

        self._load_task: asyncio.Task[None] | None = asyncio.get_running_loop().create_task(
            self._load()
        )

    @property
    def owner(self) -> str:
        """Get the unique bus owner currently holding this player."""
        return self._owner

    @owner.setter
    def owner(self, value: str) -> None:
        """Record a new owner after an ownership hand-off."""
        self._owner = value

    @property
    def name(self) -> str:
        """Get the short player name (e.g. "vlc")."""
        return player_name(self.bus_name)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: UpdateListener) -> Callable[[], None]:
        """
        Register a listener for state updates.

        Returns:
            A function that removes the listener.
        """
        return self._updates.subscribe(listener)

    async def _load(self) -> None:
        """Read the initial state and follow PropertiesChanged."""
        try:
            introspection = await self._bus.introspect(self.bus_name, OBJECT_PATH)
            proxy = self._bus.get_proxy_object(self.bus_name, OBJECT_PATH, introspection)
            player = proxy.get_interface(PLAYER_INTERFACE)
            properties = proxy.get_interface(PROPERTIES_INTERFACE)
            status = await player.get_playback_status()
            metadata = await player.get_metadata()
        except (DBusError, InterfaceNotFoundError, AttributeError) as e:
            logger.warning("Could not load state of %s (%s): %s", self.bus_name, self._owner, e)
            return
        finally:
            self._load_task = None

        if self._disposed:
            return

        properties.on_properties_changed(self._on_properties_changed)
        self._properties = properties

        self._apply(
            PlayerState(
                status=PlaybackStatus.from_mpris(status),
                metadata=unpack_variant(metadata),
            )
        )

    def _on_properties_changed(
        self,
        interface_name: str,
        changed: dict[str, Variant],
        invalidated: list[str],
    ) -> None:
        if interface_name != PLAYER_INTERFACE:
            return

        update = PlayerState()
        if "PlaybackStatus" in changed:
            update.status = PlaybackStatus.from_mpris(changed["PlaybackStatus"].value)
        if "Metadata" in changed:
            update.metadata = unpack_variant(changed["Metadata"].value)

        if update.status is None and update.metadata is None:
            return

        self._apply(update)

    def _apply(self, update: PlayerState) -> None:
        """Merge an update into the state and tell the listeners."""
        if update.status is not None:
            self.state.status = update.status
        if update.metadata is not None:
            self.state.metadata = update.metadata

        logger.debug("Update from %s: %s", self.bus_name, update.to_dict())
        self._updates.notify(self, update)

    def dispose(self) -> None:
        """Stop following the player and drop all listeners."""
        if self._disposed:
            return

        self._disposed = True
        if self._load_task is not None:
            self._load_task.cancel()
            self._load_task = None
        if self._properties is not None:
            self._properties.off_properties_changed(self._on_properties_changed)
            self._properties = None
        self._updates.clear()

        logger.debug("Disposed player %s (%s)", self.bus_name, self._owner)

    def __repr__(self) -> str:
        """Return a string representation for debugging."""
        status = self.state.status.name if self.state.status else "UNKNOWN"
        return f"MprisPlayer(bus_name={self.bus_name!r}, owner={self._owner!r}, status={status})"

    def __str__(self) -> str:
        """Return a human-readable string representation."""
        return f"{self.name} ({self._owner})"
