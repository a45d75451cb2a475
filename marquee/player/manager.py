"""
Player Manager - lifecycle of the MPRIS players on the bus.

The manager tracks every MPRIS player by its unique bus owner and decides
which one is the active player. It:

- discovers the players already on the bus at startup
- admits new players after a short delay (players need a moment to export
  their interfaces, adding them right away would capture empty state)
- follows NameOwnerChanged to remove players that went away and to move
  players whose name was handed to a new owner
- keeps the active player current as players change status

All state is mutated from the event loop thread only: bus signals, timer
callbacks and resolution results each run to completion before the next
one starts. Every delayed continuation re-checks the state it relies on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Iterator, Protocol

from marquee.bus.names import BusNameKind, is_mpris_name, name_kind
from marquee.config import KEEP_ACTIVE_OPEN_KEY
from marquee.core.events import (
    ActivePlayerRemoveEvent,
    ActivePlayerUpdateEvent,
    EventBus,
    PlayersConnectedEvent,
    PlayersDisconnectedEvent,
)
from marquee.player.selection import players_by_status, select_active_player

if TYPE_CHECKING:
    from marquee.bus.gateway import BusGateway
    from marquee.config import Settings
    from marquee.player.handle import PlaybackStatus, PlayerHandle, PlayerState

logger = logging.getLogger(__name__)

# Builds the handle for (bus_name, owner)
PlayerFactory = Callable[[str, str], "PlayerHandle"]


class PresentationSink(Protocol):
    """Where tracked players are shown."""

    def add_at(self, handle: Any, position: int) -> None: ...

    def remove_for(self, handle: Any) -> None: ...

    def reveal(self, handle: Any) -> None: ...

    def hide(self, handle: Any) -> None: ...

    def is_container_visible(self) -> bool: ...

    def subscribe_open_state(self, handler: Callable[[bool], None]) -> Callable[[], None]: ...


@dataclass
class PlayerEntry:
    """One tracked player, keyed by its bus owner."""

    owner: str
    handle: PlayerHandle
    subscriptions: list[Callable[[], None]] = field(default_factory=list)

    @property
    def bus_name(self) -> str:
        return self.handle.bus_name

    def release(self) -> None:
        """Drop every subscription this entry holds."""
        for unsubscribe in self.subscriptions:
            unsubscribe()
        self.subscriptions.clear()


@dataclass
class PendingAdd:
    """A debounced sighting waiting for its timer."""

    owner: str
    timer: asyncio.TimerHandle


class PlayerManager:
    """
    Tracks MPRIS players and arbitrates the active one.

    Players are indexed by their unique bus owner. The active player is
    remembered by owner too, so it disappears together with its entry.

    Events are published on `self.events`:
    - PlayersConnectedEvent when the first player is added
    - PlayersDisconnectedEvent when the last player is removed
    - ActivePlayerUpdateEvent when the active player changes or updates
    - ActivePlayerRemoveEvent when no player is active anymore
    """

    def __init__(
        self,
        gateway: BusGateway,
        player_factory: PlayerFactory,
        sink: PresentationSink,
        settings: Settings,
        *,
        add_delay: float = 1.0,
        desired_position: int = 0,
        events: EventBus | None = None,
    ) -> None:
        """
        Initialize the manager. Nothing happens on the bus until `start()`.

        Args:
            gateway: Bus access (name listing, owner lookup, owner changes).
            player_factory: Builds a handle for (bus_name, owner).
            sink: Presentation layer the players are placed in.
            settings: Live settings; the manager follows keep_active_open.
            add_delay: Seconds to wait before admitting a new player.
            desired_position: Sink position of the first player.
            events: Event bus to publish on (a new one by default).
        """
        self._gateway = gateway
        self._player_factory = player_factory
        self._sink = sink
        self._settings = settings
        self._add_delay = add_delay
        self._desired_position = desired_position
        self.events = events or EventBus()

        self._players: dict[str, PlayerEntry] = {}
        self._pending_adds: dict[str, PendingAdd] = {}

        self._active_owner: str | None = None
        self._active_unsubscribe: Callable[[], None] | None = None

        self._unsubscribes: list[Callable[[], None]] = []
        self._disabling = False

    # =========================================================================
    # Discovery
    # =========================================================================

    async def start(self) -> None:
        """Subscribe to bus and settings changes and add the players already running."""
        if self._disabling:
            return

        self._unsubscribes.append(
            self._settings.subscribe(KEEP_ACTIVE_OPEN_KEY, self._on_keep_active_open_changed)
        )
        self._unsubscribes.append(self._sink.subscribe_open_state(self._on_open_state_changed))
        self._unsubscribes.append(self._gateway.subscribe_owner_changed(self._on_name_owner_changed))

        names = await self._gateway.list_service_names()
        if self._disabling:
            return

        player_names = sorted(name for name in names if is_mpris_name(name))
        logger.info("Found %d MPRIS name(s) on the bus", len(player_names))

        await asyncio.gather(*(self._resolve_and_add(name) for name in player_names))

    async def _resolve_and_add(self, bus_name: str) -> None:
        try:
            owner = await self._gateway.resolve_owner(bus_name)
        except Exception as e:
            logger.warning("Could not resolve owner of %s: %s", bus_name, e)
            return

        if self._disabling:
            logger.debug("Dropping owner of %s: manager is shutting down", bus_name)
            return
        if not owner:
            logger.debug("Skipping %s: no owner", bus_name)
            return

        self.add_player(bus_name, owner)

    # =========================================================================
    # Admission
    # =========================================================================

    def add_player(self, bus_name: str, owner: str) -> None:
        """
        Schedule the admission of a player.

        A new sighting of a bus name restarts its delay; at most one
        admission per bus name is pending at any time.
        """
        if self._disabling:
            return

        pending = self._pending_adds.pop(bus_name, None)
        if pending is not None:
            pending.timer.cancel()
            logger.debug("Restarting add delay for %s", bus_name)

        timer = asyncio.get_running_loop().call_later(self._add_delay, self._on_add_timeout, bus_name)
        self._pending_adds[bus_name] = PendingAdd(owner=owner, timer=timer)

    def _on_add_timeout(self, bus_name: str) -> None:
        pending = self._pending_adds.pop(bus_name, None)
        if pending is None or self._disabling:
            return
        self._admit(bus_name, pending.owner)

    def _admit(self, bus_name: str, owner: str) -> None:
        entry = self._players.get(owner)
        if entry is not None:
            previous = entry.bus_name
            # HAVE:       ADDING:     ACTION:
            # master      master      reject, cannot happen
            # master      instance    upgrade to instance
            # instance    master      reject, duplicate
            # instance    instance    reject, cannot happen
            kinds = (name_kind(previous), name_kind(bus_name))
            if kinds == (BusNameKind.MASTER, BusNameKind.INSTANCE):
                logger.info("Player %s upgraded to instance name %s", previous, bus_name)
                entry.handle.bus_name = bus_name
            else:
                logger.debug("Ignoring %s for %s: already tracked as %s", bus_name, owner, previous)
            return

        handle = self._player_factory(bus_name, owner)
        entry = PlayerEntry(owner=owner, handle=handle)
        self._players[owner] = entry
        logger.info("Player added: %s (%s)", bus_name, owner)

        if len(self._players) == 1:
            self.events.publish(PlayersConnectedEvent())

        entry.subscriptions.append(handle.subscribe(self._on_player_update))
        self._add_player_to_sink(entry)

    def _add_player_to_sink(self, entry: PlayerEntry) -> None:
        position = self._desired_position + len(self._players)
        self._sink.add_at(entry.handle, position)
        self.refresh_active_player(entry.handle)

    # =========================================================================
    # Ownership changes
    # =========================================================================

    def _on_name_owner_changed(self, bus_name: str, old_owner: str | None, new_owner: str | None) -> None:
        if not is_mpris_name(bus_name) or self._disabling:
            return

        if new_owner and not old_owner:
            self.add_player(bus_name, new_owner)
        elif old_owner and not new_owner:
            self.remove_player(bus_name, old_owner)
        elif old_owner and new_owner:
            self.change_player_owner(bus_name, old_owner, new_owner)

    def remove_player(self, bus_name: str | None, owner: str) -> None:
        """
        Remove the player held by `owner` right away.

        A pending admission of `bus_name` for the same owner is cancelled too.
        """
        if bus_name is not None:
            pending = self._pending_adds.get(bus_name)
            if pending is not None and pending.owner == owner:
                pending.timer.cancel()
                del self._pending_adds[bus_name]
                logger.debug("Cancelled pending add of %s: %s went away", bus_name, owner)

        entry = self._players.pop(owner, None)
        if entry is None:
            logger.debug("Ignoring removal of %s (%s): not tracked", bus_name, owner)
            return

        self._destroy_entry(entry)
        logger.info("Player removed: %s (%s)", entry.bus_name, owner)

        self.refresh_active_player(None)
        if not self._players:
            self.events.publish(PlayersDisconnectedEvent())

    def _destroy_entry(self, entry: PlayerEntry) -> None:
        entry.release()
        self._sink.remove_for(entry.handle)
        entry.handle.dispose()

    def change_player_owner(self, bus_name: str, old_owner: str, new_owner: str) -> None:
        """
        Move a player to a new owner after its name was handed over.

        Nothing happens unless the player held by `old_owner` still
        advertises `bus_name`.
        """
        if old_owner == new_owner:
            return

        pending = self._pending_adds.get(bus_name)
        if pending is not None and pending.owner == old_owner:
            pending.owner = new_owner

        entry = self._players.get(old_owner)
        if entry is None or entry.bus_name != bus_name:
            logger.debug("Ignoring owner change of %s: %s does not hold it", bus_name, old_owner)
            return

        if new_owner in self._players:
            # The new owner is tracked under another of its names already.
            del self._players[old_owner]
            self._destroy_entry(entry)
            logger.info("Player %s dropped: %s is already tracked", bus_name, new_owner)
            self.refresh_active_player(self._players[new_owner].handle)
            return

        del self._players[old_owner]
        entry.owner = new_owner
        entry.handle.owner = new_owner
        self._players[new_owner] = entry
        if self._active_owner == old_owner:
            self._active_owner = new_owner
        logger.info("Player %s moved from %s to %s", bus_name, old_owner, new_owner)

        self.refresh_active_player(entry.handle)

    # =========================================================================
    # Active player
    # =========================================================================

    @property
    def active_player(self) -> PlayerHandle | None:
        """Get the active player's handle, or None."""
        if self._active_owner is None:
            return None
        entry = self._players.get(self._active_owner)
        return entry.handle if entry is not None else None

    def get_players_by_status(self, status: PlaybackStatus, preference: PlayerHandle | None = None) -> list[PlayerHandle]:
        """Return the tracked players with `status`, `preference` first."""
        return players_by_status((e.handle for e in self._players.values()), status, preference)

    def refresh_active_player(self, preference: PlayerHandle | None = None) -> None:
        """Recompute the active player, letting `preference` win ties."""
        self._set_active_player(select_active_player((e.handle for e in self._players.values()), preference))

    def _set_active_player(self, handle: PlayerHandle | None) -> None:
        if handle is None:
            if self._active_owner is None:
                return
            self._detach_active_player()
            self._active_owner = None
            logger.info("No active player")
            self.events.publish(ActivePlayerRemoveEvent())
            return

        if handle is self.active_player:
            return

        self._detach_active_player()
        self._active_owner = handle.owner
        self._active_unsubscribe = handle.subscribe(self._on_active_player_update)
        logger.info("Active player: %s (%s)", handle.bus_name, handle.owner)

        if self._settings.get_bool(KEEP_ACTIVE_OPEN_KEY):
            self.show_active_player()
        self.events.publish(ActivePlayerUpdateEvent(state=replace(handle.state)))

    def _detach_active_player(self) -> None:
        if self._active_unsubscribe is not None:
            self._active_unsubscribe()
            self._active_unsubscribe = None

    def _on_player_update(self, handle: PlayerHandle, update: PlayerState) -> None:
        entry = self._players.get(handle.owner)
        if update.status is None or entry is None or entry.handle is not handle:
            return
        self.refresh_active_player(handle)

    def _on_active_player_update(self, handle: PlayerHandle, update: PlayerState) -> None:
        if handle is not self.active_player:
            return
        self.events.publish(ActivePlayerUpdateEvent(state=update))

    # =========================================================================
    # Visibility
    # =========================================================================

    def show_active_player(self) -> None:
        """Reveal the active player, if the container is showing."""
        handle = self.active_player
        if handle is None or not self._sink.is_container_visible():
            return
        self._sink.reveal(handle)

    def close_all_players(self) -> None:
        """Hide every tracked player."""
        for entry in self._players.values():
            self._sink.hide(entry.handle)

    def _on_keep_active_open_changed(self, key: str, value: Any) -> None:
        if value:
            self.show_active_player()
        else:
            self.close_all_players()

    def _on_open_state_changed(self, is_open: bool) -> None:
        if is_open and self._settings.get_bool(KEEP_ACTIVE_OPEN_KEY):
            self.show_active_player()

    # =========================================================================
    # Teardown
    # =========================================================================

    def destroy(self) -> None:
        """
        Tear everything down.

        Pending resolutions and timers become no-ops from the first line on.
        The manager must not be used afterwards.
        """
        if self._disabling:
            return
        self._disabling = True

        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

        for owner in list(self._players):
            self.remove_player(None, owner)

        for pending in self._pending_adds.values():
            pending.timer.cancel()
        self._pending_adds.clear()

        logger.info("Player manager stopped")

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def is_disabling(self) -> bool:
        return self._disabling

    @property
    def pending_adds(self) -> list[str]:
        """Bus names waiting for their add delay."""
        return list(self._pending_adds)

    def get(self, owner: str) -> PlayerEntry | None:
        """Look up the entry held by `owner`."""
        return self._players.get(owner)

    def entries(self) -> list[PlayerEntry]:
        """Get a list of all tracked entries (copy, safe to iterate)."""
        return list(self._players.values())

    def __len__(self) -> int:
        """Return the number of tracked players."""
        return len(self._players)

    def __contains__(self, owner: str) -> bool:
        """Check if a player held by `owner` is tracked."""
        return owner in self._players

    def __iter__(self) -> Iterator[str]:
        """Iterate over tracked owners."""
        return iter(self._players)

    def __bool__(self) -> bool:
        """A manager instance is always truthy, even when empty."""
        return True
