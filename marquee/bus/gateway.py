"""
Bus Gateway for Marquee.

The gateway is the only place that talks to the `org.freedesktop.DBus`
daemon interface. The player manager needs three things from it:

- list the service names currently on the bus
- resolve a service name to its current unique owner (e.g. ":1.42")
- be told when a name changes owner (NameOwnerChanged)

Everything else about the bus (connecting, introspection, match rules) stays
inside this module.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

from marquee.core import BusError

logger = logging.getLogger(__name__)

DBUS_SERVICE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"

NAME_HAS_NO_OWNER = "org.freedesktop.DBus.Error.NameHasNoOwner"

# (name, old_owner, new_owner); a missing owner is None
OwnerChangedHandler = Callable[[str, "str | None", "str | None"], None]


class BusGateway(Protocol):
    """What the player manager needs from the message bus."""

    async def list_service_names(self) -> list[str]: ...

    async def resolve_owner(self, name: str) -> str | None: ...

    def subscribe_owner_changed(self, handler: OwnerChangedHandler) -> Callable[[], None]: ...


async def connect_bus(bus_type: str = "session") -> MessageBus:
    """
    Connect to the session or system message bus.

    Args:
        bus_type: "session" or "system".

    Returns:
        A connected dbus-next MessageBus.

    Raises:
        BusError: If the bus cannot be reached.
    """
    kind = BusType.SYSTEM if bus_type == "system" else BusType.SESSION
    try:
        bus = await MessageBus(bus_type=kind).connect()
    except (OSError, DBusError) as e:
        raise BusError(f"Cannot connect to the {bus_type} bus: {e}") from e

    logger.info("Connected to %s D-Bus as %s", bus_type, bus.unique_name)
    return bus


class DBusGateway:
    """
    BusGateway backed by a dbus-next MessageBus.

    Call `connect()` once before using it; it introspects the bus daemon
    and builds the proxy used by the other methods.
    """

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        self._daemon = None
        self._handlers: list[Callable[[str, str, str], None]] = []

    async def connect(self) -> None:
        """Build the proxy for the bus daemon interface."""
        introspection = await self._bus.introspect(DBUS_SERVICE, DBUS_PATH)
        proxy = self._bus.get_proxy_object(DBUS_SERVICE, DBUS_PATH, introspection)
        self._daemon = proxy.get_interface(DBUS_INTERFACE)
        logger.debug("Bus daemon proxy ready")

    async def list_service_names(self) -> list[str]:
        """Return every name currently registered on the bus."""
        return list(await self._daemon.call_list_names())

    async def resolve_owner(self, name: str) -> str | None:
        """
        Resolve a service name to its unique owner.

        Returns:
            The owner (e.g. ":1.42"), or None if the name has vanished.
        """
        try:
            owner = await self._daemon.call_get_name_owner(name)
        except DBusError as e:
            if e.type == NAME_HAS_NO_OWNER:
                logger.debug("Name %s has no owner anymore", name)
                return None
            raise
        return owner or None

    def subscribe_owner_changed(self, handler: OwnerChangedHandler) -> Callable[[], None]:
        """
        Subscribe to NameOwnerChanged.

        Empty owner strings from the bus are passed on as None.

        Returns:
            A function that removes the subscription.
        """

        def on_name_owner_changed(name: str, old_owner: str, new_owner: str) -> None:
            handler(name, old_owner or None, new_owner or None)

        self._daemon.on_name_owner_changed(on_name_owner_changed)
        self._handlers.append(on_name_owner_changed)

        def unsubscribe() -> None:
            if on_name_owner_changed in self._handlers:
                self._handlers.remove(on_name_owner_changed)
                self._daemon.off_name_owner_changed(on_name_owner_changed)

        return unsubscribe

    def disconnect(self) -> None:
        """Drop all remaining subscriptions."""
        for handler in self._handlers:
            self._daemon.off_name_owner_changed(handler)
        self._handlers.clear()
