"""
Message bus access for Marquee.

This package wraps the D-Bus daemon interface (name listing, owner
resolution, ownership changes) and the MPRIS naming rules.
"""

from marquee.bus.gateway import BusGateway, DBusGateway, connect_bus
from marquee.bus.names import BusNameKind, is_instance, is_mpris_name, name_kind

__all__ = [
    "BusGateway",
    "BusNameKind",
    "DBusGateway",
    "connect_bus",
    "is_instance",
    "is_mpris_name",
    "name_kind",
]
