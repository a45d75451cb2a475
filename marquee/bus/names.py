"""
MPRIS bus name helpers.

Players register on the bus as `org.mpris.MediaPlayer2.<name>`. A player
that can run several processes at once may append an instance suffix,
which turns the bare "master" name into an "instance" name.
"""

from __future__ import annotations

import re
from enum import Enum

MPRIS_PREFIX = "org.mpris.MediaPlayer2."
OBJECT_PATH = "/org/mpris/MediaPlayer2"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"

_MPRIS_NAME_RE = re.compile(r"^org\.mpris\.MediaPlayer2\.")

# VLC still uses org.mpris.MediaPlayer2.vlc-<pid> instead of the dotted
# org.mpris.MediaPlayer2.vlc.instance<pid> form.
_VLC_INSTANCE_RE = re.compile(r"^org\.mpris\.MediaPlayer2\.vlc-\d+$")


class BusNameKind(Enum):
    """Whether a bus name is the bare player name or an instance of it."""

    MASTER = "master"
    INSTANCE = "instance"


def is_mpris_name(bus_name: str) -> bool:
    """Check if a bus name belongs to the MPRIS namespace."""
    return bool(_MPRIS_NAME_RE.match(bus_name))


def is_instance(bus_name: str) -> bool:
    """
    Check if a bus name is instance-qualified.

    Instances look like `org.mpris.MediaPlayer2.name.instanceXXXX`, except
    for VLC which uses `org.mpris.MediaPlayer2.vlc-XXXX`.
    """
    return len(bus_name.split(".")) > 4 or bool(_VLC_INSTANCE_RE.match(bus_name))


def name_kind(bus_name: str) -> BusNameKind:
    """Classify a bus name as master or instance."""
    return BusNameKind.INSTANCE if is_instance(bus_name) else BusNameKind.MASTER


def player_name(bus_name: str) -> str:
    """Return the short player name, e.g. `vlc` for `org.mpris.MediaPlayer2.vlc`."""
    if bus_name.startswith(MPRIS_PREFIX):
        return bus_name[len(MPRIS_PREFIX) :]
    return bus_name
