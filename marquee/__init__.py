"""
Marquee - MPRIS media player tracker.

Marquee watches the media players on the D-Bus message bus, follows them as
they start, stop and change owners, and keeps track of the one player that
best represents what is playing right now.
"""

__version__ = "0.1.0"
__author__ = "Marquee Contributors"
__license__ = "GPL-2.0"

from marquee.server import MarqueeServer

__all__ = ["MarqueeServer", "__version__"]
