"""
Player management for Marquee.

This package handles the MPRIS players on the bus: their handles, their
lifecycle, and the choice of the active player.
"""

from marquee.player.handle import MprisPlayer, PlaybackStatus, PlayerState
from marquee.player.manager import PlayerEntry, PlayerManager

__all__ = [
    "MprisPlayer",
    "PlaybackStatus",
    "PlayerEntry",
    "PlayerManager",
    "PlayerState",
]
