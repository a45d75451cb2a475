"""
Marquee Web Layer.

This package provides the presentation side of Marquee: the player board
the manager writes to, and the HTTP/JSON API that reads it.

Components:
- PlayerBoard: ordered players, reveal state, now playing summary
- WebServer: FastAPI application with all routes
"""

from marquee.web.board import PlayerBoard
from marquee.web.server import WebServer

__all__ = [
    "PlayerBoard",
    "WebServer",
]
