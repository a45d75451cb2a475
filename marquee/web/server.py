"""
Web Server Module for Marquee.

This module provides the WebServer class which owns the
FastAPI application, registers all routes, and runs uvicorn in the
background of the daemon's event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marquee import __version__
from marquee.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from marquee.config import Settings
    from marquee.player.manager import PlayerManager
    from marquee.web.board import PlayerBoard

logger = logging.getLogger(__name__)


class WebServer:
    """
    FastAPI-based web server for Marquee.

    Serves the JSON API used by status bars, scripts and dashboards.
    """

    def __init__(
        self,
        manager: PlayerManager,
        board: PlayerBoard,
        settings: Settings,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            manager: Player manager whose players are exposed
            board: Player board (order, reveal state, now playing)
            settings: Live settings
        """
        self.manager = manager
        self.board = board
        self.settings = settings

        self.app = FastAPI(
            title="Marquee",
            description="MPRIS player tracker",
            version=__version__,
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["*"],
        )

        # uvicorn server, set by start()
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 9290

        self._register_routes()

    def _register_routes(self) -> None:
        """Add the health check and the JSON API to the app."""

        # Health check
        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "marquee"}

        register_api_routes(
            self.app,
            manager=self.manager,
            board=self.board,
            settings=self.settings,
        )

    async def start(self, host: str = "127.0.0.1", port: int = 9290) -> None:
        """
        Serve the API as a background task of the running loop.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Ask uvicorn to exit; the serve task finishes on its own."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None
        self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        """Port the API listens on."""
        return self._port

    @property
    def host(self) -> str:
        """Address the API is bound to."""
        return self._host
