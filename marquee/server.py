"""
Marquee - Main Server Module

This module contains the MarqueeServer class that wires the bus, the player
manager, the player board and the web server together and manages the
daemon lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

from marquee.bus.gateway import DBusGateway, connect_bus
from marquee.config import MarqueeConfig, Settings, reload_config
from marquee.core import ConfigError
from marquee.core.events import PlayersConnectedEvent, PlayersDisconnectedEvent
from marquee.player.handle import MprisPlayer
from marquee.player.manager import PlayerManager
from marquee.web.board import PlayerBoard
from marquee.web.server import WebServer

if TYPE_CHECKING:
    from dbus_next.aio import MessageBus

logger = logging.getLogger(__name__)


class MarqueeServer:
    """
    Main Marquee daemon that coordinates all components.

    The server manages:
    - The D-Bus connection and the bus gateway
    - The player manager (discovery, ownership, active player)
    - The player board the manager presents players on
    - The web server for the JSON API
    """

    def __init__(self, config: MarqueeConfig) -> None:
        """
        Initialize the Marquee server.

        Args:
            config: Loaded configuration.
        """
        self.config = config
        self.settings = Settings.from_config(config)
        self.board = PlayerBoard()

        # Set up on start, once the bus is connected
        self.bus: MessageBus | None = None
        self.gateway: DBusGateway | None = None
        self.manager: PlayerManager | None = None
        self.web_server: WebServer | None = None

        # Server state
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Start all server components."""
        logger.info("Starting Marquee on the %s bus", self.config.bus.type)

        self._running = True
        self._shutdown_event = asyncio.Event()

        self.bus = await connect_bus(self.config.bus.type)
        self.gateway = DBusGateway(self.bus)
        await self.gateway.connect()

        bus = self.bus
        self.manager = PlayerManager(
            gateway=self.gateway,
            player_factory=lambda bus_name, owner: MprisPlayer(bus, bus_name, owner),
            sink=self.board,
            settings=self.settings,
            add_delay=self.config.manager.add_delay,
            desired_position=self.config.manager.desired_position,
        )
        self.board.attach(self.manager.events)
        self.manager.events.subscribe(PlayersConnectedEvent, self._on_players_connected)
        self.manager.events.subscribe(PlayersDisconnectedEvent, self._on_players_disconnected)

        # Start Web server before discovery so the API answers right away
        if self.config.web.enabled:
            self.web_server = WebServer(
                manager=self.manager,
                board=self.board,
                settings=self.settings,
            )
            await self.web_server.start(host=self.config.web.host, port=self.config.web.port)

        await self.manager.start()

        logger.info("Marquee started successfully")

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping Marquee...")
        self._running = False

        # Stop Web server first
        if self.web_server:
            await self.web_server.stop()

        if self.manager:
            self.manager.destroy()
            self.board.detach(self.manager.events)

        if self.gateway:
            self.gateway.disconnect()

        if self.bus:
            self.bus.disconnect()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("Marquee stopped")

    async def run(self) -> None:
        """
        Run the server until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM). SIGHUP reloads the configuration file.
        """
        await self.start()

        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        try:
            loop.add_signal_handler(signal.SIGHUP, self.reload)
        except (NotImplementedError, AttributeError):
            pass

        # Wait for shutdown
        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    def reload(self) -> None:
        """Reload the config file and apply the live settings."""
        try:
            config = reload_config(self.config.path)
        except ConfigError as e:
            logger.error("Keeping current configuration: %s", e)
            return

        self.settings.apply(config)
        logger.info("Configuration reloaded from %s", config.path)

    def _on_players_connected(self, event: PlayersConnectedEvent) -> None:
        logger.info("Watching players")

    def _on_players_disconnected(self, event: PlayersDisconnectedEvent) -> None:
        logger.info("No players left")

    @property
    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    @property
    def tracked_players(self) -> int:
        """Get the number of currently tracked players."""
        return len(self.manager) if self.manager is not None else 0
