"""
Configuration management for Marquee.

This module loads the daemon configuration from TOML files and holds the
live settings (options that may change while the daemon runs and that
components subscribe to).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from marquee.core import ConfigError

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

KEEP_ACTIVE_OPEN_KEY = "keep_active_open"


@dataclass
class BusConfig:
    """Which message bus to watch."""

    type: str = "session"


@dataclass
class ManagerConfig:
    """Player manager options."""

    add_delay: float = 1.0
    keep_active_open: bool = False
    desired_position: int = 0


@dataclass
class WebConfig:
    """HTTP API options."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 9290


@dataclass
class MarqueeConfig:
    """Loaded configuration."""

    bus: BusConfig = field(default_factory=BusConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)
    web: WebConfig = field(default_factory=WebConfig)
    path: Path | None = None


def _parse_bus(data: dict[str, Any]) -> BusConfig:
    bus_type = str(data.get("type", "session"))
    if bus_type not in ("session", "system"):
        raise ConfigError(f"bus.type must be 'session' or 'system', got {bus_type!r}")
    return BusConfig(type=bus_type)


def _parse_manager(data: dict[str, Any]) -> ManagerConfig:
    add_delay = float(data.get("add_delay", 1.0))
    if add_delay < 0:
        raise ConfigError(f"manager.add_delay must not be negative, got {add_delay}")
    return ManagerConfig(
        add_delay=add_delay,
        keep_active_open=bool(data.get("keep_active_open", False)),
        desired_position=int(data.get("desired_position", 0)),
    )


def _parse_web(data: dict[str, Any]) -> WebConfig:
    return WebConfig(
        enabled=bool(data.get("enabled", True)),
        host=str(data.get("host", "127.0.0.1")),
        port=int(data.get("port", 9290)),
    )


def load_config(config_path: Path | None = None) -> MarqueeConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Path to the config file. If None, uses the packaged defaults.

    Returns:
        Loaded MarqueeConfig instance. Missing sections and keys keep their defaults.

    Raises:
        ConfigError: If the file cannot be read or holds invalid values.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "defaults.toml"

    logger.debug("Loading config from %s", config_path)

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot load config {config_path}: {e}") from e

    try:
        return MarqueeConfig(
            bus=_parse_bus(data.get("bus", {})),
            manager=_parse_manager(data.get("manager", {})),
            web=_parse_web(data.get("web", {})),
            path=config_path,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {config_path}: {e}") from e


# Global singleton instance (lazy loaded)
_config: MarqueeConfig | None = None


def get_config(config_path: Path | None = None) -> MarqueeConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The MarqueeConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config(config_path)

    return _config


def reload_config(config_path: Path | None = None) -> MarqueeConfig:
    """
    Force reload of the configuration.

    Args:
        config_path: File to read; defaults to the one the current config came from.

    Returns:
        The newly loaded MarqueeConfig instance.
    """
    global _config
    if config_path is None and _config is not None:
        config_path = _config.path
    _config = load_config(config_path)
    return _config


SettingHandler = Callable[[str, Any], None]


class Settings:
    """
    Live options with change notification.

    Components get a Settings object at construction and subscribe to the
    keys they care about. Handlers are called with `(key, new_value)` only
    when a value actually changes.
    """

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})
        self._handlers: dict[str, list[SettingHandler]] = {}

    @classmethod
    def from_config(cls, config: MarqueeConfig) -> "Settings":
        """Build live settings from a loaded config."""
        return cls({KEEP_ACTIVE_OPEN_KEY: config.manager.keep_active_open})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_bool(self, key: str) -> bool:
        return bool(self._values.get(key, False))

    def set(self, key: str, value: Any) -> None:
        """Change a value and notify subscribers if it differs."""
        if key in self._values and self._values[key] == value:
            return

        self._values[key] = value
        logger.info("Setting %s changed to %r", key, value)

        for handler in list(self._handlers.get(key, [])):
            try:
                handler(key, value)
            except Exception as e:
                logger.exception("Error in settings handler for %s: %s", key, e)

    def subscribe(self, key: str, handler: SettingHandler) -> Callable[[], None]:
        """
        Subscribe to changes of one key.

        Returns:
            A function that removes the subscription.
        """
        self._handlers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def apply(self, config: MarqueeConfig) -> None:
        """Push the live options of a (re)loaded config."""
        self.set(KEEP_ACTIVE_OPEN_KEY, config.manager.keep_active_open)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)
