"""
Core domain package.

This package contains the pieces shared by the player manager and its
adapters (events, error types). It is kept free of D-Bus and HTTP concerns.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `marquee.core.events`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "ConfigError",
    "BusError",
]


class CoreError(Exception):
    """Base class for Marquee exceptions."""


class ConfigError(CoreError):
    """Raised when a configuration file cannot be read or parsed."""


class BusError(CoreError):
    """Raised when the message bus cannot be reached or queried."""
