"""
Tests for configuration loading, live settings and the command line.

Tests cover:
- Packaged defaults and partial TOML files
- Invalid files raising ConfigError
- Settings change notification
- Command line overrides
- Reloading the config of a running server
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

import marquee.config as config_module
from marquee.__main__ import apply_overrides, parse_args
from marquee.config import KEEP_ACTIVE_OPEN_KEY, Settings, get_config, load_config, reload_config
from marquee.core import ConfigError, CoreError
from marquee.server import MarqueeServer


@pytest.fixture(autouse=True)
def reset_global_config() -> None:
    """Each test starts without a loaded global config."""
    config_module._config = None
    yield
    config_module._config = None


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "marquee.toml"
    path.write_text(text, encoding="utf-8")
    return path


# =============================================================================
# Loading
# =============================================================================


class TestLoadConfig:
    """Tests for load_config()."""

    def test_packaged_defaults(self) -> None:
        config = load_config()

        assert config.bus.type == "session"
        assert config.manager.add_delay == 1.0
        assert config.manager.keep_active_open is False
        assert config.manager.desired_position == 0
        assert config.web.enabled is True
        assert config.web.host == "127.0.0.1"
        assert config.web.port == 9290

    def test_partial_file_keeps_defaults(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[manager]\nadd_delay = 0.5\nkeep_active_open = true\n")

        config = load_config(path)

        assert config.manager.add_delay == 0.5
        assert config.manager.keep_active_open is True
        assert config.bus.type == "session"
        assert config.web.port == 9290
        assert config.path == path

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[manager\nadd_delay = ")

        with pytest.raises(ConfigError):
            load_config(path)

    @pytest.mark.parametrize(
        "text",
        [
            '[bus]\ntype = "starship"\n',
            "[manager]\nadd_delay = -1\n",
            '[manager]\nadd_delay = "soon"\n',
            '[web]\nport = "http"\n',
        ],
    )
    def test_invalid_values(self, tmp_path: Path, text: str) -> None:
        path = write_config(tmp_path, text)

        with pytest.raises(ConfigError):
            load_config(path)

    def test_config_error_is_core_error(self) -> None:
        assert issubclass(ConfigError, CoreError)

    def test_get_config_is_cached(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[web]\nport = 1234\n")

        first = get_config(path)
        second = get_config()

        assert first is second
        assert second.web.port == 1234

    def test_reload_uses_current_path(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[web]\nport = 1234\n")
        get_config(path)
        path.write_text("[web]\nport = 4321\n", encoding="utf-8")

        config = reload_config()

        assert config.web.port == 4321
        assert get_config() is config


# =============================================================================
# Live settings
# =============================================================================


class TestSettings:
    """Tests for Settings."""

    def test_from_config(self, tmp_path: Path) -> None:
        config = load_config(write_config(tmp_path, "[manager]\nkeep_active_open = true\n"))

        settings = Settings.from_config(config)

        assert settings.get_bool(KEEP_ACTIVE_OPEN_KEY) is True
        assert settings.to_dict() == {KEEP_ACTIVE_OPEN_KEY: True}

    def test_set_notifies_on_change_only(self) -> None:
        settings = Settings({KEEP_ACTIVE_OPEN_KEY: False})
        calls: list[tuple[str, Any]] = []
        settings.subscribe(KEEP_ACTIVE_OPEN_KEY, lambda key, value: calls.append((key, value)))

        settings.set(KEEP_ACTIVE_OPEN_KEY, False)
        settings.set(KEEP_ACTIVE_OPEN_KEY, True)
        settings.set(KEEP_ACTIVE_OPEN_KEY, True)

        assert calls == [(KEEP_ACTIVE_OPEN_KEY, True)]

    def test_subscribers_are_per_key(self) -> None:
        settings = Settings()
        calls: list[str] = []
        settings.subscribe("other", lambda key, value: calls.append(key))

        settings.set(KEEP_ACTIVE_OPEN_KEY, True)

        assert calls == []

    def test_unsubscribe(self) -> None:
        settings = Settings()
        calls: list[Any] = []
        unsubscribe = settings.subscribe(KEEP_ACTIVE_OPEN_KEY, lambda key, value: calls.append(value))

        unsubscribe()
        unsubscribe()
        settings.set(KEEP_ACTIVE_OPEN_KEY, True)

        assert calls == []

    def test_failing_handler_is_isolated(self) -> None:
        settings = Settings()
        calls: list[Any] = []

        def broken(key: str, value: Any) -> None:
            raise RuntimeError("boom")

        settings.subscribe(KEEP_ACTIVE_OPEN_KEY, broken)
        settings.subscribe(KEEP_ACTIVE_OPEN_KEY, lambda key, value: calls.append(value))

        settings.set(KEEP_ACTIVE_OPEN_KEY, True)

        assert calls == [True]
        assert settings.get(KEEP_ACTIVE_OPEN_KEY) is True

    def test_get_defaults(self) -> None:
        settings = Settings()

        assert settings.get("missing") is None
        assert settings.get("missing", 3) == 3
        assert settings.get_bool("missing") is False


# =============================================================================
# Command line
# =============================================================================


class TestCommandLine:
    """Tests for parse_args() and apply_overrides()."""

    def test_no_arguments_keep_config(self) -> None:
        config = apply_overrides(load_config(), parse_args([]))

        assert config.web.enabled is True
        assert config.web.port == 9290
        assert config.bus.type == "session"

    def test_overrides(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "")
        args = parse_args(
            ["-v", "-c", str(path), "--host", "0.0.0.0", "--web-port", "8080", "--no-web", "--system-bus"]
        )

        config = apply_overrides(load_config(args.config), args)

        assert args.verbose is True
        assert args.config == path
        assert config.web.host == "0.0.0.0"
        assert config.web.port == 8080
        assert config.web.enabled is False
        assert config.bus.type == "system"

    def test_version_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--version"])

        assert "marquee" in capsys.readouterr().out


# =============================================================================
# Reload
# =============================================================================


class TestServerReload:
    """Tests for MarqueeServer.reload()."""

    def test_reload_applies_live_settings(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[manager]\nkeep_active_open = false\n")
        server = MarqueeServer(get_config(path))
        calls: list[Any] = []
        server.settings.subscribe(KEEP_ACTIVE_OPEN_KEY, lambda key, value: calls.append(value))

        path.write_text("[manager]\nkeep_active_open = true\n", encoding="utf-8")
        server.reload()

        assert calls == [True]
        assert server.settings.get_bool(KEEP_ACTIVE_OPEN_KEY) is True

    def test_reload_keeps_settings_on_error(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[manager]\nkeep_active_open = true\n")
        server = MarqueeServer(get_config(path))

        path.write_text("[manager\n", encoding="utf-8")
        server.reload()

        assert server.settings.get_bool(KEEP_ACTIVE_OPEN_KEY) is True

    def test_server_not_running_before_start(self) -> None:
        server = MarqueeServer(load_config())

        assert server.is_running is False
        assert server.tracked_players == 0
