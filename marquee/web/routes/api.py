"""
REST API Routes for Marquee.

Provides JSON endpoints for status bars, scripts and dashboards:
- /api/status: Daemon status
- /api/players: Tracked players in board order
- /api/active: Now playing summary
- /api/board: Board open state
- /api/settings: Live settings
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Request

from marquee import __version__
from marquee.config import KEEP_ACTIVE_OPEN_KEY

if TYPE_CHECKING:
    from marquee.config import Settings
    from marquee.player.manager import PlayerManager
    from marquee.web.board import PlayerBoard

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# References set during route registration
_manager: PlayerManager | None = None
_board: PlayerBoard | None = None
_settings: Settings | None = None


def register_api_routes(
    app,
    manager: PlayerManager,
    board: PlayerBoard,
    settings: Settings,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        manager: PlayerManager for the tracked players
        board: PlayerBoard for order, reveal state and now playing
        settings: Live settings
    """
    global _manager, _board, _settings
    _manager = manager
    _board = board
    _settings = settings
    app.include_router(router)


def _require() -> tuple[PlayerManager, PlayerBoard, Settings]:
    if _manager is None or _board is None or _settings is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return _manager, _board, _settings


# =============================================================================
# Daemon Status
# =============================================================================


@router.get("/api/status")
async def server_status() -> dict[str, Any]:
    """Get daemon status and basic info."""
    manager, board, _ = _require()
    active = manager.active_player

    return {
        "server": "marquee",
        "version": __version__,
        "players": len(manager),
        "pending": len(manager.pending_adds),
        "active_owner": active.owner if active is not None else None,
        "board_open": board.is_open,
        "watching": board.watching,
    }


# =============================================================================
# Player Endpoints
# =============================================================================


@router.get("/api/players")
async def list_players() -> dict[str, Any]:
    """List tracked players in board order."""
    manager, board, _ = _require()
    active = manager.active_player

    players_list = []
    for item in board.items():
        data = item.to_dict()
        data["active"] = item.handle is active
        players_list.append(data)

    return {
        "count": len(players_list),
        "players": players_list,
    }


@router.get("/api/players/{owner}")
async def get_player(owner: str) -> dict[str, Any]:
    """Get details for the player held by a bus owner."""
    manager, board, _ = _require()

    entry = manager.get(owner)
    if entry is None:
        raise HTTPException(status_code=404, detail="Player not found")

    for item in board.items():
        if item.handle is entry.handle:
            data = item.to_dict()
            break
    else:
        data = {
            "owner": entry.owner,
            "bus_name": entry.bus_name,
            "status": entry.handle.state.status.value if entry.handle.state.status else None,
            "metadata": entry.handle.state.metadata or {},
            "revealed": False,
        }
    data["active"] = entry.handle is manager.active_player
    return data


@router.get("/api/active")
async def get_active() -> dict[str, Any]:
    """Get the now playing summary of the active player."""
    manager, board, _ = _require()

    active = manager.active_player
    state = board.now_playing
    if active is None or state is None:
        return {"active": False}

    return {
        "active": True,
        "owner": active.owner,
        "bus_name": active.bus_name,
        "status": state.status.value if state.status else None,
        "title": state.title,
        "artists": state.artists,
        "metadata": state.metadata or {},
    }


# =============================================================================
# Board and Settings
# =============================================================================


@router.post("/api/board")
async def set_board_open(request: Request) -> dict[str, Any]:
    """Mark the board as open (shown to someone) or closed.

    Request body: {"open": true}
    """
    _, board, _ = _require()

    body = await request.json()
    is_open = body.get("open") if isinstance(body, dict) else None
    if not isinstance(is_open, bool):
        raise HTTPException(status_code=400, detail="Missing boolean 'open' in request body")

    board.set_open(is_open)
    return {"open": board.is_open}


@router.get("/api/settings")
async def get_settings() -> dict[str, Any]:
    """Get the live settings."""
    _, _, settings = _require()
    return settings.to_dict()


@router.put("/api/settings")
async def update_settings(request: Request) -> dict[str, Any]:
    """Change live settings; subscribers react right away.

    Request body: {"keep_active_open": true}
    """
    _, _, settings = _require()

    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    if KEEP_ACTIVE_OPEN_KEY in body:
        value = body[KEEP_ACTIVE_OPEN_KEY]
        if not isinstance(value, bool):
            raise HTTPException(status_code=400, detail=f"'{KEEP_ACTIVE_OPEN_KEY}' must be a boolean")
        settings.set(KEEP_ACTIVE_OPEN_KEY, value)
    return settings.to_dict()
