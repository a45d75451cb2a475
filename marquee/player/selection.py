"""
Active player selection.

The active player is the one shown as "now playing". Playing players
outrank paused ones, which outrank stopped ones. Among equals, the
preferred player (usually the one that was just added or just changed
status) wins.
"""

from __future__ import annotations

from typing import Iterable, TypeVar

from marquee.player.handle import PlaybackStatus

H = TypeVar("H")

STATUS_PREFERENCE = (
    PlaybackStatus.PLAYING,
    PlaybackStatus.PAUSED,
    PlaybackStatus.STOPPED,
)


def players_by_status(players: Iterable[H], status: PlaybackStatus, preference: H | None = None) -> list[H]:
    """
    Return the players with a given status, preferred one first.

    Args:
        players: Candidate player handles.
        status: Status to filter on.
        preference: A handle that goes to the front if it is in the list.

    Returns:
        Matching handles; apart from the preferred one, in input order.
    """
    matching = [p for p in players if p is not None and p.state.status == status]
    return sorted(matching, key=lambda p: 0 if p is preference else 1)


def select_active_player(players: Iterable[H], preference: H | None = None) -> H | None:
    """
    Pick the active player.

    Returns:
        The first playing player, else the first paused one, else the first
        stopped one, or None if there are no players.
    """
    players = list(players)
    candidates: list[H] = []
    for status in STATUS_PREFERENCE:
        candidates.extend(players_by_status(players, status, preference))
    return candidates[0] if candidates else None
