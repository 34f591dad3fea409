"""
Registry of the (video) players known to the playback engine.

There is exactly one "active" (full screen) player, plus any number of
inline preview players. The registry owns the reference to the active player,
every other component re-reads it from here instead of keeping its own reference.
Starting full screen playback pre-empts all previews so audio never overlaps.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import shortuuid

from stash_playback.models.core_controller import CoreController
from stash_playback.models.enums import EventType, PlaybackState
from stash_playback.models.errors import InvalidCommand, PlayerUnavailableError
from stash_playback.models.playback import PlayerHandle

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine
    from stash_playback.models.playback import PlaybackTarget
    from stash_playback.models.player import Player

PlayerFactory = Callable[[str], "Player"]


class PlayerRegistry(CoreController):
    """Single-slot owner of the active player and tracker of preview players."""

    domain: str = "players"

    def __init__(self, engine: PlaybackEngine, player_factory: PlayerFactory | None = None) -> None:
        """Initialize core controller."""
        if isinstance(getattr(engine, "players", None), PlayerRegistry):
            msg = "Engine already has a player registry"
            raise InvalidCommand(msg)
        super().__init__(engine)
        self._player_factory = player_factory
        self._handle: PlayerHandle | None = None
        self._previews: dict[str, Player] = {}

    async def close(self) -> None:
        """Handle logic on engine stop."""
        await self.stop_all()
        await self.clear()

    def current(self) -> Player | None:
        """Return the active player (if any)."""
        return self._handle.player if self._handle else None

    def get_current_player(self) -> PlayerHandle | None:
        """Return the handle of the active player (if any)."""
        return self._handle

    @property
    def previews(self) -> list[Player]:
        """Return all registered preview players."""
        return list(self._previews.values())

    async def register(self, player: Player, controller: object | None = None) -> PlayerHandle:
        """Register the given player as the active player, replacing the previous one."""
        return await self.set_current_player(PlayerHandle(player=player, controller=controller))

    async def set_current_player(self, handle: PlayerHandle) -> PlayerHandle:
        """Set the handle of the active player, releasing the previous player."""
        prev_handle = self._handle
        if prev_handle is not None and prev_handle.player is not handle.player:
            await self._release(prev_handle.player)
        self._handle = handle
        # a player can not be the active player and a preview at the same time
        self._previews.pop(handle.player.player_id, None)
        self.logger.debug("Registered active player %s", handle.player.player_id)
        self.engine.signal_event(EventType.PLAYER_REGISTERED, handle.player.player_id)
        return handle

    async def clear(self) -> None:
        """Pause and release the active player and drop the reference to it."""
        if (handle := self._handle) is None:
            return
        self._handle = None
        await self._release(handle.player)
        self.logger.debug("Cleared active player %s", handle.player.player_id)
        self.engine.signal_event(EventType.PLAYER_CLEARED, handle.player.player_id)

    async def ensure_player(self) -> Player:
        """Return the active player, creating it with the player factory if needed."""
        if player := self.current():
            return player
        if self._player_factory is None:
            msg = "No active player and no player factory configured"
            raise PlayerUnavailableError(msg)
        player = self._player_factory(shortuuid.uuid())
        await self.register(player)
        return player

    async def load(self, target: PlaybackTarget, url: str) -> Player:
        """
        Load the given target (at the given url) in the active player.

        Pre-empts all preview players first. The target is consumed.
        """
        player = await self.ensure_player()
        await self.pause_all_except(player)
        target.consume()
        await player.load(url)
        if player.muted:
            await player.set_muted(False)
        if self._handle is not None and self._handle.player is player:
            self._handle.target = target
        self.logger.debug("Loaded %s in player %s", target.object_id, player.player_id)
        return player

    def register_preview(self, player: Player) -> None:
        """Register an inline preview player."""
        if (current := self.current()) is not None and current is player:
            msg = f"Player {player.player_id} is the active player"
            raise InvalidCommand(msg)
        self._previews[player.player_id] = player

    def unregister_preview(self, player: Player) -> None:
        """Unregister an inline preview player."""
        self._previews.pop(player.player_id, None)

    async def pause_all_except(self, player: Player | None) -> None:
        """Pause and mute all known players except the given one."""
        preempted: list[str] = []
        candidates = list(self._previews.values())
        if (current := self.current()) is not None:
            candidates.append(current)
        for other in candidates:
            if other is player:
                continue
            if other.playback_state == PlaybackState.PLAYING:
                await other.pause()
            if not other.muted:
                await other.set_muted(True)
            preempted.append(other.player_id)
        if preempted:
            self.logger.debug("Pre-empted players %s", ", ".join(preempted))
            self.engine.signal_event(
                EventType.PREVIEWS_PREEMPTED,
                player.player_id if player else None,
                preempted,
            )

    async def stop_all(self) -> None:
        """Stop all preview players (pause, mute and unload) and pause the active player."""
        for preview in list(self._previews.values()):
            await self._release(preview)
        self._previews.clear()
        if (current := self.current()) is not None and (
            current.playback_state == PlaybackState.PLAYING
        ):
            await current.pause()

    async def _release(self, player: Player) -> None:
        """Pause, mute and release a player."""
        if player.released:
            return
        if player.playback_state == PlaybackState.PLAYING:
            await player.pause()
        if not player.muted:
            await player.set_muted(True)
        await player.release()
