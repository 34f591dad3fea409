"""
Base class/model for a (video) Player driven by the playback engine.

All platform specific players should inherit from this class and implement the required methods.
The engine never talks to a platform player directly: it only uses the methods and
properties defined here, the concrete player keeps the `_attr_` attributes up to date.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from stash_playback.models.enums import ItemStatus, PlaybackState

if TYPE_CHECKING:
    import logging


class Player(ABC):
    """Base representation of a Player."""

    _attr_playback_state: PlaybackState = PlaybackState.IDLE
    _attr_item_status: ItemStatus = ItemStatus.UNKNOWN
    _attr_duration: float | None = None
    _attr_loaded_duration: float | None = None
    _attr_elapsed_time: float | None = None
    _attr_muted: bool = False
    _attr_current_url: str | None = None
    _attr_is_preview: bool = False

    def __init__(self, player_id: str, logger: logging.Logger | None = None) -> None:
        """Initialize the Player."""
        self._player_id = player_id
        self.logger = logger
        self._released = False

    def __repr__(self) -> str:
        """Return a string representation of the player."""
        return f"<{self.__class__.__name__} {self._player_id} ({self.playback_state.value})>"

    @property
    def player_id(self) -> str:
        """Return the id of the player."""
        return self._player_id

    @property
    def playback_state(self) -> PlaybackState:
        """Return the current playback state of the player."""
        return self._attr_playback_state

    @property
    def item_status(self) -> ItemStatus:
        """
        Return the readiness of the loaded item.

        An item only reports READY once its duration is known and it can be seeked.
        """
        return self._attr_item_status

    @property
    def duration(self) -> float | None:
        """Return the duration of the loaded item in seconds (if known)."""
        return self._attr_duration

    @property
    def loaded_duration(self) -> float | None:
        """Return the end of the loaded (buffered) time range in seconds (if any)."""
        return self._attr_loaded_duration

    @property
    def elapsed_time(self) -> float | None:
        """Return the elapsed time of the current item in seconds."""
        return self._attr_elapsed_time

    @property
    def muted(self) -> bool:
        """Return if the player is muted."""
        return self._attr_muted

    @property
    def current_url(self) -> str | None:
        """Return the url of the item that is loaded in the player."""
        return self._attr_current_url

    @property
    def is_preview(self) -> bool:
        """Return if this is a (muted) inline preview player instead of the main player."""
        return self._attr_is_preview

    @property
    def released(self) -> bool:
        """Return if the underlying resources of this player have been released."""
        return self._released

    @property
    def is_ready(self) -> bool:
        """Return if the loaded item can be seeked."""
        return self.item_status == ItemStatus.READY

    @abstractmethod
    async def load(self, url: str) -> None:
        """
        Replace the item of the player with the given url.

        Implementations must reset the item status and durations of the previous item.
        """
        raise NotImplementedError("load needs to be implemented")

    @abstractmethod
    async def play(self) -> None:
        """Handle PLAY command on the player."""
        raise NotImplementedError("play needs to be implemented")

    @abstractmethod
    async def pause(self) -> None:
        """Handle PAUSE command on the player."""
        raise NotImplementedError("pause needs to be implemented")

    @abstractmethod
    async def set_muted(self, muted: bool) -> None:
        """Handle MUTE command on the player."""
        raise NotImplementedError("set_muted needs to be implemented")

    @abstractmethod
    async def seek(self, position: float, tolerance: float | None = None) -> bool:
        """
        Handle SEEK command on the player.

        :param position: The position to seek to, in seconds.
        :param tolerance: Allowed deviation in seconds, 0 for a precise seek,
            None for the player's default.

        Returns True when the seek finished. May raise SeekFailure.
        """
        raise NotImplementedError("seek needs to be implemented")

    async def release(self) -> None:
        """Release the underlying (platform) resources of the player."""
        self._released = True
        self._attr_current_url = None
        self._attr_item_status = ItemStatus.UNKNOWN
        self._attr_playback_state = PlaybackState.IDLE
