"""Custom errors and exceptions for Stash Playback.

Every recoverable failure of the navigation engine maps to one of these.
An advance (or previous) logs them and leaves the player on its current item.
InvalidCommand and PlayerUnavailableError are setup errors and reach the caller.
"""

from __future__ import annotations

ERROR_MAP: dict[int, type[StashPlaybackError]] = {}


class StashPlaybackError(Exception):
    """Custom Exception for all errors."""

    error_code = 0

    def __init_subclass__(cls, *args: object, **kwargs: object) -> None:
        """Register a subclass."""
        super().__init_subclass__(*args, **kwargs)
        ERROR_MAP[cls.error_code] = cls


class UrlSynthesisFailure(StashPlaybackError):
    """Error raised when a stream url can not be rewritten to an adaptive stream url."""

    error_code = 1


class SeekFailure(StashPlaybackError):
    """Error raised when the player rejects a seek request."""

    error_code = 2


class ItemNotReadyError(StashPlaybackError):
    """Error raised when the player item has not (yet) reported ready status."""

    error_code = 3


class EmptyCandidateSet(StashPlaybackError):
    """Error raised when a discovery or shuffle query returned no usable items."""

    error_code = 4


class NetworkError(StashPlaybackError):
    """Error raised when a candidate query or metadata fetch failed."""

    error_code = 5


class InvalidDataError(StashPlaybackError):
    """Error raised when data could not be parsed or is malformed."""

    error_code = 6


class InvalidCommand(StashPlaybackError):
    """Error raised when a command is not valid in the current state."""

    error_code = 7


class PlayerUnavailableError(StashPlaybackError):
    """Error raised when no player is available (or can be created)."""

    error_code = 8
