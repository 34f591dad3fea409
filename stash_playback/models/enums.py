"""All enums used by the Stash Playback models."""

from __future__ import annotations

from enum import StrEnum


class NavigationMode(StrEnum):
    """Enum with the navigation policies applied on 'advance'."""

    SEQUENTIAL = "sequential"
    RANDOM_JUMP = "random_jump"
    MARKER_SHUFFLE = "marker_shuffle"
    TAG_SHUFFLE = "tag_shuffle"
    PERFORMER_DISCOVERY = "performer_discovery"
    LIBRARY_RANDOM = "library_random"
    MOST_PLAYED_SHUFFLE = "most_played_shuffle"

    @property
    def is_shuffle(self) -> bool:
        """Return if this mode is driven by a shuffle queue."""
        return self in (
            NavigationMode.MARKER_SHUFFLE,
            NavigationMode.TAG_SHUFFLE,
            NavigationMode.MOST_PLAYED_SHUFFLE,
        )


class MediaKind(StrEnum):
    """Enum for the kind of items held by a shuffle queue."""

    SCENE = "scene"
    MARKER = "marker"


class PlaybackState(StrEnum):
    """Enum for the playback state of a player."""

    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"


class ItemStatus(StrEnum):
    """Enum for the load status of the item loaded in a player."""

    UNKNOWN = "unknown"
    READY = "ready"
    FAILED = "failed"


class SeekOutcome(StrEnum):
    """Enum for the result of a seek operation."""

    PRECISE = "precise"
    TOLERANT = "tolerant"
    FAILED = "failed"
    NO_PLAYER = "no_player"

    @property
    def succeeded(self) -> bool:
        """Return if the player landed on (or near) the requested position."""
        return self in (SeekOutcome.PRECISE, SeekOutcome.TOLERANT)


class SceneAsset(StrEnum):
    """Enum for the (non stream) assets the server exposes for a scene."""

    SCREENSHOT = "screenshot"
    SPRITE = "sprite"
    VTT = "vtt/thumbnails"
    PREVIEW = "preview"


class EventType(StrEnum):
    """Enum with the events signalled on the engine's event channel."""

    SHUTDOWN = "shutdown"
    PLAYER_REGISTERED = "player_registered"
    PLAYER_CLEARED = "player_cleared"
    PREVIEWS_PREEMPTED = "previews_preempted"
    NAVIGATION_MODE_CHANGED = "navigation_mode_changed"
    PLAYBACK_TARGET_CHANGED = "playback_target_changed"
    SHUFFLE_QUEUE_UPDATED = "shuffle_queue_updated"
    SEEK_COMPLETED = "seek_completed"
    MARKER_END_REACHED = "marker_end_reached"
