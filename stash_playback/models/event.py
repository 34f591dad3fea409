"""Model for the events signalled on the engine's event channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stash_playback.models.enums import EventType


@dataclass(frozen=True)
class PlaybackEvent:
    """A single event on the event channel."""

    event: EventType
    object_id: str | None = None
    data: Any = None
