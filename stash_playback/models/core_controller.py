"""Model/base for a Core controller within the playback engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stash_playback.constants import LOGGER_NAME

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine


class CoreController:
    """Base representation of a Core controller within the playback engine."""

    domain: str  # used as identifier (=name of the module)

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize core controller."""
        self.engine = engine
        self.logger = logging.getLogger(f"{LOGGER_NAME}.{self.domain}")

    async def setup(self) -> None:
        """Async initialize of module."""

    async def close(self) -> None:
        """Handle logic on server stop."""
