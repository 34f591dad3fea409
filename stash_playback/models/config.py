"""Model for the (persisted) settings of the playback engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro import DataClassDictMixin

from stash_playback.constants import (
    DEFAULT_EXCLUDED_TAG_NAMES,
    DEFAULT_PREFERRED_PERFORMER_GENDER,
    DEFAULT_RESOLUTION,
    DEFAULT_SEEK_RETRY_DELAYS,
)
from stash_playback.models.errors import InvalidDataError


@dataclass(kw_only=True)
class EngineConfig(DataClassDictMixin):
    """All settings of the playback engine, as read from the settings file."""

    server_address: str | None = None
    api_key: str | None = None
    excluded_tag_names: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_TAG_NAMES)
    )
    preferred_performer_gender: str | None = DEFAULT_PREFERRED_PERFORMER_GENDER
    resolution: str = DEFAULT_RESOLUTION
    # marker shuffle: pages of 500, up to 10 pages (5 for free text searches)
    marker_page_size: int = 500
    marker_max_pages: int = 10
    marker_search_max_pages: int = 5
    # tag (scene) shuffle: pages of 100, up to 10 pages
    scene_page_size: int = 100
    scene_max_pages: int = 10
    discovery_page_size: int = 100
    seek_retry_delays: list[float] = field(
        default_factory=lambda: list(DEFAULT_SEEK_RETRY_DELAYS)
    )
    # delay between loading a new item and the random jump within it
    random_jump_delay: float = 0.5

    def __post_init__(self) -> None:
        """Validate the settings."""
        for key in (
            "marker_page_size",
            "marker_max_pages",
            "marker_search_max_pages",
            "scene_page_size",
            "scene_max_pages",
            "discovery_page_size",
        ):
            if getattr(self, key) < 1:
                msg = f"Invalid value for {key}: {getattr(self, key)}"
                raise InvalidDataError(msg)
        if not self.seek_retry_delays or any(delay < 0 for delay in self.seek_retry_delays):
            msg = f"Invalid value for seek_retry_delays: {self.seek_retry_delays}"
            raise InvalidDataError(msg)
        if self.random_jump_delay < 0:
            msg = f"Invalid value for random_jump_delay: {self.random_jump_delay}"
            raise InvalidDataError(msg)
        self.excluded_tag_names = [name.strip().lower() for name in self.excluded_tag_names]
