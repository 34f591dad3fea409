"""Model/base for the collaborator that runs candidate queries against the server."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stash_playback.models.media_items import Marker, Scene
    from stash_playback.models.playback import FilterDescriptor, QueryOptions


class SearchProvider(ABC):
    """
    Base representation of a search/filter backend.

    Implementations run the actual (GraphQL) queries and decode the results
    into the media models. Transport failures must be raised as NetworkError,
    an empty result is a plain empty list.
    """

    @abstractmethod
    async def find_scenes(
        self, descriptor: FilterDescriptor, options: QueryOptions | None = None
    ) -> list[Scene]:
        """Return the scenes within the scope of the descriptor."""

    @abstractmethod
    async def find_markers(
        self, descriptor: FilterDescriptor, options: QueryOptions | None = None
    ) -> list[Marker]:
        """Return the markers within the scope of the descriptor."""

    @abstractmethod
    async def get_scene(self, scene_id: str) -> Scene | None:
        """Return a single (full) scene by id."""
