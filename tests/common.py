"""Common helpers and fakes for the Stash Playback tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from stash_playback.constants import TASK_ID_SEEK
from stash_playback.models.enums import ItemStatus, PlaybackState
from stash_playback.models.errors import NetworkError, SeekFailure
from stash_playback.models.media_items import (
    Marker,
    MarkerScene,
    MarkerScenePaths,
    Performer,
    Scene,
    SceneFile,
    ScenePaths,
    Tag,
)
from stash_playback.models.player import Player
from stash_playback.models.search_provider import SearchProvider

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine
    from stash_playback.models.playback import FilterDescriptor, QueryOptions

SERVER = "http://stash.local:9999"


def make_scene(
    scene_id: str,
    performers: Sequence[Performer] = (),
    tags: Sequence[Tag] = (),
    duration: float | None = 600.0,
    title: str | None = None,
    o_counter: int | None = None,
) -> Scene:
    """Return a scene as decoded from the server."""
    return Scene(
        id=scene_id,
        title=title or f"Scene {scene_id}",
        paths=ScenePaths(
            stream=f"{SERVER}/scene/{scene_id}/stream",
            screenshot=f"{SERVER}/scene/{scene_id}/screenshot",
        ),
        files=[SceneFile(duration=duration)] if duration else [],
        performers=list(performers),
        tags=list(tags),
        o_counter=o_counter,
    )


def make_marker(
    marker_id: str,
    scene_id: str,
    primary_tag: Tag,
    seconds: float = 30.0,
    end_seconds: float | None = None,
    title: str | None = None,
    tags: Sequence[Tag] = (),
) -> Marker:
    """Return a marker as decoded from the server."""
    return Marker(
        id=marker_id,
        title=title or f"Marker {marker_id}",
        seconds=seconds,
        end_seconds=end_seconds,
        scene=MarkerScene(
            id=scene_id,
            title=f"Scene {scene_id}",
            paths=MarkerScenePaths(stream=f"{SERVER}/scene/{scene_id}/stream"),
        ),
        primary_tag=primary_tag,
        tags=list(tags),
    )


class FakePlayer(Player):
    """Player that records the commands it receives."""

    def __init__(
        self,
        player_id: str,
        item_duration: float | None = 600.0,
        auto_ready: bool = True,
    ) -> None:
        """Initialize the fake player."""
        super().__init__(player_id)
        self.item_duration = item_duration
        self.auto_ready = auto_ready
        self.reject_precise = False
        self.reject_all = False
        self.loaded_urls: list[str] = []
        self.seek_calls: list[tuple[float, float | None]] = []
        self.play_calls = 0

    def set_ready(self, duration: float | None = None) -> None:
        """Mark the loaded item as ready (as if the platform player finished loading)."""
        self._attr_item_status = ItemStatus.READY
        if duration is not None:
            self._attr_duration = duration

    def set_loaded_duration(self, loaded: float | None) -> None:
        """Set the end of the buffered range."""
        self._attr_loaded_duration = loaded

    async def load(self, url: str) -> None:
        """Replace the item of the player."""
        self.loaded_urls.append(url)
        self._released = False
        self._attr_current_url = url
        self._attr_elapsed_time = 0.0
        self._attr_playback_state = PlaybackState.IDLE
        self._attr_loaded_duration = None
        if self.auto_ready:
            self._attr_item_status = ItemStatus.READY
            self._attr_duration = self.item_duration
        else:
            self._attr_item_status = ItemStatus.UNKNOWN
            self._attr_duration = None

    async def play(self) -> None:
        """Handle PLAY command on the player."""
        self.play_calls += 1
        self._attr_playback_state = PlaybackState.PLAYING

    async def pause(self) -> None:
        """Handle PAUSE command on the player."""
        self._attr_playback_state = PlaybackState.PAUSED

    async def set_muted(self, muted: bool) -> None:
        """Handle MUTE command on the player."""
        self._attr_muted = muted

    async def seek(self, position: float, tolerance: float | None = None) -> bool:
        """Handle SEEK command on the player."""
        self.seek_calls.append((position, tolerance))
        if self.reject_all:
            raise SeekFailure("seek rejected")
        if self.reject_precise and tolerance == 0:
            return False
        self._attr_elapsed_time = position
        return True


class FakeSearchProvider(SearchProvider):
    """Search provider that answers queries from in-memory scenes and markers."""

    def __init__(
        self,
        scenes: Sequence[Scene] = (),
        markers: Sequence[Marker] = (),
    ) -> None:
        """Initialize the fake search provider."""
        self.scenes = list(scenes)
        self.markers = list(markers)
        self.fail = False
        self.scene_calls: list[tuple[FilterDescriptor, QueryOptions | None]] = []
        self.marker_calls: list[tuple[FilterDescriptor, QueryOptions | None]] = []

    async def find_scenes(
        self, descriptor: FilterDescriptor, options: QueryOptions | None = None
    ) -> list[Scene]:
        """Return the scenes within the scope of the descriptor."""
        self.scene_calls.append((descriptor, options))
        if self.fail:
            raise NetworkError("server unreachable")
        result = [scene for scene in self.scenes if descriptor.matches(scene)]
        if descriptor.performer_gender:
            result = [
                scene
                for scene in result
                if any(p.gender == descriptor.performer_gender for p in scene.performers)
            ]
        return _paginate(result, options)

    async def find_markers(
        self, descriptor: FilterDescriptor, options: QueryOptions | None = None
    ) -> list[Marker]:
        """Return the markers within the scope of the descriptor."""
        self.marker_calls.append((descriptor, options))
        if self.fail:
            raise NetworkError("server unreachable")
        return _paginate(
            [marker for marker in self.markers if descriptor.matches(marker)], options
        )

    async def get_scene(self, scene_id: str) -> Scene | None:
        """Return a single scene by id."""
        if self.fail:
            raise NetworkError("server unreachable")
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None


def _paginate(items: list, options: QueryOptions | None) -> list:
    if options is None or options.per_page is None:
        return items
    page = options.page or 1
    start = (page - 1) * options.per_page
    return items[start : start + options.per_page]


async def wait_for_seek(engine: PlaybackEngine) -> None:
    """Wait until the pending (delayed) seek of the navigation controller has finished."""
    for _ in range(200):
        timer = engine.get_timer(TASK_ID_SEEK)
        task = engine.get_task(TASK_ID_SEEK)
        if timer is None and (task is None or task.done()):
            return
        if task is not None and not task.done():
            await asyncio.wait([task])
        else:
            await asyncio.sleep(0.01)
