"""Models describing what to play next and how to look it up."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mashumaro import DataClassDictMixin

from stash_playback.models.errors import InvalidCommand
from stash_playback.models.media_items import Marker

if TYPE_CHECKING:
    from stash_playback.models.media_items import Scene
    from stash_playback.models.player import Player


@dataclass(frozen=True, kw_only=True)
class AuthContext(DataClassDictMixin):
    """Server address and credentials used to build authenticated urls."""

    server_address: str
    api_key: str | None = None

    @property
    def base_url(self) -> str:
        """Return the server address without trailing slash."""
        return self.server_address.rstrip("/")


@dataclass(frozen=True, kw_only=True)
class FilterDescriptor(DataClassDictMixin):
    """The scope of a candidate query.

    Items matching any of the tag ids qualify. All other fields narrow the scope further.
    """

    tag_ids: tuple[str, ...] = ()
    text: str | None = None
    performer_id: str | None = None
    performer_gender: str | None = None
    min_play_count: int | None = None

    @classmethod
    def for_tag(cls, tag_id: str) -> FilterDescriptor:
        """Return a descriptor scoped to a single tag."""
        return cls(tag_ids=(tag_id,))

    @classmethod
    def for_tags(cls, tag_ids: list[str] | tuple[str, ...]) -> FilterDescriptor:
        """Return a descriptor scoped to any of the given tags."""
        # keep first-seen order, drop duplicates
        return cls(tag_ids=tuple(dict.fromkeys(tag_ids)))

    @classmethod
    def for_text(cls, text: str) -> FilterDescriptor:
        """Return a descriptor scoped to a free text search."""
        return cls(text=text.strip())

    @classmethod
    def for_performer(cls, performer_id: str) -> FilterDescriptor:
        """Return a descriptor scoped to a performer."""
        return cls(performer_id=performer_id)

    @classmethod
    def for_most_played(cls, min_play_count: int = 1) -> FilterDescriptor:
        """Return a descriptor scoped to scenes played at least min_play_count times."""
        return cls(min_play_count=min_play_count)

    @property
    def is_empty(self) -> bool:
        """Return if this descriptor does not narrow anything."""
        return not (
            self.tag_ids
            or self.text
            or self.performer_id
            or self.performer_gender
            or self.min_play_count
        )

    def matches(self, item: Scene | Marker) -> bool:
        """Verify that an item returned by a query actually falls within this scope."""
        if isinstance(item, Marker):
            if self.tag_ids and not any(item.has_tag(tag_id) for tag_id in self.tag_ids):
                return False
            if self.text and not item.matches_text(self.text):
                return False
            if self.performer_id and not any(
                performer.id == self.performer_id for performer in item.scene.performers or []
            ):
                return False
            return True
        if self.tag_ids and not any(tag.id in self.tag_ids for tag in item.tags):
            return False
        if self.min_play_count and (item.o_counter or 0) < self.min_play_count:
            return False
        if self.text:
            query = self.text.lower()
            if not (
                query in (item.title or "").lower()
                or any(query in tag.name.lower() for tag in item.tags)
            ):
                return False
        return not (self.performer_id and not item.has_performer(self.performer_id))


@dataclass(frozen=True, kw_only=True)
class QueryOptions(DataClassDictMixin):
    """Pagination and sorting of a candidate query. None means no restriction."""

    page: int | None = None
    per_page: int | None = None
    sort: str | None = None
    direction: str | None = None


@dataclass(kw_only=True)
class PlaybackTarget:
    """A resolved navigation step: the scene to play and the window within it.

    A target is consumed exactly once when it gets loaded into the player.
    """

    scene: Scene
    start: float | None = None
    end: float | None = None
    marker: Marker | None = None
    _consumed: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def for_scene(cls, scene: Scene, start: float | None = None) -> PlaybackTarget:
        """Return a target that plays a scene (optionally from a given position)."""
        return cls(scene=scene, start=start)

    @classmethod
    def for_marker(cls, marker: Marker, scene: Scene | None = None) -> PlaybackTarget:
        """Return a target that plays the window of a marker within its scene."""
        return cls(
            scene=scene or marker.to_scene(),
            start=marker.seconds,
            end=marker.end_seconds,
            marker=marker,
        )

    @property
    def is_marker(self) -> bool:
        """Return if this target originates from a marker."""
        return self.marker is not None

    @property
    def consumed(self) -> bool:
        """Return if this target has already been loaded."""
        return self._consumed

    @property
    def object_id(self) -> str:
        """Return the id used for events about this target."""
        return self.marker.id if self.marker else self.scene.id

    def consume(self) -> PlaybackTarget:
        """Mark the target as loaded, raises InvalidCommand when it already was."""
        if self._consumed:
            msg = f"Playback target {self.object_id} has already been consumed"
            raise InvalidCommand(msg)
        self._consumed = True
        return self


@dataclass(kw_only=True)
class PlayerHandle:
    """The single live player instance, its presentation controller and what it plays."""

    player: Player
    controller: object | None = None
    target: PlaybackTarget | None = None

    @property
    def scene_id(self) -> str | None:
        """Return the id of the scene that is loaded in the player (if any)."""
        return self.target.scene.id if self.target else None
