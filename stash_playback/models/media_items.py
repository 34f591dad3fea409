"""Models for the media items (scenes, markers and their references) of a Stash server."""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro import DataClassDictMixin


@dataclass(kw_only=True)
class Tag(DataClassDictMixin):
    """Tag reference."""

    id: str
    name: str

    def __hash__(self) -> int:
        """Return custom hash."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality of two items."""
        if not isinstance(other, Tag):
            return False
        return self.id == other.id


@dataclass(kw_only=True)
class Performer(DataClassDictMixin):
    """Performer reference."""

    id: str
    name: str
    gender: str | None = None
    image_path: str | None = None
    scene_count: int | None = None
    favorite: bool | None = None
    rating100: int | None = None

    def __hash__(self) -> int:
        """Return custom hash."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality of two items."""
        if not isinstance(other, Performer):
            return False
        return self.id == other.id


@dataclass(kw_only=True)
class ScenePaths(DataClassDictMixin):
    """Raw (direct) urls the server exposes for a scene."""

    stream: str
    screenshot: str | None = None
    preview: str | None = None


@dataclass(kw_only=True)
class SceneFile(DataClassDictMixin):
    """File details of a scene."""

    size: int | None = None
    duration: float | None = None
    video_codec: str | None = None
    width: int | None = None
    height: int | None = None


@dataclass(kw_only=True)
class Scene(DataClassDictMixin):
    """A playable media item on the server."""

    id: str
    paths: ScenePaths
    title: str | None = None
    details: str | None = None
    files: list[SceneFile] = field(default_factory=list)
    performers: list[Performer] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    rating100: int | None = None
    o_counter: int | None = None

    def __hash__(self) -> int:
        """Return custom hash."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality of two items."""
        if not isinstance(other, Scene):
            return False
        return self.id == other.id

    @property
    def display_name(self) -> str:
        """Return a name for the scene that is safe to log."""
        return self.title or f"Scene {self.id}"

    @property
    def duration(self) -> float | None:
        """Return the duration in seconds, if known before the asset loads."""
        for file in self.files:
            if file.duration:
                return float(file.duration)
        return None

    def has_tag_named(self, names: set[str]) -> bool:
        """Return if the scene carries a tag with one of the given (lowercase) names."""
        return any(tag.name.lower() in names for tag in self.tags)

    def has_performer(self, performer_id: str) -> bool:
        """Return if the given performer appears in this scene."""
        return any(performer.id == performer_id for performer in self.performers)

    def primary_performer(self, preferred_gender: str | None = None) -> Performer | None:
        """Return the performer to anchor discovery on for this scene."""
        if preferred_gender:
            for performer in self.performers:
                if performer.gender == preferred_gender:
                    return performer
        return self.performers[0] if self.performers else None


@dataclass(kw_only=True)
class MarkerScenePaths(DataClassDictMixin):
    """Urls of the scene a marker belongs to (all optional on marker queries)."""

    stream: str | None = None
    screenshot: str | None = None
    preview: str | None = None


@dataclass(kw_only=True)
class MarkerScene(DataClassDictMixin):
    """Reference to the scene that owns a marker."""

    id: str
    title: str | None = None
    paths: MarkerScenePaths | None = None
    performers: list[Performer] | None = None


@dataclass(kw_only=True)
class Marker(DataClassDictMixin):
    """A named sub-segment (view) within a scene."""

    id: str
    title: str
    seconds: float
    scene: MarkerScene
    primary_tag: Tag
    end_seconds: float | None = None
    stream: str | None = None
    preview: str | None = None
    screenshot: str | None = None
    tags: list[Tag] = field(default_factory=list)

    def __hash__(self) -> int:
        """Return custom hash."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality of two items."""
        if not isinstance(other, Marker):
            return False
        return self.id == other.id

    @property
    def display_name(self) -> str:
        """Return a name for the marker that is safe to log."""
        return self.title or f"Marker {self.id}"

    @property
    def formatted_time(self) -> str:
        """Return the start of the marker as (h:)mm:ss."""
        total_seconds = int(self.seconds)
        hours, remainder = divmod(total_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def has_tag(self, tag_id: str) -> bool:
        """Return if the marker carries the tag as primary or secondary tag."""
        return self.primary_tag.id == tag_id or any(tag.id == tag_id for tag in self.tags)

    def matches_text(self, query: str) -> bool:
        """Return if the title or one of the tag names contains the query (case insensitive)."""
        query = query.lower()
        return (
            query in self.title.lower()
            or query in self.primary_tag.name.lower()
            or any(query in tag.name.lower() for tag in self.tags)
        )

    def to_scene(self, stream_url: str | None = None) -> Scene:
        """Return a minimal Scene built from the marker's own scene reference.

        Used when the full scene can not be fetched. The given stream_url is used when
        the reference carries no stream url. The marker's own stream is a clip of just
        the marker, so it is never used to play the scene.
        """
        stream = (self.scene.paths.stream if self.scene.paths else None) or stream_url or ""
        return Scene(
            id=self.scene.id,
            title=self.scene.title,
            paths=ScenePaths(
                stream=stream,
                screenshot=self.scene.paths.screenshot if self.scene.paths else None,
                preview=self.scene.paths.preview if self.scene.paths else None,
            ),
            performers=list(self.scene.performers or []),
        )
