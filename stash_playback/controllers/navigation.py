"""
Navigation controller: decides what plays next.

The active NavigationMode is only ever changed by an explicit user action. On every
'advance' the mode decides the next PlaybackTarget, after which the stream url is
synthesized, the target is loaded in the (single) active player and the player is
positioned by the seek helpers.

All work that waits (queries, queue builds, delayed seeks) runs in tracked tasks of
the engine and captures the generation of the session at request time. Changing the
mode or closing the player bumps the generation and cancels the pending work,
so late completions never mutate a discarded session.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from stash_playback.constants import (
    DEFAULT_SEEK_TOLERANCE,
    DIRECTION_DESC,
    SORT_DATE,
    SORT_PLAY_COUNT,
    SORT_RANDOM,
    TASK_ID_ADVANCE,
    TASK_ID_QUEUE_BUILD,
    TASK_ID_SEEK,
)
from stash_playback.helpers.seek import (
    estimate_duration,
    pick_random_position,
    seek,
    seek_when_ready,
)
from stash_playback.helpers.stream_url import build_scene_stream_url, resolve_stream_url
from stash_playback.models.core_controller import CoreController
from stash_playback.models.enums import EventType, MediaKind, NavigationMode, SeekOutcome
from stash_playback.models.errors import (
    EmptyCandidateSet,
    InvalidCommand,
    InvalidDataError,
    NetworkError,
    PlayerUnavailableError,
    StashPlaybackError,
)
from stash_playback.models.media_items import Marker, Performer, Scene
from stash_playback.models.playback import FilterDescriptor, PlaybackTarget, QueryOptions
from stash_playback.models.shuffle_queue import ShuffleQueue, unique_by_id

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine
    from stash_playback.models.player import Player

ContextItem = Scene | Marker


class NavigationController(CoreController):
    """Navigation mode state machine of the playback engine."""

    domain: str = "navigation"

    def __init__(self, engine: PlaybackEngine, rng: random.Random | None = None) -> None:
        """Initialize core controller."""
        super().__init__(engine)
        self._rng = rng or random.Random()
        self._mode = NavigationMode.SEQUENTIAL
        self._context: tuple[ContextItem, ...] = ()
        self._target: PlaybackTarget | None = None
        self._anchor: Performer | None = None
        self._marker_queue: ShuffleQueue[Marker] | None = None
        self._scene_queue: ShuffleQueue[Scene] | None = None
        self._last_marker_filter: FilterDescriptor | None = None
        self._last_scene_filter: FilterDescriptor | None = None
        self._generation = 0
        self._marker_end_reached = False

    @property
    def mode(self) -> NavigationMode:
        """Return the active navigation mode."""
        return self._mode

    @property
    def generation(self) -> int:
        """Return the generation of the current session."""
        return self._generation

    @property
    def target(self) -> PlaybackTarget | None:
        """Return the target that is loaded in the player."""
        return self._target

    @property
    def current_scene(self) -> Scene | None:
        """Return the scene that is loaded in the player."""
        return self._target.scene if self._target else None

    @property
    def current_marker(self) -> Marker | None:
        """Return the marker that is playing (if any)."""
        return self._target.marker if self._target else None

    @property
    def anchor_performer(self) -> Performer | None:
        """Return the performer that performer discovery is anchored on."""
        return self._anchor

    @property
    def context(self) -> tuple[ContextItem, ...]:
        """Return the item list of the active screen."""
        return self._context

    @property
    def marker_queue(self) -> ShuffleQueue[Marker] | None:
        """Return the marker shuffle queue (if any)."""
        return self._marker_queue

    @property
    def scene_queue(self) -> ShuffleQueue[Scene] | None:
        """Return the scene shuffle queue of the tag or most played shuffle (if any)."""
        return self._scene_queue

    @property
    def is_advancing(self) -> bool:
        """Return if an advance is in flight."""
        return (task := self.engine.get_task(TASK_ID_ADVANCE)) is not None and not task.done()

    def set_context(self, items: Sequence[ContextItem]) -> None:
        """Set the item list of the active screen (used for sequential navigation)."""
        self._context = unique_by_id(items)
        self.logger.debug("Context updated with %s items", len(self._context))

    # user actions

    async def open_scene(
        self,
        scene: Scene,
        start: float | None = None,
        performer: Performer | None = None,
    ) -> PlaybackTarget | None:
        """
        Open (play) a scene, optionally from a given position.

        The anchor performer for discovery is taken from the given performer context
        when it appears in the scene, otherwise the preferred performer of the scene.
        """
        self._invalidate()
        if performer is not None and scene.has_performer(performer.id):
            self._anchor = performer
        else:
            self._anchor = scene.primary_performer(
                self.engine.config.settings.preferred_performer_gender
            )
        return await self._play(PlaybackTarget.for_scene(scene, start), self._generation)

    async def open_marker(self, marker: Marker) -> PlaybackTarget | None:
        """Open (play) a marker within its scene."""
        self._invalidate()
        generation = self._generation
        target = await self._marker_target(marker)
        if self._anchor is None:
            self._anchor = target.scene.primary_performer(
                self.engine.config.settings.preferred_performer_gender
            )
        return await self._play(target, generation)

    async def set_mode(self, mode: NavigationMode) -> None:
        """Set the active navigation mode."""
        if mode == self._mode:
            return
        prev_mode = self._mode
        self._invalidate()
        self._mode = mode
        # queues only live as long as their mode is active
        self._marker_queue = None
        self._scene_queue = None
        self.logger.debug("Navigation mode changed from %s to %s", prev_mode, mode)
        self.engine.signal_event(EventType.NAVIGATION_MODE_CHANGED, mode.value, prev_mode.value)

    async def start_random_jump(self) -> SeekOutcome:
        """Enable random jump mode and jump to a random position in the current item."""
        await self.set_mode(NavigationMode.RANDOM_JUMP)
        return await self.random_jump()

    async def random_jump(self) -> SeekOutcome:
        """Jump to a random position within the item that is playing."""
        registry = self.engine.players
        if (player := registry.current()) is None:
            return SeekOutcome.NO_PLAYER
        if player.is_ready:
            position = pick_random_position(estimate_duration(player), self._rng)
            self.logger.debug("Random jump to %.1f", position)
            outcome = await seek(player, position, DEFAULT_SEEK_TOLERANCE)
        else:
            outcome = await seek_when_ready(
                registry,
                self._random_position,
                self.engine.config.settings.seek_retry_delays,
                DEFAULT_SEEK_TOLERANCE,
            )
        self.engine.signal_event(
            EventType.SEEK_COMPLETED, self._target.object_id if self._target else None, outcome
        )
        return outcome

    async def start_marker_shuffle(self, descriptor: FilterDescriptor) -> PlaybackTarget | None:
        """Shuffle all markers within the scope of the descriptor (tag(s) or search text)."""
        if descriptor.is_empty:
            msg = "Marker shuffle needs a tag or search text"
            raise InvalidCommand(msg)
        await self.set_mode(NavigationMode.MARKER_SHUFFLE)
        generation = self._generation
        self._last_marker_filter = descriptor
        queue = await self._build_queue(descriptor, MediaKind.MARKER)
        return await self._start_queue(queue, generation)

    async def start_marker_shuffle_with(self, markers: Sequence[Marker]) -> PlaybackTarget | None:
        """Shuffle an explicit list of markers."""
        await self.set_mode(NavigationMode.MARKER_SHUFFLE)
        queue = self.engine.shuffle.from_items(markers, MediaKind.MARKER)
        return await self._start_queue(queue, self._generation)

    async def start_tag_shuffle(self, tag_id: str) -> PlaybackTarget | None:
        """Shuffle all scenes with the given tag."""
        await self.set_mode(NavigationMode.TAG_SHUFFLE)
        generation = self._generation
        descriptor = FilterDescriptor.for_tag(tag_id)
        self._last_scene_filter = descriptor
        queue = await self._build_queue(descriptor, MediaKind.SCENE)
        return await self._start_queue(queue, generation)

    async def start_most_played_shuffle(
        self, scenes: Sequence[Scene] | None = None
    ) -> PlaybackTarget | None:
        """
        Shuffle the scenes that have been played at least once.

        Without scenes the library is queried, most played first. Every scene of the
        queue starts at a random position.
        """
        await self.set_mode(NavigationMode.MOST_PLAYED_SHUFFLE)
        generation = self._generation
        descriptor = FilterDescriptor.for_most_played()
        if scenes is None:
            queue = await self._build_queue(descriptor, MediaKind.SCENE)
        else:
            queue = self.engine.shuffle.from_items(
                [scene for scene in scenes if descriptor.matches(scene)],
                MediaKind.SCENE,
                descriptor,
            )
        return await self._start_queue(queue, generation, random_jump=True)

    async def start_performer_discovery(
        self, performer: Performer | None = None
    ) -> PlaybackTarget | None:
        """Enable performer discovery (optionally anchored on a performer) and jump."""
        await self.set_mode(NavigationMode.PERFORMER_DISCOVERY)
        if performer is not None:
            self._anchor = performer
        return await self.advance()

    async def start_library_random(self) -> PlaybackTarget | None:
        """Enable library random mode and jump to a random scene."""
        await self.set_mode(NavigationMode.LIBRARY_RANDOM)
        return await self.advance()

    async def stop_shuffle(self) -> None:
        """Leave any shuffle mode, return to sequential navigation."""
        self._last_marker_filter = None
        self._last_scene_filter = None
        await self.set_mode(NavigationMode.SEQUENTIAL)
        self._marker_queue = None
        self._scene_queue = None

    async def reshuffle(self) -> PlaybackTarget | None:
        """Shuffle the active queue again and play its first item."""
        if self._mode == NavigationMode.MARKER_SHUFFLE and self._marker_queue:
            queue: ShuffleQueue[Any] = self.engine.shuffle.reshuffle(self._marker_queue)
        elif self._mode.is_shuffle and self._scene_queue:
            queue = self.engine.shuffle.reshuffle(self._scene_queue)
        else:
            self.logger.debug("Nothing to reshuffle in mode %s", self._mode)
            return None
        return await self._start_queue(
            queue,
            self._generation,
            random_jump=self._mode == NavigationMode.MOST_PLAYED_SHUFFLE,
        )

    async def close(self) -> None:
        """Leave the player view: cancel pending work and release the player."""
        self._invalidate()
        self._target = None
        self._marker_end_reached = False
        await self.engine.players.clear()

    async def advance(self) -> PlaybackTarget | None:
        """
        Advance to the next item according to the active mode.

        Returns the target that plays after the advance, or None if nothing changed
        (including when another advance is still in flight).
        """
        return await self._run_step(1)

    async def previous(self) -> PlaybackTarget | None:
        """Step back to the previous item (shuffle queue or context list, wrapping)."""
        return await self._run_step(-1)

    async def handle_progress(self, elapsed: float) -> bool:
        """
        Handle a progress update of the player.

        Pauses playback once the end of a marker has been passed.
        Returns True when the end of the marker was reached with this update.
        """
        target = self._target
        if target is None or target.end is None or self._marker_end_reached:
            return False
        if elapsed < target.end:
            return False
        self._marker_end_reached = True
        if (player := self.engine.players.current()) is not None:
            await player.pause()
        self.logger.debug("Reached end of marker %s at %.1f", target.object_id, elapsed)
        self.engine.signal_event(EventType.MARKER_END_REACHED, target.object_id, elapsed)
        return True

    # internals

    def _invalidate(self) -> None:
        """Bump the generation and cancel all pending work of the session."""
        self._generation += 1
        for task_id in (TASK_ID_SEEK, TASK_ID_QUEUE_BUILD, TASK_ID_ADVANCE):
            self.engine.cancel_timer(task_id)
            self.engine.cancel_task(task_id)

    def _is_current(self, generation: int) -> bool:
        if generation == self._generation:
            return True
        self.logger.debug("Discarding result of stale session %s", generation)
        return False

    async def _run_step(self, step: int) -> PlaybackTarget | None:
        if self.is_advancing:
            self.logger.debug("Ignoring navigation request: an advance is in flight")
            return None
        task = self.engine.create_task(
            self._step, step, self._generation, task_id=TASK_ID_ADVANCE
        )
        await asyncio.wait([task])
        if task.cancelled():
            return None
        return task.result()

    async def _step(self, step: int, generation: int) -> PlaybackTarget | None:
        mode = self._mode
        try:
            if mode == NavigationMode.MARKER_SHUFFLE:
                return await self._step_queue(MediaKind.MARKER, step, generation)
            if mode == NavigationMode.TAG_SHUFFLE:
                return await self._step_queue(MediaKind.SCENE, step, generation)
            if mode == NavigationMode.MOST_PLAYED_SHUFFLE:
                return await self._step_queue(
                    MediaKind.SCENE, step, generation, random_jump=True
                )
            if mode == NavigationMode.PERFORMER_DISCOVERY and step > 0:
                return await self._discover_performer_scene(generation)
            if mode == NavigationMode.LIBRARY_RANDOM and step > 0:
                return await self._pick_library_random(generation)
            return await self._step_context(step, generation)
        except (InvalidCommand, PlayerUnavailableError):
            raise
        except StashPlaybackError as err:
            self.logger.warning(
                "Unable to advance in mode %s: %s", mode, str(err) or err.__class__.__name__
            )
            return None

    async def _step_context(self, step: int, generation: int) -> PlaybackTarget | None:
        """Step through the context list of the active screen (wrapping)."""
        if not self._context:
            self.logger.debug("No context items to navigate")
            return None
        index = self._context_index()
        if index is None:
            next_index = 0 if step > 0 else len(self._context) - 1
        else:
            next_index = (index + step) % len(self._context)
        item = self._context[next_index]
        if isinstance(item, Marker):
            target = await self._marker_target(item)
        else:
            target = PlaybackTarget.for_scene(item)
        random_jump = self._mode == NavigationMode.RANDOM_JUMP and not target.is_marker
        return await self._play(target, generation, random_jump=random_jump)

    def _context_index(self) -> int | None:
        if self._target is None:
            return None
        marker = self._target.marker
        for index, item in enumerate(self._context):
            if isinstance(item, Marker):
                if marker is not None and item.id == marker.id:
                    return index
            elif item.id == self._target.scene.id:
                return index
        return None

    async def _step_queue(
        self, kind: MediaKind, step: int, generation: int, random_jump: bool = False
    ) -> PlaybackTarget | None:
        """Take the next (or previous) item of the shuffle queue, rebuilding it when empty."""
        manager = self.engine.shuffle
        queue: ShuffleQueue[Any] | None = (
            self._marker_queue if kind == MediaKind.MARKER else self._scene_queue
        )
        result = None
        if queue:
            result = manager.next(queue) if step > 0 else manager.previous(queue)
        if result is None:
            for descriptor in self._rebuild_candidates(kind):
                queue = await self._build_queue(descriptor, kind)
                if not self._is_current(generation):
                    return None
                if queue:
                    result = (queue.items[0], queue)
                    break
        if result is None:
            self.logger.info("No %s candidates left to shuffle, staying on the current item", kind)
            return None
        item, queue = result
        return await self._play_queue_item(item, queue, generation, random_jump)

    def _rebuild_candidates(self, kind: MediaKind) -> list[FilterDescriptor]:
        """Return the filters to rebuild an empty queue from, in order of preference."""
        if self._mode == NavigationMode.MOST_PLAYED_SHUFFLE:
            return [FilterDescriptor.for_most_played()]
        candidates: list[FilterDescriptor] = []
        if kind == MediaKind.MARKER:
            if self._marker_queue is not None and not self._marker_queue.descriptor.is_empty:
                candidates.append(self._marker_queue.descriptor)
            if self._last_marker_filter is not None:
                candidates.append(self._last_marker_filter)
            if (marker := self.current_marker) is not None:
                candidates.append(FilterDescriptor.for_tag(marker.primary_tag.id))
        else:
            if self._scene_queue is not None and not self._scene_queue.descriptor.is_empty:
                candidates.append(self._scene_queue.descriptor)
            if self._last_scene_filter is not None:
                candidates.append(self._last_scene_filter)
        return list(dict.fromkeys(candidates))

    async def _build_queue(
        self, descriptor: FilterDescriptor, kind: MediaKind
    ) -> ShuffleQueue[Any]:
        # most played scenes first when the library holds more than the page limit
        sort = SORT_PLAY_COUNT if descriptor.min_play_count else None
        task = self.engine.create_task(
            self.engine.shuffle.build(
                descriptor, kind, sort=sort, direction=DIRECTION_DESC if sort else None
            ),
            task_id=TASK_ID_QUEUE_BUILD,
            abort_existing=True,
        )
        await asyncio.wait([task])
        if task.cancelled():
            return ShuffleQueue.empty(kind, descriptor)
        return task.result()

    def _set_queue(self, queue: ShuffleQueue[Any]) -> None:
        if queue.kind == MediaKind.MARKER:
            self._marker_queue = queue
        else:
            self._scene_queue = queue

    async def _start_queue(
        self, queue: ShuffleQueue[Any], generation: int, random_jump: bool = False
    ) -> PlaybackTarget | None:
        """Activate a freshly built queue and play its first item."""
        if not self._is_current(generation):
            return None
        if not queue:
            self.logger.warning("No items to shuffle, leaving shuffle mode")
            await self.stop_shuffle()
            return None
        return await self._play_queue_item(queue.items[0], queue, generation, random_jump)

    async def _play_queue_item(
        self,
        item: ContextItem,
        queue: ShuffleQueue[Any],
        generation: int,
        random_jump: bool = False,
    ) -> PlaybackTarget | None:
        """Play an item of the queue, the queue only moves when playback changed."""
        if isinstance(item, Marker):
            target = await self._play(await self._marker_target(item), generation)
        else:
            target = await self._play(
                PlaybackTarget.for_scene(item), generation, random_jump=random_jump
            )
        if target is not None and self._is_current(generation):
            self._set_queue(queue)
        return target

    async def _discover_performer_scene(self, generation: int) -> PlaybackTarget | None:
        """Jump to another scene of the anchor performer."""
        current = self.current_scene
        if current is None:
            self.logger.debug("Performer discovery needs a scene that is playing")
            return None
        settings = self.engine.config.settings
        anchor = self._anchor or current.primary_performer(settings.preferred_performer_gender)
        if anchor is None:
            self.logger.debug("No performer to discover from, random jump in current scene")
            await self.random_jump()
            return self._target
        self._anchor = anchor

        provider = self.engine.search_provider
        descriptor = FilterDescriptor.for_performer(anchor.id)
        options = QueryOptions(
            page=1,
            per_page=settings.discovery_page_size,
            sort=SORT_DATE,
            direction=DIRECTION_DESC,
        )
        candidates = self._filter_candidates(
            await provider.find_scenes(descriptor, options), current.id
        )
        if not candidates:
            # broaden the query: no paging or sorting restrictions
            self.logger.debug("No other scenes of %s on first page, broadening", anchor.name)
            candidates = self._filter_candidates(
                await provider.find_scenes(descriptor, QueryOptions()), current.id
            )
        if not self._is_current(generation):
            return None
        if not candidates:
            self.logger.info("No other scenes of %s, random jump in current scene", anchor.name)
            await self.random_jump()
            return self._target

        scene = self._rng.choice(candidates)
        if not scene.performers:
            self._anchor = None
        self.logger.debug("Performer discovery (%s) selected %s", anchor.name, scene.display_name)
        return await self._play(PlaybackTarget.for_scene(scene), generation, random_jump=True)

    async def _pick_library_random(self, generation: int) -> PlaybackTarget | None:
        """Jump to a random scene of the whole library."""
        settings = self.engine.config.settings
        provider = self.engine.search_provider
        current_id = self.current_scene.id if self.current_scene else None
        descriptors = [FilterDescriptor()]
        if gender := settings.preferred_performer_gender:
            descriptors.insert(0, FilterDescriptor(performer_gender=gender))
        options = QueryOptions(
            page=1,
            per_page=settings.discovery_page_size,
            sort=SORT_RANDOM,
            direction=DIRECTION_DESC,
        )
        for attempt, descriptor in enumerate(descriptors, 1):
            try:
                scenes = await provider.find_scenes(descriptor, options)
            except NetworkError as err:
                if attempt == len(descriptors):
                    raise
                self.logger.debug("Library query failed (%s), trying unfiltered", str(err))
                continue
            if not self._is_current(generation):
                return None
            if candidates := self._filter_candidates(scenes, current_id):
                break
        else:
            msg = "No scenes available in the library"
            raise EmptyCandidateSet(msg)

        scene = self._rng.choice(candidates)
        if self._anchor is None:
            self._anchor = scene.primary_performer(settings.preferred_performer_gender)
        self.logger.debug("Library random selected %s", scene.display_name)
        return await self._play(PlaybackTarget.for_scene(scene), generation)

    def _filter_candidates(self, scenes: Sequence[Scene], current_id: str | None) -> list[Scene]:
        """Drop the current scene and scenes of excluded categories."""
        config = self.engine.config
        return [
            scene
            for scene in unique_by_id(scenes)
            if scene.id != current_id and not config.is_excluded(scene)
        ]

    async def _marker_target(self, marker: Marker) -> PlaybackTarget:
        """Return the target for a marker, with the full scene when it can be fetched."""
        scene: Scene | None = None
        try:
            scene = await self.engine.search_provider.get_scene(marker.scene.id)
        except NetworkError as err:
            self.logger.debug("Unable to fetch scene of marker %s: %s", marker.id, str(err))
        if scene is None or not scene.paths.stream:
            # markers play their window within the stream of the full scene
            stream_url = build_scene_stream_url(self.engine.config.auth, marker.scene.id)
            if scene is None:
                scene = marker.to_scene(stream_url)
            elif stream_url:
                scene = replace(scene, paths=replace(scene.paths, stream=stream_url))
        return PlaybackTarget.for_marker(marker, scene)

    def _random_position(self, player: Player) -> float:
        return pick_random_position(estimate_duration(player), self._rng)

    async def _play(
        self,
        target: PlaybackTarget,
        generation: int,
        random_jump: bool = False,
    ) -> PlaybackTarget | None:
        """Load the target in the active player and position it."""
        if not self._is_current(generation):
            return None
        if not target.scene.paths.stream:
            msg = f"No stream url for {target.object_id}"
            raise InvalidDataError(msg)
        settings = self.engine.config.settings
        url = resolve_stream_url(
            target.scene.paths.stream,
            target.start,
            self.engine.config.auth,
            is_marker=target.is_marker,
            resolution=settings.resolution,
        )
        # pending seeks belong to the previous item
        self.engine.cancel_timer(TASK_ID_SEEK)
        self.engine.cancel_task(TASK_ID_SEEK)
        player = await self.engine.players.load(target, url)
        self._target = target
        self._marker_end_reached = False
        self.logger.info(
            "Playing %s", target.marker.display_name if target.marker else target.scene.display_name
        )
        self.engine.signal_event(EventType.PLAYBACK_TARGET_CHANGED, target.object_id, target)
        await player.play()

        if random_jump:
            self.engine.call_later(
                settings.random_jump_delay,
                self._delayed_seek,
                self._random_position,
                generation,
                DEFAULT_SEEK_TOLERANCE,
                task_id=TASK_ID_SEEK,
            )
        elif target.start:
            self.engine.create_task(
                self._delayed_seek(target.start, generation),
                task_id=TASK_ID_SEEK,
                abort_existing=True,
            )
        return target

    async def _delayed_seek(
        self,
        position: Any,
        generation: int,
        tolerance: float | None = None,
    ) -> SeekOutcome:
        registry = self.engine.players
        outcome = await seek_when_ready(
            registry, position, self.engine.config.settings.seek_retry_delays, tolerance
        )
        if self._is_current(generation):
            self.engine.signal_event(
                EventType.SEEK_COMPLETED,
                self._target.object_id if self._target else None,
                outcome,
            )
        return outcome
