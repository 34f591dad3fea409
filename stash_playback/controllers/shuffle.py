"""Logic to build and walk the (looping) shuffle queues of markers and scenes."""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from stash_playback.constants import VERBOSE_LOG_LEVEL
from stash_playback.models.core_controller import CoreController
from stash_playback.models.enums import EventType, MediaKind
from stash_playback.models.errors import StashPlaybackError
from stash_playback.models.playback import FilterDescriptor, QueryOptions
from stash_playback.models.shuffle_queue import ItemT, ShuffleQueue, unique_by_id

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine


class ShuffleQueueManager(CoreController):
    """Builds, advances and loops shuffle queues."""

    domain: str = "shuffle"

    def __init__(self, engine: PlaybackEngine, rng: random.Random | None = None) -> None:
        """Initialize core controller."""
        super().__init__(engine)
        self._rng = rng or random.Random()

    async def build(
        self,
        descriptor: FilterDescriptor,
        kind: MediaKind,
        shuffle: bool = True,
        sort: str | None = None,
        direction: str | None = None,
    ) -> ShuffleQueue[Any]:
        """
        Build a queue with all items within the scope of the descriptor.

        Results are paged in through the search provider, de-duplicated and verified
        against the descriptor. A failing query results in an empty queue.
        The sort decides which items make it in when there are more than the page limit.
        """
        try:
            items = await self._fetch_all(descriptor, kind, sort, direction)
        except StashPlaybackError as err:
            self.logger.warning(
                "Unable to build %s queue for %s: %s",
                kind.value,
                descriptor,
                str(err) or err.__class__.__name__,
            )
            return ShuffleQueue.empty(kind, descriptor)
        verified = [item for item in items if descriptor.matches(item)]
        if len(verified) != len(items):
            self.logger.warning(
                "Dropped %s %s(s) not matching %s",
                len(items) - len(verified),
                kind.value,
                descriptor,
            )
        queue = self._create(verified, kind, descriptor, shuffle)
        self.logger.debug("Built %s queue with %s items for %s", kind.value, len(queue), descriptor)
        return queue

    def from_items(
        self,
        items: Sequence[ItemT],
        kind: MediaKind,
        descriptor: FilterDescriptor | None = None,
        shuffle: bool = True,
    ) -> ShuffleQueue[ItemT]:
        """Build a queue from an explicit list of items."""
        return self._create(unique_by_id(items), kind, descriptor or FilterDescriptor(), shuffle)

    def next(self, queue: ShuffleQueue[ItemT]) -> tuple[ItemT, ShuffleQueue[ItemT]] | None:
        """Return the next item of the queue (looping) and the advanced queue."""
        if (result := queue.next()) is None:
            return None
        self.logger.log(
            VERBOSE_LOG_LEVEL, "Next item in shuffle: index %s of %s", result[1].index, len(queue)
        )
        return result

    def previous(self, queue: ShuffleQueue[ItemT]) -> tuple[ItemT, ShuffleQueue[ItemT]] | None:
        """Return the previous item of the queue (looping) and the rewound queue."""
        if (result := queue.previous()) is None:
            return None
        self.logger.log(
            VERBOSE_LOG_LEVEL,
            "Previous item in shuffle: index %s of %s",
            result[1].index,
            len(queue),
        )
        return result

    def reshuffle(self, queue: ShuffleQueue[ItemT]) -> ShuffleQueue[ItemT]:
        """Return the queue with its items shuffled again, positioned at the first item."""
        if not queue:
            return queue
        self.logger.debug("Re-shuffling %s queue", queue.kind.value)
        return self._create(list(queue.items), queue.kind, queue.descriptor, True)

    def _create(
        self,
        items: Sequence[ItemT],
        kind: MediaKind,
        descriptor: FilterDescriptor,
        shuffle: bool,
    ) -> ShuffleQueue[ItemT]:
        if shuffle and len(items) > 1:
            items = self._rng.sample(list(items), len(items))
        queue: ShuffleQueue[ItemT] = ShuffleQueue(
            items=tuple(items), kind=kind, descriptor=descriptor
        )
        self.engine.signal_event(EventType.SHUFFLE_QUEUE_UPDATED, kind.value, len(queue))
        return queue

    async def _fetch_all(
        self,
        descriptor: FilterDescriptor,
        kind: MediaKind,
        sort: str | None = None,
        direction: str | None = None,
    ) -> list[Any]:
        """Page in all items for the descriptor, keeping first-seen order."""
        settings = self.engine.config.settings
        provider = self.engine.search_provider
        fetch: Callable[[FilterDescriptor, QueryOptions], Awaitable[Sequence[Any]]]
        if kind == MediaKind.MARKER:
            fetch = provider.find_markers
            per_page = settings.marker_page_size
            max_pages = (
                settings.marker_search_max_pages if descriptor.text else settings.marker_max_pages
            )
        else:
            fetch = provider.find_scenes
            per_page = settings.scene_page_size
            max_pages = settings.scene_max_pages

        collected: dict[str, Any] = {}
        for page in range(1, max_pages + 1):
            options = QueryOptions(page=page, per_page=per_page, sort=sort, direction=direction)
            results = await fetch(descriptor, options)
            if not results:
                break
            added = 0
            for item in results:
                if item.id in collected:
                    continue
                collected[item.id] = item
                added += 1
            self.logger.log(
                VERBOSE_LOG_LEVEL,
                "Page %s: added %s unique %s(s) (total: %s)",
                page,
                added,
                kind.value,
                len(collected),
            )
            if not added or len(results) < per_page:
                # end of results
                break
        return list(collected.values())
