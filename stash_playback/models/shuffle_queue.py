"""Immutable, looping queue of shuffle candidates."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Generic, Protocol, TypeVar

from stash_playback.models.enums import MediaKind
from stash_playback.models.errors import InvalidDataError
from stash_playback.models.playback import FilterDescriptor


class _HasId(Protocol):
    id: str


ItemT = TypeVar("ItemT", bound=_HasId)


def unique_by_id(items: Iterable[ItemT]) -> tuple[ItemT, ...]:
    """Return the items without duplicate ids, keeping first-seen order."""
    seen: set[str] = set()
    result: list[ItemT] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return tuple(result)


@dataclass(frozen=True)
class ShuffleQueue(Generic[ItemT]):
    """Ordered, de-duplicated candidates plus the position within them.

    The queue loops: advancing past the last item returns to the first one.
    Every mutation returns a new queue.
    """

    items: tuple[ItemT, ...]
    kind: MediaKind
    descriptor: FilterDescriptor = field(default_factory=FilterDescriptor)
    index: int = 0

    def __post_init__(self) -> None:
        """Validate the queue on construction."""
        if len({item.id for item in self.items}) != len(self.items):
            msg = "Shuffle queue can not contain duplicate items"
            raise InvalidDataError(msg)
        if self.items and not 0 <= self.index < len(self.items):
            msg = f"Index {self.index} out of range for queue of {len(self.items)} items"
            raise InvalidDataError(msg)
        if not self.items and self.index != 0:
            msg = "Index of an empty queue must be 0"
            raise InvalidDataError(msg)

    @classmethod
    def empty(
        cls, kind: MediaKind, descriptor: FilterDescriptor | None = None
    ) -> ShuffleQueue[ItemT]:
        """Return an empty queue."""
        return cls(items=(), kind=kind, descriptor=descriptor or FilterDescriptor())

    def __len__(self) -> int:
        """Return the number of items in the queue."""
        return len(self.items)

    def __bool__(self) -> bool:
        """Return if the queue holds any item."""
        return bool(self.items)

    @property
    def current(self) -> ItemT | None:
        """Return the item at the current position."""
        return self.items[self.index] if self.items else None

    def position_of(self, item_id: str) -> int | None:
        """Return the position of the item with the given id (if present)."""
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None

    def with_index(self, index: int) -> ShuffleQueue[ItemT]:
        """Return a copy of the queue positioned at the given index."""
        return replace(self, index=index)

    def next(self) -> tuple[ItemT, ShuffleQueue[ItemT]] | None:
        """Return the next item and the advanced queue, wrapping to the start."""
        if not self.items:
            return None
        queue = self.with_index((self.index + 1) % len(self.items))
        return queue.items[queue.index], queue

    def previous(self) -> tuple[ItemT, ShuffleQueue[ItemT]] | None:
        """Return the previous item and the rewound queue, wrapping to the end."""
        if not self.items:
            return None
        queue = self.with_index((self.index - 1) % len(self.items))
        return queue.items[queue.index], queue
