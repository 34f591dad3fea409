"""Main PlaybackEngine class."""

from __future__ import annotations

import asyncio
import logging
import os
import random
import threading
from collections.abc import Awaitable, Callable, Coroutine
from typing import TYPE_CHECKING, Any, Self, TypeVar, cast
from uuid import uuid4

import shortuuid
from aiofiles.os import wrap

from stash_playback.constants import APPLICATION_NAME, LOGGER_NAME, VERBOSE_LOG_LEVEL
from stash_playback.controllers.config import ConfigController
from stash_playback.controllers.navigation import NavigationController
from stash_playback.controllers.players import PlayerRegistry
from stash_playback.controllers.shuffle import ShuffleQueueManager
from stash_playback.models.enums import EventType
from stash_playback.models.event import PlaybackEvent

if TYPE_CHECKING:
    from types import TracebackType

    from stash_playback.controllers.players import PlayerFactory
    from stash_playback.models.search_provider import SearchProvider

isdir = wrap(os.path.isdir)
mkdirs = wrap(os.makedirs)

EventCallBackType = (
    Callable[[PlaybackEvent], None] | Callable[[PlaybackEvent], Coroutine[Any, Any, None]]
)
EventSubscriptionType = tuple[
    EventCallBackType, tuple[EventType, ...] | None, tuple[str, ...] | None
]

LOGGER = logging.getLogger(LOGGER_NAME)

_R = TypeVar("_R")


class PlaybackEngine:
    """Main PlaybackEngine (session) object."""

    loop: asyncio.AbstractEventLoop
    config: ConfigController
    players: PlayerRegistry
    shuffle: ShuffleQueueManager
    navigation: NavigationController

    def __init__(
        self,
        storage_path: str,
        search_provider: SearchProvider,
        player_factory: PlayerFactory | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the PlaybackEngine."""
        self.storage_path = storage_path
        self.search_provider = search_provider
        self.session_id = shortuuid.uuid()
        self._player_factory = player_factory
        self._rng = rng
        self._subscribers: set[EventSubscriptionType] = set()
        self._tracked_tasks: dict[str, asyncio.Task[Any]] = {}
        self._tracked_timers: dict[str, asyncio.TimerHandle] = {}
        self.closing = False
        self.started = False

    async def start(self) -> None:
        """Start the playback engine."""
        self.loop = asyncio.get_running_loop()
        self.loop_thread_id = getattr(self.loop, "_thread_id")  # noqa: B009
        if not await isdir(self.storage_path):
            await mkdirs(self.storage_path)
        # setup config controller first, all other controllers depend on it
        self.config = ConfigController(self)
        await self.config.setup()
        LOGGER.info("Starting %s (session %s)", APPLICATION_NAME, self.session_id)
        self.players = PlayerRegistry(self, self._player_factory)
        self.shuffle = ShuffleQueueManager(self, self._rng)
        self.navigation = NavigationController(self, self._rng)
        await self.players.setup()
        await self.shuffle.setup()
        await self.navigation.setup()
        self.started = True

    async def stop(self) -> None:
        """Stop the playback engine."""
        LOGGER.info("Stop called, cleaning up...")
        self.signal_event(EventType.SHUTDOWN)
        self.closing = True
        # cancel all running tasks and timers
        for task in self._tracked_tasks.values():
            task.cancel()
        for timer in self._tracked_timers.values():
            timer.cancel()
        self._tracked_timers.clear()
        # stop core controllers
        await self.navigation.close()
        await self.shuffle.close()
        await self.players.close()
        await self.config.close()
        self.started = False

    def signal_event(
        self,
        event: EventType,
        object_id: str | None = None,
        data: Any = None,
    ) -> None:
        """Signal event to subscribers."""
        if self.closing:
            return

        self.verify_event_loop_thread("signal_event")

        if LOGGER.isEnabledFor(VERBOSE_LOG_LEVEL):
            LOGGER.getChild("event").log(VERBOSE_LOG_LEVEL, "%s %s", event.value, object_id or "")

        event_obj = PlaybackEvent(event=event, object_id=object_id, data=data)
        for cb_func, event_filter, id_filter in self._subscribers:
            if not (event_filter is None or event in event_filter):
                continue
            if not (id_filter is None or object_id in id_filter):
                continue
            if asyncio.iscoroutinefunction(cb_func):
                if TYPE_CHECKING:
                    cb_func = cast("Callable[[PlaybackEvent], Coroutine[Any, Any, None]]", cb_func)
                self.create_task(cb_func, event_obj)
            else:
                if TYPE_CHECKING:
                    cb_func = cast("Callable[[PlaybackEvent], None]", cb_func)
                self.loop.call_soon_threadsafe(cb_func, event_obj)

    def subscribe(
        self,
        cb_func: EventCallBackType,
        event_filter: EventType | tuple[EventType, ...] | None = None,
        id_filter: str | tuple[str, ...] | None = None,
    ) -> Callable[[], None]:
        """Add callback to event listeners.

        Returns function to remove the listener.
            :param cb_func: callback function or coroutine
            :param event_filter: Optionally only listen for these events
            :param id_filter: Optionally only listen for these id's (player_id, scene_id, marker_id)
        """
        if isinstance(event_filter, EventType):
            event_filter = (event_filter,)
        if isinstance(id_filter, str):
            id_filter = (id_filter,)
        listener = (cb_func, event_filter, id_filter)
        self._subscribers.add(listener)

        def remove_listener() -> None:
            self._subscribers.remove(listener)

        return remove_listener

    def create_task(
        self,
        target: Callable[..., Coroutine[Any, Any, _R]] | Awaitable[_R],
        *args: Any,
        task_id: str | None = None,
        abort_existing: bool = False,
        **kwargs: Any,
    ) -> asyncio.Task[_R]:
        """Create Task on (main) event loop from Coroutine(function).

        Tasks created by this helper will be properly cancelled on stop.
        """
        if task_id and (existing := self._tracked_tasks.get(task_id)) and not existing.done():
            # prevent duplicate tasks if task_id is given and already present
            if abort_existing:
                existing.cancel()
            else:
                if asyncio.iscoroutine(target):
                    # the coroutine will never be awaited
                    target.close()
                return existing
        self.verify_event_loop_thread("create_task")

        if asyncio.iscoroutinefunction(target):
            # coroutine function
            task = self.loop.create_task(target(*args, **kwargs))
        elif asyncio.iscoroutine(target):
            # coroutine
            task = self.loop.create_task(target)
        elif callable(target):
            raise RuntimeError("Function is not a coroutine or coroutine function")
        else:
            raise RuntimeError("Target is missing")

        if task_id is None:
            task_id = uuid4().hex

        def task_done_callback(_task: asyncio.Task[Any]) -> None:
            # a newer task may have taken over the id of an aborted task
            if self._tracked_tasks.get(task_id) is _task:
                self._tracked_tasks.pop(task_id, None)
            # log unhandled exceptions
            if (
                LOGGER.isEnabledFor(logging.DEBUG)
                and not _task.cancelled()
                and (err := _task.exception())
            ):
                task_name = _task.get_name() if hasattr(_task, "get_name") else str(_task)
                LOGGER.warning(
                    "Exception in task %s - target: %s: %s",
                    task_name,
                    str(target),
                    str(err),
                    exc_info=err if LOGGER.isEnabledFor(VERBOSE_LOG_LEVEL) else None,
                )

        self._tracked_tasks[task_id] = task
        task.add_done_callback(task_done_callback)
        return task

    def call_later(
        self,
        delay: float,
        target: Coroutine[Any, Any, _R] | Awaitable[_R] | Callable[..., _R],
        *args: Any,
        task_id: str | None = None,
        **kwargs: Any,
    ) -> asyncio.TimerHandle:
        """
        Run callable/awaitable after given delay.

        Use task_id for debouncing.
        """
        self.verify_event_loop_thread("call_later")

        if not task_id:
            task_id = uuid4().hex

        if existing := self._tracked_timers.get(task_id):
            existing.cancel()

        def _create_task(_target: Coroutine[Any, Any, _R]) -> None:
            self._tracked_timers.pop(task_id, None)
            self.create_task(_target, *args, task_id=task_id, abort_existing=True, **kwargs)

        if asyncio.iscoroutinefunction(target) or asyncio.iscoroutine(target):
            # coroutine function
            if TYPE_CHECKING:
                target = cast("Coroutine[Any, Any, _R]", target)
            handle = self.loop.call_later(delay, _create_task, target)
        else:
            # regular callable
            if TYPE_CHECKING:
                target = cast("Callable[..., _R]", target)
            handle = self.loop.call_later(delay, target, *args)
        self._tracked_timers[task_id] = handle
        return handle

    def get_task(self, task_id: str) -> asyncio.Task[Any] | None:
        """Get existing scheduled task."""
        if existing := self._tracked_tasks.get(task_id):
            # prevent duplicate tasks if task_id is given and already present
            return existing
        return None

    def get_timer(self, task_id: str) -> asyncio.TimerHandle | None:
        """Get existing scheduled timer."""
        return self._tracked_timers.get(task_id)

    def cancel_task(self, task_id: str) -> None:
        """Cancel existing scheduled task."""
        if existing := self._tracked_tasks.pop(task_id, None):
            existing.cancel()

    def cancel_timer(self, task_id: str) -> None:
        """Cancel existing scheduled timer."""
        if existing := self._tracked_timers.pop(task_id, None):
            existing.cancel()

    def verify_event_loop_thread(self, what: str) -> None:
        """Report and raise if we are not running in the event loop thread."""
        if self.loop_thread_id != threading.get_ident():
            raise RuntimeError(
                f"Non-Async operation detected: {what} may only be called from the eventloop."
            )

    async def __aenter__(self) -> Self:
        """Return Context manager."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        """Exit context manager."""
        await self.stop()
        return None
