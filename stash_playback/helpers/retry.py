"""Retry helper for async callables."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from stash_playback.constants import LOGGER_NAME
from stash_playback.models.errors import StashPlaybackError

LOGGER = logging.getLogger(f"{LOGGER_NAME}.retry")

_R = TypeVar("_R")


async def retry_with_backoff(
    func: Callable[..., Awaitable[_R]],
    *args: Any,
    delays: Sequence[float],
    retry_on: tuple[type[BaseException], ...] = (StashPlaybackError,),
    logger: logging.Logger | None = None,
    **kwargs: Any,
) -> _R:
    """
    Call (and await) func, sleeping before every attempt with the given (increasing) delays.

    The number of attempts equals the number of delays. Exceptions listed in retry_on
    trigger the next attempt, the exception of the last attempt is raised to the caller.
    Any other exception is raised immediately.

    :param func: The coroutine function to call.
    :param delays: The delay (in seconds) to wait before each attempt.
    :param retry_on: The exception types that should trigger a retry.
    :param logger: Logger to report failed attempts to.
    """
    if not delays:
        msg = "At least one delay is required"
        raise ValueError(msg)
    logger = logger or LOGGER
    last_attempt = len(delays)
    for attempt, delay in enumerate(delays, 1):
        if delay:
            await asyncio.sleep(delay)
        try:
            return await func(*args, **kwargs)
        except retry_on as err:
            if attempt == last_attempt:
                raise
            logger.debug(
                "Attempt %s/%s of %s failed: %s",
                attempt,
                last_attempt,
                getattr(func, "__name__", str(func)),
                str(err) or err.__class__.__name__,
            )
    # unreachable, the loop either returns or raises
    raise RuntimeError("retry_with_backoff exhausted without result")
