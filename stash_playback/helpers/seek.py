"""Helpers to position a player within its (possibly not yet loaded) item."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from stash_playback.constants import (
    DEFAULT_SEEK_RETRY_DELAYS,
    FALLBACK_DURATION,
    LOGGER_NAME,
    RANDOM_JUMP_DEFAULT_CAP,
    RANDOM_JUMP_END_MARGIN,
    RANDOM_JUMP_MAX_FRACTION,
    RANDOM_JUMP_MIN_FRACTION,
    RANDOM_JUMP_MIN_START,
    VERBOSE_LOG_LEVEL,
)
from stash_playback.helpers.retry import retry_with_backoff
from stash_playback.models.enums import PlaybackState, SeekOutcome
from stash_playback.models.errors import (
    ItemNotReadyError,
    PlayerUnavailableError,
    SeekFailure,
    StashPlaybackError,
)

if TYPE_CHECKING:
    from stash_playback.controllers.players import PlayerRegistry
    from stash_playback.models.player import Player

LOGGER = logging.getLogger(f"{LOGGER_NAME}.seek")

PositionType = float | Callable[["Player"], float]


def pick_random_position(duration: float, rng: random.Random | None = None) -> float:
    """
    Return a random position within an item of the given duration.

    The position is picked uniformly from [max(20, 5%), min(duration - 5, 90%)] so the jump
    never lands in an intro or in the last seconds. If that range is empty (short items),
    the middle of the item is used, capped at 5 minutes.
    """
    rng = rng or random
    lower = max(RANDOM_JUMP_MIN_START, duration * RANDOM_JUMP_MIN_FRACTION)
    upper = min(duration - RANDOM_JUMP_END_MARGIN, duration * RANDOM_JUMP_MAX_FRACTION)
    if upper <= lower:
        return min(RANDOM_JUMP_DEFAULT_CAP, duration / 2)
    return rng.uniform(lower, upper)


def estimate_duration(player: Player) -> float:
    """Return the (best guess of the) duration of the item loaded in the player."""
    duration = player.duration
    if player.is_ready and duration and math.isfinite(duration) and duration > 0:
        return duration
    loaded = player.loaded_duration
    if loaded and math.isfinite(loaded) and loaded > 0:
        return loaded
    return FALLBACK_DURATION


async def _try_seek(player: Player, position: float, tolerance: float | None) -> bool:
    """Perform a single seek on the player, return if it finished."""
    try:
        return await player.seek(position, tolerance)
    except SeekFailure as err:
        LOGGER.debug("Seek of %s to %.1f rejected: %s", player, position, str(err))
        return False


async def seek(
    player: Player | None,
    target_seconds: float,
    tolerance: float | None = None,
) -> SeekOutcome:
    """
    Seek the player to the target position and make sure it is playing.

    A precise (zero tolerance) seek is tried first, on failure the seek is retried
    once with the given tolerance (None for the player's default).
    """
    if player is None:
        return SeekOutcome.NO_PLAYER
    target_seconds = max(0.0, target_seconds)
    if await _try_seek(player, target_seconds, 0):
        outcome = SeekOutcome.PRECISE
    elif await _try_seek(player, target_seconds, tolerance):
        outcome = SeekOutcome.TOLERANT
    else:
        LOGGER.warning("Failed to seek %s to %.1f", player, target_seconds)
        return SeekOutcome.FAILED
    LOGGER.log(
        VERBOSE_LOG_LEVEL, "Seek of %s to %.1f completed (%s)", player, target_seconds, outcome
    )
    if player.playback_state != PlaybackState.PLAYING:
        await player.play()
    return outcome


async def seek_when_ready(
    registry: PlayerRegistry,
    position: PositionType,
    delays: Sequence[float] = DEFAULT_SEEK_RETRY_DELAYS,
    tolerance: float | None = None,
) -> SeekOutcome:
    """
    Seek the current player of the registry once its item reports ready.

    Every attempt waits for the next delay and re-reads the player from the registry,
    as the player may have been swapped in the meantime. The final attempt is forced,
    regardless of the readiness of the item.

    :param registry: The player registry to get the current player from.
    :param position: The position in seconds, or a callable that computes it from the player.
    :param delays: The (increasing) delays before each attempt.
    :param tolerance: The tolerance of the fallback seek.
    """
    attempts = len(delays)
    attempt = 0

    async def _attempt() -> SeekOutcome:
        nonlocal attempt
        attempt += 1
        final = attempt >= attempts
        player = registry.current()
        if player is None:
            msg = "No active player to seek"
            raise PlayerUnavailableError(msg)
        if not player.is_ready and not final:
            msg = f"Item of {player} is not ready yet ({player.item_status})"
            raise ItemNotReadyError(msg)
        target = position(player) if callable(position) else position
        outcome = await seek(player, target, tolerance)
        if outcome == SeekOutcome.FAILED and not final:
            msg = f"Seek of {player} to {target:.1f} failed"
            raise SeekFailure(msg)
        return outcome

    try:
        outcome = await retry_with_backoff(_attempt, delays=delays, logger=LOGGER)
    except PlayerUnavailableError:
        LOGGER.debug("Seek abandoned: no active player")
        return SeekOutcome.NO_PLAYER
    except StashPlaybackError as err:
        LOGGER.warning("Seek abandoned after %s attempts: %s", attempt, str(err))
        return SeekOutcome.FAILED
    if outcome.succeeded:
        LOGGER.debug("Seek succeeded after %s attempt(s) (%s)", attempt, outcome)
    return outcome
