"""Fixtures for testing Stash Playback."""

import logging
import pathlib
import random
from collections.abc import AsyncGenerator

import aiofiles
import pytest

from stash_playback.engine import PlaybackEngine
from stash_playback.helpers.json import json_dumps
from tests.common import SERVER, FakePlayer, FakeSearchProvider


@pytest.fixture(name="caplog")
def caplog_fixture(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Set log level to debug for tests using the caplog fixture."""
    caplog.set_level(logging.DEBUG)
    return caplog


@pytest.fixture
def search_provider() -> FakeSearchProvider:
    """Return an (empty) in-memory search provider."""
    return FakeSearchProvider()


@pytest.fixture
def created_players() -> list[FakePlayer]:
    """Return the list that collects the players created by the player factory."""
    return []


@pytest.fixture
async def engine(
    tmp_path: pathlib.Path,
    search_provider: FakeSearchProvider,
    created_players: list[FakePlayer],
) -> AsyncGenerator[PlaybackEngine, None]:
    """Start a PlaybackEngine with fake collaborators and (near) zero delays.

    :param tmp_path: Temporary directory for test data.
    """
    storage_path = tmp_path / "data"
    storage_path.mkdir(parents=True)

    # Create a config file without any delays
    config_file = storage_path / "settings.json"
    config_data = {
        "server_address": SERVER,
        "api_key": "K",
        "seek_retry_delays": [0.0, 0.0, 0.0],
        "random_jump_delay": 0.0,
    }
    async with aiofiles.open(config_file, "w") as f:
        await f.write(json_dumps(config_data))

    def player_factory(player_id: str) -> FakePlayer:
        player = FakePlayer(player_id)
        created_players.append(player)
        return player

    engine_instance = PlaybackEngine(
        str(storage_path), search_provider, player_factory, rng=random.Random(1234)
    )

    await engine_instance.start()

    try:
        yield engine_instance
    finally:
        await engine_instance.stop()
