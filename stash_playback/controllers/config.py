"""Logic to handle the (persisted) settings of the playback engine."""

from __future__ import annotations

import contextlib
import os
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import aiofiles
from aiofiles.os import wrap
from mashumaro.exceptions import MissingField

from stash_playback.constants import SETTINGS_FILE
from stash_playback.helpers.json import JSON_DECODE_EXCEPTIONS, async_json_dumps, async_json_loads
from stash_playback.models.config import EngineConfig
from stash_playback.models.core_controller import CoreController
from stash_playback.models.errors import InvalidDataError
from stash_playback.models.playback import AuthContext

if TYPE_CHECKING:
    from stash_playback.engine import PlaybackEngine
    from stash_playback.models.media_items import Scene

isfile = wrap(os.path.isfile)
remove = wrap(os.remove)
rename = wrap(os.rename)

ExcludedScenePredicate = Callable[["Scene"], bool]


class ConfigController(CoreController):
    """Controller that handles the settings of the playback engine."""

    domain: str = "config"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize config controller."""
        super().__init__(engine)
        self.initialized = False
        self.filename = os.path.join(self.engine.storage_path, SETTINGS_FILE)
        self.settings = EngineConfig()
        self._exclude_predicate: ExcludedScenePredicate | None = None

    async def setup(self) -> None:
        """Async initialize of controller."""
        await self._load()
        self.initialized = True
        self.logger.debug("Started.")

    @property
    def auth(self) -> AuthContext:
        """Return the server address and credentials."""
        return AuthContext(
            server_address=self.settings.server_address or "", api_key=self.settings.api_key
        )

    def is_excluded(self, scene: Scene) -> bool:
        """Return if the scene belongs to an excluded category (and is never auto-selected)."""
        if self._exclude_predicate is not None:
            return self._exclude_predicate(scene)
        return scene.has_tag_named(set(self.settings.excluded_tag_names))

    def set_exclude_predicate(self, predicate: ExcludedScenePredicate | None) -> None:
        """Replace the predicate that excludes scenes (None restores the tag name check)."""
        self._exclude_predicate = predicate

    def update(self, **values: Any) -> EngineConfig:
        """Update (and validate) one or more settings."""
        data = self.settings.to_dict()
        for key in values:
            if key not in data:
                msg = f"Unknown setting: {key}"
                raise InvalidDataError(msg)
        data.update(values)
        self.settings = EngineConfig.from_dict(data)
        return self.settings

    async def save(self) -> None:
        """Save the settings to disk."""
        filename_backup = f"{self.filename}.backup"
        # make backup before we write a new file
        if await isfile(self.filename):
            with contextlib.suppress(FileNotFoundError):
                await remove(filename_backup)
            await rename(self.filename, filename_backup)

        async with aiofiles.open(self.filename, "w", encoding="utf-8") as _file:
            await _file.write(await async_json_dumps(self.settings.to_dict(), indent=True))
        self.logger.debug("Saved settings to %s", self.filename)

    async def _load(self) -> None:
        """Load the settings from persistent storage."""
        for filename in (self.filename, f"{self.filename}.backup"):
            try:
                async with aiofiles.open(filename, encoding="utf-8") as _file:
                    data = await async_json_loads(await _file.read())
            except FileNotFoundError:
                continue
            except JSON_DECODE_EXCEPTIONS:
                self.logger.exception("Error while reading settings file %s", filename)
                continue
            try:
                self.settings = EngineConfig.from_dict(data)
            except (InvalidDataError, MissingField, TypeError, ValueError) as err:
                self.logger.error("Invalid settings in %s: %s", filename, str(err))
                continue
            self.logger.debug("Loaded settings from %s", filename)
            return
        self.logger.debug("Started with default settings: no settings file found.")
