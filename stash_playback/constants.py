"""All constants for Stash Playback."""

from typing import Final

APPLICATION_NAME: Final = "Stash Playback"

LOGGER_NAME: Final = "stash_playback"
VERBOSE_LOG_LEVEL: Final = 5

SETTINGS_FILE: Final = "settings.json"

# adaptive (HLS) stream url handling
DIRECT_STREAM_SUFFIX: Final = "/stream"
ADAPTIVE_STREAM_SUFFIX: Final = "/stream.m3u8"
DEFAULT_RESOLUTION: Final = "ORIGINAL"
PARAM_RESOLUTION: Final = "resolution"
PARAM_START: Final = "t"
PARAM_LEGACY_START: Final = "start"
PARAM_API_KEY: Final = "apikey"
PARAM_CACHE_BUST: Final = "_ts"

# seek handling
DEFAULT_SEEK_RETRY_DELAYS: Final = (1.0, 1.5, 2.5)
DEFAULT_SEEK_TOLERANCE: Final = 0.5
FALLBACK_DURATION: Final = 1800.0
RANDOM_JUMP_MIN_START: Final = 20.0
RANDOM_JUMP_MIN_FRACTION: Final = 0.05
RANDOM_JUMP_MAX_FRACTION: Final = 0.9
RANDOM_JUMP_END_MARGIN: Final = 5.0
RANDOM_JUMP_DEFAULT_CAP: Final = 300.0

# candidate queries
SORT_DATE: Final = "date"
SORT_RANDOM: Final = "random"
SORT_PLAY_COUNT: Final = "o_counter"
DIRECTION_ASC: Final = "ASC"
DIRECTION_DESC: Final = "DESC"

# tracked task ids
TASK_ID_ADVANCE: Final = "navigation_advance"
TASK_ID_SEEK: Final = "navigation_seek"
TASK_ID_QUEUE_BUILD: Final = "navigation_queue_build"

# core config defaults
DEFAULT_EXCLUDED_TAG_NAMES: Final = ("vr",)
DEFAULT_PREFERRED_PERFORMER_GENDER: Final = "FEMALE"
