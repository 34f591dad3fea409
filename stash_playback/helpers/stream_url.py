"""
Helpers to turn raw (direct) media urls of the server into adaptive (HLS) stream urls.

The server exposes every scene at `<server>/scene/<id>/stream` (direct play) and
`<server>/scene/<id>/stream.m3u8` (adaptive streaming). The adaptive variant accepts
the following query parameters:

- resolution: the transcode resolution (ORIGINAL to avoid downscaling)
- t: the start position in whole seconds (older servers used `start`)
- apikey: the api key of the user
- _ts: cache-bust value, so the player never reuses a stale manifest
"""

from __future__ import annotations

import logging
import math
import time
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from stash_playback.constants import (
    ADAPTIVE_STREAM_SUFFIX,
    DEFAULT_RESOLUTION,
    DIRECT_STREAM_SUFFIX,
    LOGGER_NAME,
    PARAM_API_KEY,
    PARAM_CACHE_BUST,
    PARAM_LEGACY_START,
    PARAM_RESOLUTION,
    PARAM_START,
)
from stash_playback.models.enums import SceneAsset
from stash_playback.models.errors import UrlSynthesisFailure
from stash_playback.models.playback import AuthContext

LOGGER = logging.getLogger(f"{LOGGER_NAME}.stream_url")

# parameters that are (re)written by the synthesizer, all others are kept as-is
MANAGED_PARAMS = (
    PARAM_RESOLUTION,
    PARAM_START,
    PARAM_LEGACY_START,
    PARAM_API_KEY,
    PARAM_CACHE_BUST,
)


def round_seconds(value: float) -> int:
    """Round a position in seconds to whole seconds (half up)."""
    return math.floor(value + 0.5)


def _parse_seconds(value: str | None) -> int | None:
    """Parse a (possibly fractional) seconds query value."""
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return round_seconds(seconds)


def _has_valid_netloc(scheme: str, netloc: str, hostname: str | None) -> bool:
    """Return if the url components describe a usable server address."""
    if not scheme or not netloc or not hostname:
        return False
    if any(char.isspace() for char in netloc):
        return False
    return True


def synthesize_stream_url(
    source_url: str,
    start_seconds: float | None = None,
    auth: AuthContext | None = None,
    *,
    is_marker: bool = False,
    resolution: str = DEFAULT_RESOLUTION,
    now: float | None = None,
) -> str | None:
    """
    Return the canonical adaptive stream url for a raw (or already adaptive) stream url.

    Returns None if the url can not be parsed into scheme/host/path components.

    :param source_url: The raw stream url (direct or adaptive).
    :param start_seconds: The requested start position (rounded to whole seconds).
    :param auth: Credentials, used to attach the api key when the url has none.
    :param is_marker: The url plays a marker, these always start at an explicit position.
    :param resolution: The resolution to request when the url does not specify one.
    :param now: Override for the cache-bust timestamp (epoch seconds).
    """
    try:
        parts = urlsplit(source_url.strip())
        hostname = parts.hostname
        # accessing the port validates it
        _ = parts.port
    except ValueError:
        return None
    if not _has_valid_netloc(parts.scheme, parts.netloc, hostname):
        return None

    params = parse_qsl(parts.query, keep_blank_values=True)
    existing: dict[str, str] = {}
    for key, value in params:
        if key in MANAGED_PARAMS:
            # first occurrence wins
            existing.setdefault(key, value)
    extra_params = [(key, value) for key, value in params if key not in MANAGED_PARAMS]

    path = parts.path
    is_adaptive = path.endswith(ADAPTIVE_STREAM_SUFFIX)
    if not is_adaptive:
        if path.endswith(DIRECT_STREAM_SUFFIX):
            path = path[: -len(DIRECT_STREAM_SUFFIX)] + ADAPTIVE_STREAM_SUFFIX
        else:
            path = path.rstrip("/") + ADAPTIVE_STREAM_SUFFIX

    # start position: explicit request, then t, then the legacy start parameter
    start: int | None = None
    if start_seconds is not None and math.isfinite(start_seconds) and start_seconds >= 0:
        start = round_seconds(start_seconds)
    if start is None:
        start = _parse_seconds(existing.get(PARAM_START))
    if start is None:
        start = _parse_seconds(existing.get(PARAM_LEGACY_START))
    if start is None and is_marker:
        start = 0

    auth_key = auth.api_key if auth and auth.api_key else None
    if is_adaptive:
        # already synthesized: keep the key that is in the url
        api_key = existing.get(PARAM_API_KEY) or auth_key
    else:
        api_key = auth_key or existing.get(PARAM_API_KEY)

    query_params: list[tuple[str, str]] = list(extra_params)
    query_params.append((PARAM_RESOLUTION, existing.get(PARAM_RESOLUTION) or resolution))
    if start is not None:
        query_params.append((PARAM_START, str(start)))
    if api_key:
        query_params.append((PARAM_API_KEY, api_key))
    timestamp = int(now if now is not None else time.time())
    query_params.append((PARAM_CACHE_BUST, str(timestamp)))

    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query_params), ""))


def resolve_stream_url(
    source_url: str,
    start_seconds: float | None = None,
    auth: AuthContext | None = None,
    *,
    is_marker: bool = False,
    resolution: str = DEFAULT_RESOLUTION,
    now: float | None = None,
) -> str:
    """Return the adaptive stream url, falling back to the original url if it can't be built."""
    try:
        url = synthesize_stream_url(
            source_url,
            start_seconds,
            auth,
            is_marker=is_marker,
            resolution=resolution,
            now=now,
        )
        if url is None:
            msg = f"Unable to parse stream url: {source_url}"
            raise UrlSynthesisFailure(msg)
    except UrlSynthesisFailure as err:
        LOGGER.warning("%s - using the original url", str(err))
        return source_url
    LOGGER.debug("Synthesized stream url %s", url)
    return url


def build_scene_stream_url(auth: AuthContext, scene_id: str) -> str | None:
    """Return the raw (direct) stream url of a scene, None without server address."""
    if not auth.base_url:
        return None
    return f"{auth.base_url}/scene/{scene_id}{DIRECT_STREAM_SUFFIX}"


def build_asset_url(
    auth: AuthContext,
    scene_id: str,
    asset: SceneAsset,
    seconds: float | None = None,
    now: float | None = None,
) -> str:
    """
    Return the (authenticated, cache-safe) url of a scene asset.

    A screenshot with seconds given returns the thumbnail at that timestamp.
    """
    query_params: list[tuple[str, str]] = []
    if asset == SceneAsset.SCREENSHOT and seconds is not None:
        query_params.append((PARAM_START, f"{seconds:.2f}"))
    timestamp = int(now if now is not None else time.time())
    query_params.append((PARAM_CACHE_BUST, str(timestamp)))
    if auth.api_key:
        query_params.append((PARAM_API_KEY, auth.api_key))
    return f"{auth.base_url}/scene/{scene_id}/{asset.value}?{urlencode(query_params)}"
