"""Helpers to work with (de)serializing of json."""

from __future__ import annotations

import asyncio
from typing import Any

import orjson

JSON_DECODE_EXCEPTIONS = (orjson.JSONDecodeError,)


def json_dumps(data: Any, indent: bool = False) -> str:
    """Dump json string."""
    option = orjson.OPT_NON_STR_KEYS
    if indent:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(data, option=option).decode("utf-8")


json_loads = orjson.loads


async def async_json_dumps(data: Any, indent: bool = False) -> str:
    """Dump json string async."""
    return await asyncio.to_thread(json_dumps, data, indent)


async def async_json_loads(data: str | bytes) -> Any:
    """Load json from string async."""
    return await asyncio.to_thread(json_loads, data)
