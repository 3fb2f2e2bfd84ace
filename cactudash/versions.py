"""Release tag comparison and lookup."""

from __future__ import annotations

import json
from collections.abc import Iterable
from functools import cmp_to_key
from typing import Any

import aiohttp


def compare_versions(x: str, y: str) -> int:
    """Compare two tags part by part.

    A leading ``v`` is ignored and parts are compared as text. The first
    differing part decides (-1 or 1); otherwise the tag with more parts
    is greater.
    """
    xs = x.removeprefix("v").split(".")
    ys = y.removeprefix("v").split(".")
    for a, b in zip(xs, ys):
        if a != b:
            return -1 if a < b else 1
    return len(xs) - len(ys)


def newest_tag(names: Iterable[str]) -> str:
    """Return the greatest tag name; raise ValueError if there is none."""
    candidates = list(names)
    if not candidates:
        raise ValueError("no tags found")
    return max(candidates, key=cmp_to_key(compare_versions))


def _tag_name(entry: Any) -> str:
    if not isinstance(entry, dict):
        raise ValueError("invalid tag entry")
    name = entry.get("name", "")
    if not isinstance(name, str):
        raise ValueError("invalid tag name")
    return name


async def fetch_last_tag(session: aiohttp.ClientSession, url: str) -> str:
    """Download a JSON list of ``{"name": ...}`` tags and return the newest."""
    async with session.get(url) as resp:
        if resp.status != 200:
            raise RuntimeError("failed to fetch tags")
        body = await resp.read()
    try:
        tags = json.loads(body)
    except ValueError as exc:
        raise ValueError(f"invalid tag list: {exc}") from exc
    if not isinstance(tags, list):
        raise ValueError("invalid tag list")
    return newest_tag(_tag_name(entry) for entry in tags)