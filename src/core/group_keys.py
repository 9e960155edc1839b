"""Helpers for working with open group ids."""

from __future__ import annotations

from typing import Optional, Tuple

CHANNEL_SEPARATOR = "_"
DEFAULT_CHANNEL_ID = 1


def build_group_id(url: str, channel_id: int) -> str:
    """Return the canonical registry id: `<url>_<channel_id>`."""

    return f"{url}{CHANNEL_SEPARATOR}{channel_id}"


def split_group_id(group_id: str) -> Tuple[str, Optional[int]]:
    """Split a group id into (url, channel_id)."""

    url, sep, channel_part = group_id.rpartition(CHANNEL_SEPARATOR)
    if not sep or not url:
        return group_id, None
    try:
        return url, int(channel_part)
    except ValueError:
        return group_id, None


def legacy_group_id_candidates(group_id: str, default_channel_id: int = DEFAULT_CHANNEL_ID) -> list[str]:
    """Return lookup candidates for a possibly legacy group id, in priority order.

    Older callers passed the bare URL (no channel suffix) or kept the default
    channel suffix on an id registered without one.
    """

    suffix = f"{CHANNEL_SEPARATOR}{default_channel_id}"
    candidates = [group_id]
    if group_id.endswith(suffix) and len(group_id) > len(suffix):
        candidates.append(group_id[: -len(suffix)])
    else:
        candidates.append(f"{group_id}{suffix}")
    return candidates
