"""Shared message formatting helpers.

Keeping formatting here keeps console and log output consistent regardless of
whether a message arrived from the inbox or an open group.
"""

from __future__ import annotations

from core.group_keys import split_group_id
from core.models import NormalizedMessage

SNIPPET_CHARS = 400


def format_origin_label(message: NormalizedMessage, group_aliases: dict[str, str]) -> str:
    """Return a human-friendly origin label, using configured group aliases."""

    group_id = message.origin_group_id
    if group_id is None:
        return "direct"

    alias = group_aliases.get(group_id)
    if alias:
        return f"{alias} ({group_id})"

    url, channel_id = split_group_id(group_id)
    alias = group_aliases.get(url)
    if alias and channel_id is not None:
        return f"{alias} / channel {channel_id} ({group_id})"
    return group_id


def format_sender_label(message: NormalizedMessage) -> str:
    profile = message.profile
    if profile is not None and profile.display_name:
        return f"{profile.display_name} ({message.source})"
    return message.source


def format_message(
    message: NormalizedMessage,
    group_aliases: dict[str, str],
    snippet_chars: int = SNIPPET_CHARS,
) -> str:
    """Return a one-line rendering of a message for logs and the console."""

    origin = format_origin_label(message, group_aliases)
    sender = format_sender_label(message)
    body = " ".join((message.body or "").split())[:snippet_chars]
    parts = [f"[{origin}]", f"{sender}:", body]
    if message.attachments:
        parts.append(f"(+{len(message.attachments)} attachment(s))")
    return " ".join(part for part in parts if part)
