"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_HOME_SERVER = "https://file.getsession.org/"


@dataclass(frozen=True)
class EngineConfig:
    """Polling and identity settings for the sync engine."""

    poll_rate_ms: int = 3000
    # 10 missed polls in a row, times 5
    stall_multiplier: int = 50
    pubkey_hex_length: int = 66
    default_channel_id: int = 1
    home_server: str = DEFAULT_HOME_SERVER


@dataclass(frozen=True)
class InviteTemplates:
    """Text used by the plain-text open group invite."""

    text: str = "{pubKey} has invited you to join {name} at {url}"
    non_default_channel: str = (
        " You may not be able to join this channel if you are using a mobile session client"
    )
