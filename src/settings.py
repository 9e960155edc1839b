"""Static configuration for session-sync.

All user-editable settings (poll rate, open groups, logging, transports)
live in a single JSON file for quick edits without touching Python. Secrets
(seed words, tokens) stay in the environment / .env file.
"""

import json
import os

from dotenv import load_dotenv

from core.config import DEFAULT_HOME_SERVER
from core.group_keys import DEFAULT_CHANNEL_ID, build_group_id

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Config lives at the project root unless SESSION_SYNC_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("SESSION_SYNC_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema; defaults when absent."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_open_groups(raw_groups: list[dict]) -> tuple[list[tuple[str, int]], dict[str, str]]:
    """Normalize open groups and build an alias map keyed by group id."""

    groups: list[tuple[str, int]] = []
    aliases: dict[str, str] = {}
    for entry in raw_groups:
        url = entry.get("url")
        if not url:
            continue
        if not entry.get("enabled", True):
            continue
        channel_id = int(entry.get("channel_id", DEFAULT_CHANNEL_ID))
        groups.append((url, channel_id))
        alias = entry.get("alias")
        if alias:
            aliases[build_group_id(url, channel_id)] = alias
            # Mirror aliases onto the bare URL so legacy ids still get a label.
            aliases.setdefault(url, alias)
    return groups, aliases


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database (cursor, token, message log).
DB_PATH = _CONFIG.get("db_path") or os.path.join(PROJECT_ROOT, "session_sync.db")

# Fixed delay between poll cycles; the watchdog ticks at the same rate.
POLL_RATE_MS = int(_CONFIG.get("poll_rate_ms", 3000))
_watchdog = _CONFIG.get("watchdog", {})
WATCHDOG_STALL_MULTIPLIER = int(_watchdog.get("stall_multiplier", 50))

# Identity and profile.
HOME_SERVER = _CONFIG.get("home_server", DEFAULT_HOME_SERVER)
DISPLAY_NAME = _CONFIG.get("display_name")
AVATAR_FILE = _CONFIG.get("avatar_file")
SEED_ENV = "SESSION_SEED"
FILE_SERVER_TOKEN_ENV = "FILE_SERVER_TOKEN"

# Open groups joined on startup.
OPEN_GROUPS, GROUP_ALIASES = _normalize_open_groups(_CONFIG.get("open_groups", []))

# Message log retention.
HISTORY_TTL_DAYS = int(_CONFIG.get("history", {}).get("ttl_days", 30))

# "module:callable" returning a transport bundle for the run command.
TRANSPORT_FACTORY = _CONFIG.get("transport", {}).get("factory")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
