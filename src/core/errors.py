"""Error taxonomy shared by the core and adapters."""

from __future__ import annotations


class SessionSyncError(Exception):
    """Base class for all session-sync errors."""


class IdentityNotReadyError(SessionSyncError):
    """No usable identity is loaded (missing or malformed pubkey)."""


class TransportError(SessionSyncError):
    """A single data source failed; never fatal to a poll cycle."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class ClassificationAmbiguous(SessionSyncError):
    """Loosely-typed inbox content matched zero or several envelope shapes."""


class GroupNotFoundError(SessionSyncError):
    """Unknown group id, even after the legacy channel-suffix fallback."""

    def __init__(self, group_id: str) -> None:
        super().__init__(f"No such open group: {group_id}")
        self.group_id = group_id
