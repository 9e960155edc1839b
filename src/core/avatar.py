"""Avatar reconciliation (core domain).

Decides whether the local avatar must be uploaded by comparing it against
what the file server currently serves for our pubkey:

    outcome      action
    MATCH        NOOP
    MISMATCH     UPLOAD
    UNREADABLE   UPLOAD
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from core.models import AvatarPointer
from core.ports import AvatarStore

LOGGER = logging.getLogger(__name__)


class AvatarOutcome(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    UNREADABLE = "unreadable"


class AvatarAction(str, Enum):
    NOOP = "noop"
    UPLOAD = "upload"


@dataclass(frozen=True)
class AvatarReconciliation:
    outcome: AvatarOutcome
    action: AvatarAction
    pointer: Optional[AvatarPointer]


def same_bytes(local: bytes, remote: bytes) -> bool:
    """Byte-exact comparison, length first."""

    return len(local) == len(remote) and local == remote


class AvatarReconciler:
    """Runs the fetch / download / compare decision chain once per load."""

    def __init__(
        self,
        store: AvatarStore,
        upload: Callable[[bytes], Awaitable[AvatarPointer]],
        server_url: str,
    ) -> None:
        self._store = store
        self._upload = upload
        self._server_url = server_url

    async def _read_remote(self, pubkey_hex: str) -> tuple[Optional[AvatarPointer], Optional[bytes]]:
        try:
            pointer = await self._store.fetch_meta(pubkey_hex, self._server_url)
        except Exception as exc:
            LOGGER.warning("Avatar metadata fetch failed for %s: %s", pubkey_hex, exc)
            return None, None
        if pointer is None:
            LOGGER.info("No avatar on the file server for %s", pubkey_hex)
            return None, None
        try:
            data = await self._store.download(pointer.url, pointer.key)
        except Exception as exc:
            LOGGER.warning("Avatar download failed for %s: %s", pointer.url, exc)
            return pointer, None
        return pointer, data

    async def reconcile(self, pubkey_hex: str, local: bytes) -> AvatarReconciliation:
        pointer, remote = await self._read_remote(pubkey_hex)

        if remote is None:
            outcome = AvatarOutcome.UNREADABLE
            LOGGER.info("Unable to read avatar state, resetting avatar")
        elif same_bytes(local, remote):
            return AvatarReconciliation(AvatarOutcome.MATCH, AvatarAction.NOOP, pointer)
        else:
            outcome = AvatarOutcome.MISMATCH
            LOGGER.info("Detected avatar change, replacing")

        uploaded = await self._upload(local)
        return AvatarReconciliation(outcome, AvatarAction.UPLOAD, uploaded)
