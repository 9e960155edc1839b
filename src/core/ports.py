"""Ports (interfaces) used by the sync engine.

Ports define the minimal contracts for the network, file-server and crypto
collaborators so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import (
    Attachment,
    AvatarPointer,
    GroupRegistration,
    Identity,
    InboxResult,
    Keypair,
    RawGroupMessage,
    SendOptions,
)


class InboxTransport(Protocol):
    """Swarm inbox polling required by the poll cycle."""

    async def fetch(self, identity: Identity, cursor: str) -> InboxResult:
        ...


class GroupTransport(Protocol):
    """Open group operations required by the group registry."""

    async def join(
        self, url: str, channel_id: int, keypair: Keypair, pubkey_hex: str
    ) -> tuple[str, int]:
        """Return (token, last_message_id) for a freshly subscribed channel."""
        ...

    async def fetch(self, registration: GroupRegistration) -> list[RawGroupMessage]:
        ...

    async def send(self, registration: GroupRegistration, text: str) -> int:
        ...

    async def delete(self, registration: GroupRegistration, message_ids: list[int]) -> bool:
        ...


class AvatarStore(Protocol):
    """File-server avatar operations."""

    async def fetch_meta(self, pubkey_hex: str, server_url: str) -> Optional[AvatarPointer]:
        ...

    async def download(self, url: str, key: bytes) -> bytes:
        ...

    async def upload(
        self, server_url: str, token: str, pubkey_hex: str, data: bytes
    ) -> AvatarPointer:
        ...

    async def get_token(self, server_url: str, keypair: Keypair, pubkey_hex: str) -> str:
        ...


class AttachmentStore(Protocol):
    """File-server attachment operations."""

    async def download(self, url: str, key: bytes) -> bytes:
        ...

    async def upload(self, server_url: str, data: bytes) -> Attachment:
        ...


class SendTransport(Protocol):
    """Encrypt and deliver a direct message to a swarm."""

    async def send(
        self,
        destination: str,
        keypair: Keypair,
        body: Optional[str],
        options: SendOptions,
    ) -> bool:
        ...


class CryptoIdentity(Protocol):
    """Key derivation and generation."""

    def derive_from_seed(self, words: str) -> Keypair:
        ...

    def generate(self) -> tuple[Keypair, str]:
        ...
