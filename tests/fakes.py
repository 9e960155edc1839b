from __future__ import annotations

import asyncio
from typing import Optional

from core import events
from core.config import EngineConfig
from core.models import (
    Attachment,
    AvatarPointer,
    GroupRegistration,
    GroupUser,
    InboxResult,
    Keypair,
    RawGroupMessage,
    SendOptions,
)
from core.session import SessionClient

PUBKEY = "05" + "ab" * 32
OTHER = "05" + "cd" * 32


def make_keypair(pubkey_hex: str = PUBKEY) -> Keypair:
    return Keypair(pub_key=bytes.fromhex(pubkey_hex), priv_key=b"\x01" * 32)


def group_message(message_id: int, username: str = OTHER, text: str = "hi") -> RawGroupMessage:
    return RawGroupMessage(
        id=message_id,
        text=text,
        user=GroupUser(id=7, username=username, name="Alice", avatar_url="https://a/1"),
    )


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


async def fast_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


async def blocked_sleep(seconds: float) -> None:
    # Loop and watchdog tasks park here; asyncio.run cancels them on exit.
    await asyncio.Event().wait()


class FakeCrypto:
    def __init__(self, pubkey_hex: str = PUBKEY) -> None:
        self.keypair = make_keypair(pubkey_hex)
        self.seeds: list[str] = []

    def derive_from_seed(self, words: str) -> Keypair:
        self.seeds.append(words)
        return self.keypair

    def generate(self) -> tuple[Keypair, str]:
        return self.keypair, "alpha beta gamma"


class FakeInbox:
    """Returns queued results in order; an Exception item is raised."""

    def __init__(self, results: Optional[list] = None) -> None:
        self.results = list(results or [])
        self.cursors: list[str] = []

    async def fetch(self, identity, cursor: str) -> InboxResult:
        self.cursors.append(cursor)
        item = self.results.pop(0) if self.results else InboxResult(cursor=cursor)
        if isinstance(item, Exception):
            raise item
        return item


class FakeGroups:
    """Per-group queues of fetch results; an Exception item is raised."""

    def __init__(self) -> None:
        self.queues: dict[str, list] = {}
        self.joins: list[tuple[str, int]] = []
        self.sent: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, list[int]]] = []
        self.last_ids: dict[str, int] = {}
        self.fail_send = False

    async def join(self, url: str, channel_id: int, keypair, pubkey_hex: str) -> tuple[str, int]:
        self.joins.append((url, channel_id))
        return f"token-{url}-{len(self.joins)}", self.last_ids.get(url, 0)

    async def fetch(self, registration: GroupRegistration) -> list[RawGroupMessage]:
        queue = self.queues.get(registration.id, [])
        item = queue.pop(0) if queue else []
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, registration: GroupRegistration, text: str) -> int:
        if self.fail_send:
            raise ConnectionError("group down")
        self.sent.append((registration.id, text))
        return 42

    async def delete(self, registration: GroupRegistration, message_ids: list[int]) -> bool:
        self.deleted.append((registration.id, message_ids))
        return True


class FakeAvatars:
    def __init__(self, remote: Optional[bytes] = None) -> None:
        self.meta: object = AvatarPointer(url="https://files/old", key=b"k1")
        self.remote: object = remote if remote is not None else ConnectionError("no avatar")
        self.uploads: list[tuple[str, str, str, bytes]] = []
        self.token_calls = 0
        self.upload_result = AvatarPointer(url="https://files/new", key=b"k2")

    async def fetch_meta(self, pubkey_hex: str, server_url: str) -> Optional[AvatarPointer]:
        if isinstance(self.meta, Exception):
            raise self.meta
        return self.meta

    async def download(self, url: str, key: bytes) -> bytes:
        if isinstance(self.remote, Exception):
            raise self.remote
        return self.remote

    async def upload(self, server_url: str, token: str, pubkey_hex: str, data: bytes) -> AvatarPointer:
        self.uploads.append((server_url, token, pubkey_hex, data))
        return self.upload_result

    async def get_token(self, server_url: str, keypair, pubkey_hex: str) -> str:
        self.token_calls += 1
        return "fs-token"


class FakeSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, Optional[str], SendOptions]] = []

    async def send(self, destination: str, keypair, body: Optional[str], options: SendOptions) -> bool:
        self.sent.append((destination, body, options))
        return True


class FakeAttachments:
    def __init__(self) -> None:
        self.uploads: list[bytes] = []

    async def download(self, url: str, key: bytes) -> bytes:
        return url.encode("utf-8")

    async def upload(self, server_url: str, data: bytes) -> Attachment:
        self.uploads.append(data)
        return Attachment(url="https://files/a1", key=b"ak", size=len(data))


class Recorder:
    """Collects every emitted event as (name, payload)."""

    def __init__(self, client: SessionClient) -> None:
        self.events: list[tuple[str, object]] = []
        for name in sorted(events.EVENT_NAMES):
            client.on(name, lambda payload, name=name: self.events.append((name, payload)))

    def named(self, name: str) -> list:
        return [payload for event, payload in self.events if event == name]


def make_client(
    inbox: Optional[FakeInbox] = None,
    groups: Optional[FakeGroups] = None,
    avatars: Optional[FakeAvatars] = None,
    sleep=blocked_sleep,
    clock: Optional[FakeClock] = None,
    poll_rate_ms: int = 1000,
    **kwargs,
) -> SessionClient:
    return SessionClient(
        inbox=inbox or FakeInbox(),
        groups=groups or FakeGroups(),
        avatars=avatars or FakeAvatars(),
        sender=kwargs.pop("sender", None) or FakeSender(),
        attachments=kwargs.pop("attachments", None) or FakeAttachments(),
        crypto=kwargs.pop("crypto", None) or FakeCrypto(),
        config=EngineConfig(poll_rate_ms=poll_rate_ms),
        now_ms=clock or FakeClock(),
        sleep=sleep,
        **kwargs,
    )
