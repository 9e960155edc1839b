"""Session client facade.

SessionClient owns one identity and all per-instance state (cursor, group
registry, avatar pointer, file-server token). Transports are injected, so
the class never touches the network, crypto or disk beyond reading the
optional avatar file.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from core import events
from core.avatar import AvatarReconciler, AvatarReconciliation
from core.config import EngineConfig, InviteTemplates
from core.errors import IdentityNotReadyError
from core.events import EventEmitter
from core.groups import GroupRegistry
from core.models import (
    SESSION_RESET,
    Attachment,
    AvatarPointer,
    GroupHandle,
    GroupInvitation,
    Identity,
    Keypair,
    NormalizedMessage,
    SendOptions,
)
from core.poller import PollOrchestrator, PollState
from core.ports import (
    AttachmentStore,
    AvatarStore,
    CryptoIdentity,
    GroupTransport,
    InboxTransport,
    SendTransport,
)

LOGGER = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class SessionClient:
    """Poll one identity's inbox and its open groups, exposing named events."""

    def __init__(
        self,
        inbox: InboxTransport,
        groups: GroupTransport,
        avatars: AvatarStore,
        sender: SendTransport,
        attachments: AttachmentStore,
        crypto: CryptoIdentity,
        config: Optional[EngineConfig] = None,
        last_hash: str = "",
        file_server_token: str = "",
        display_name: Optional[str] = None,
        invite_templates: Optional[InviteTemplates] = None,
        now_ms: Callable[[], int] = _wall_clock_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_stall: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._avatars = avatars
        self._sender = sender
        self._attachments = attachments
        self._crypto = crypto
        self._invites = invite_templates or InviteTemplates()
        self._display_name = display_name
        self._file_server_token = file_server_token
        self._identity: Optional[Identity] = None
        self._avatar: Optional[AvatarPointer] = None
        self.identity_output = ""

        self._emitter = EventEmitter()
        self._registry = GroupRegistry(groups, self.config.default_channel_id)
        self._poller = PollOrchestrator(
            inbox,
            self._registry,
            self._emitter,
            self.config,
            now_ms=now_ms,
            cursor=last_hash,
            sleep=sleep,
            on_stall=on_stall,
        )

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def pubkey_hex(self) -> Optional[str]:
        return self._identity.pubkey_hex if self._identity else None

    @property
    def last_hash(self) -> str:
        return self._poller.cursor

    @property
    def state(self) -> PollState:
        return self._poller.state

    @property
    def avatar(self) -> Optional[AvatarPointer]:
        return self._avatar

    @property
    def file_server_token(self) -> str:
        return self._file_server_token

    @property
    def display_name(self) -> Optional[str]:
        return self._display_name

    @display_name.setter
    def display_name(self, value: Optional[str]) -> None:
        self._display_name = value
        if self._identity is not None:
            self._identity.display_name = value

    @property
    def groups(self) -> GroupRegistry:
        return self._registry

    def on(self, event: str, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Register a handler for one of the names in core.events."""

        return self._emitter.on(event, handler)

    def _require_identity(self) -> Identity:
        if self._identity is None:
            raise IdentityNotReadyError("Identity not set up yet")
        return self._identity

    async def load_identity(
        self,
        seed: Optional[str] = None,
        keypair: Optional[Keypair] = None,
        display_name: Optional[str] = None,
        avatar_file: Optional[str] = None,
    ) -> Identity:
        """Set up the identity from seed words, a keypair, or a fresh keypair.

        When `avatar_file` exists, its bytes are reconciled against the avatar
        the file server holds for this identity and uploaded if they differ.
        """

        if seed:
            keypair = self._crypto.derive_from_seed(seed)
            self.identity_output = f"Loaded SessionID {keypair.pub_key.hex()} from seed words"
        if keypair is None:
            keypair, words = self._crypto.generate()
            self.identity_output = f"SessionID {keypair.pub_key.hex()} seed words: {words}"
        if display_name:
            self._display_name = display_name

        self._identity = Identity(
            pubkey_hex=keypair.pub_key.hex(),
            keypair=keypair,
            display_name=self._display_name,
        )

        if avatar_file:
            path = Path(avatar_file)
            if path.exists():
                await self.reconcile_avatar(path.read_bytes())
            else:
                LOGGER.error("Avatar file %s is not found", avatar_file)
        return self._identity

    async def reconcile_avatar(self, local: bytes) -> AvatarReconciliation:
        identity = self._require_identity()
        reconciler = AvatarReconciler(self._avatars, self.change_avatar, self.config.home_server)
        result = await reconciler.reconcile(identity.pubkey_hex, local)
        self._avatar = result.pointer
        LOGGER.info("Avatar reconciliation: %s -> %s", result.outcome.value, result.action.value)
        return result

    async def open(self) -> None:
        """Start polling; raises IdentityNotReadyError without a valid identity."""

        await self._poller.open(self._identity)

    async def poll(self) -> bool:
        """Run a single poll cycle now; False once the client has closed."""

        return await self._poller.run_cycle()

    def close(self) -> None:
        self._poller.close()

    async def wait_closed(self) -> None:
        await self._poller.wait_closed()

    async def send(
        self,
        destination: str,
        body: Optional[str] = None,
        options: Optional[SendOptions] = None,
    ) -> bool:
        """Send a direct message, attaching our profile name and avatar."""

        identity = self._require_identity()
        options = options or SendOptions()
        if self._display_name:
            options = replace(options, display_name=self._display_name)
        if self._avatar is not None:
            options = replace(options, avatar=self._avatar)
        return await self._sender.send(destination, identity.keypair, body, options)

    async def send_session_reset(self, destination: str) -> bool:
        return await self.send(destination, "TERMINATE", SendOptions(flags=SESSION_RESET))

    async def send_session_established(self, destination: str) -> bool:
        return await self.send(destination, "", SendOptions(null_message=True))

    async def send_open_group_invite(
        self, destination: str, server_name: str, server_address: str, channel_id: int
    ) -> bool:
        """Send a structured invite (understood by desktop clients)."""

        invitation = GroupInvitation(
            server_address=server_address,
            channel_id=int(channel_id),
            server_name=server_name,
        )
        return await self.send(destination, None, SendOptions(group_invitation=invitation))

    async def send_safe_open_group_invite(
        self, destination: str, server_name: str, server_address: str, channel_id: int
    ) -> bool:
        """Send a plain-text invite for mobile clients, then the structured one."""

        identity = self._require_identity()
        channel_id = int(channel_id)
        text = (
            self._invites.text.replace("{pubKey}", identity.pubkey_hex)
            .replace("{name}", server_name)
            .replace("{url}", server_address)
        )
        if channel_id != self.config.default_channel_id:
            text += self._invites.non_default_channel
        await self.send(destination, text)
        return await self.send_open_group_invite(destination, server_name, server_address, channel_id)

    async def join_group(self, url: str, channel_id: Optional[int] = None) -> GroupHandle:
        identity = self._require_identity()
        return await self._registry.join(identity, url, channel_id)

    async def send_group_message(self, group_id: str, body: str) -> int | bool:
        return await self._registry.send(group_id, body)

    async def delete_group_message(self, group_id: str, message_ids: list[int]) -> bool:
        return await self._registry.delete(group_id, message_ids)

    async def ensure_file_server_token(self) -> str:
        """Acquire the home-server token once, announcing it to listeners."""

        identity = self._require_identity()
        if not self._file_server_token:
            self._file_server_token = await self._avatars.get_token(
                self.config.home_server, identity.keypair, identity.pubkey_hex
            )
            await self._emitter.emit(events.FILE_SERVER_TOKEN, self._file_server_token)
        return self._file_server_token

    async def change_avatar(self, data: bytes) -> AvatarPointer:
        identity = self._require_identity()
        token = await self.ensure_file_server_token()
        pointer = await self._avatars.upload(self.config.home_server, token, identity.pubkey_hex, data)
        self._avatar = pointer
        return pointer

    async def get_avatar(self, server_url: str, pubkey_hex: str) -> Optional[bytes]:
        """Download and decrypt anyone's avatar; None when they have not set one."""

        pointer = await self._avatars.fetch_meta(pubkey_hex, server_url)
        if pointer is None:
            return None
        return await self._avatars.download(pointer.url, pointer.key)

    async def decode_avatar(self, url: str, profile_key: bytes) -> bytes:
        return await self._avatars.download(url, bytes(profile_key))

    async def get_attachments(self, message: NormalizedMessage) -> list[bytes]:
        return list(
            await asyncio.gather(
                *(self._attachments.download(a.url, a.key) for a in message.attachments)
            )
        )

    async def make_image_attachment(self, data: bytes) -> Attachment:
        return await self._attachments.upload(self.config.home_server, data)
