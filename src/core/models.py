"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any transport-specific payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

# Envelope flag marking an END_SESSION / session reset control message.
SESSION_RESET = 1


@dataclass(frozen=True)
class Keypair:
    """Opaque keypair produced by the crypto collaborator."""

    pub_key: bytes
    priv_key: bytes = field(repr=False)


@dataclass
class Identity:
    """The single identity an engine instance polls for."""

    pubkey_hex: str
    keypair: Keypair
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Attachment:
    """Attachment pointer carried by data messages."""

    url: str
    key: bytes = field(repr=False)
    id: Optional[int] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    digest: Optional[bytes] = field(default=None, repr=False)
    file_name: Optional[str] = None


@dataclass(frozen=True)
class DataEnvelope:
    source: str
    flags: int = 0
    body: Optional[str] = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True)
class PreKeyBundleEnvelope:
    source: str
    content: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ReceiptEnvelope:
    source: str
    content: dict = field(default_factory=dict)


@dataclass(frozen=True)
class NullEnvelope:
    source: str
    content: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UnclassifiedEnvelope:
    """Inbox content that matched no known shape; dropped after logging."""

    source: Optional[str]
    content: dict = field(default_factory=dict)
    reason: str = ""


RawInboxEnvelope = Union[
    DataEnvelope,
    PreKeyBundleEnvelope,
    ReceiptEnvelope,
    NullEnvelope,
    UnclassifiedEnvelope,
]


@dataclass(frozen=True)
class InboxResult:
    """One inbox fetch: the server cursor plus decrypted envelopes."""

    cursor: str
    envelopes: list[RawInboxEnvelope] = field(default_factory=list)


@dataclass(frozen=True)
class GroupUser:
    id: int
    username: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class RawGroupMessage:
    id: int
    text: str
    user: GroupUser


@dataclass
class GroupRegistration:
    """Per-group state owned by the registry."""

    id: str
    url: str
    channel_id: int
    token: str
    last_seen_message_id: int = 0


@dataclass(frozen=True)
class GroupHandle:
    """Returned from join_group; `id` is what the other group calls take."""

    id: str
    token: str
    channel_id: int
    last_message_id: int


@dataclass(frozen=True)
class Profile:
    id: int
    display_name: Optional[str]
    avatar: Optional[str]


@dataclass(frozen=True)
class NormalizedMessage:
    """Unified output shape for direct and group messages."""

    source: str
    body: Optional[str] = None
    attachments: tuple[Attachment, ...] = ()
    origin_group_id: Optional[str] = None
    profile: Optional[Profile] = None
    message_id: Optional[int] = None


@dataclass(frozen=True)
class AvatarPointer:
    """Where an encrypted avatar lives and the profile key to decrypt it."""

    url: str
    key: bytes = field(repr=False)


@dataclass(frozen=True)
class GroupInvitation:
    server_address: str
    channel_id: int
    server_name: str


@dataclass(frozen=True)
class SendOptions:
    """Options handed to the send transport."""

    attachments: tuple[Attachment, ...] = ()
    display_name: Optional[str] = None
    avatar: Optional[AvatarPointer] = None
    group_invitation: Optional[GroupInvitation] = None
    flags: int = 0
    null_message: bool = False


@dataclass
class WatchdogState:
    """Liveness bookkeeping shared by the poller (writer) and watchdog."""

    poll_rate_ms: int
    last_poll_ms: int = 0
