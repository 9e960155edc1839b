"""Session client factory for session-sync.

The engine never picks its own network or crypto backends. A transport
factory named in config.json ("module:callable") returns a TransportBundle,
and build_client wires it together with settings and environment values.
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from dotenv import load_dotenv

import settings
from core.config import EngineConfig
from core.ports import (
    AttachmentStore,
    AvatarStore,
    CryptoIdentity,
    GroupTransport,
    InboxTransport,
    SendTransport,
)
from core.session import SessionClient


@dataclass(frozen=True)
class TransportBundle:
    """Every external collaborator a SessionClient needs."""

    inbox: InboxTransport
    groups: GroupTransport
    avatars: AvatarStore
    sender: SendTransport
    attachments: AttachmentStore
    crypto: CryptoIdentity


def load_transport_factory(path: Optional[str]) -> Callable[[], TransportBundle]:
    """Resolve a "module:callable" reference to the transport factory."""

    # Fail fast: without transports there is nothing to poll.
    if not path:
        raise RuntimeError("transport.factory is not set in config.json")
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise RuntimeError(f"transport.factory must look like 'module:callable', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise RuntimeError(f"{module_name} has no attribute {attr!r}") from exc


def engine_config_from_settings() -> EngineConfig:
    return EngineConfig(
        poll_rate_ms=settings.POLL_RATE_MS,
        stall_multiplier=settings.WATCHDOG_STALL_MULTIPLIER,
        home_server=settings.HOME_SERVER,
    )


def build_client(
    transports: TransportBundle,
    last_hash: str = "",
    file_server_token: str = "",
) -> SessionClient:
    """Create a SessionClient from settings and environment variables.

    A token from FILE_SERVER_TOKEN wins over a persisted one so it can be
    rotated without touching the database.
    """

    load_dotenv()
    token = os.getenv(settings.FILE_SERVER_TOKEN_ENV) or file_server_token

    logging.getLogger(__name__).info("Initializing session client")

    return SessionClient(
        inbox=transports.inbox,
        groups=transports.groups,
        avatars=transports.avatars,
        sender=transports.sender,
        attachments=transports.attachments,
        crypto=transports.crypto,
        config=engine_config_from_settings(),
        last_hash=last_hash,
        file_server_token=token,
        display_name=settings.DISPLAY_NAME,
    )
