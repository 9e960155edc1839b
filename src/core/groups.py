"""Open group registry and per-cycle aggregation (core domain)."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.errors import GroupNotFoundError
from core.group_keys import DEFAULT_CHANNEL_ID, build_group_id, legacy_group_id_candidates
from core.models import (
    GroupHandle,
    GroupRegistration,
    Identity,
    NormalizedMessage,
    Profile,
    RawGroupMessage,
)
from core.ports import GroupTransport

LOGGER = logging.getLogger(__name__)


def normalize_group_message(group_id: str, message: RawGroupMessage) -> NormalizedMessage:
    """Map a raw open group message to the unified message shape."""

    user = message.user
    return NormalizedMessage(
        source=user.username,
        body=message.text,
        origin_group_id=group_id,
        profile=Profile(id=user.id, display_name=user.name, avatar=user.avatar_url),
        message_id=message.id,
    )


class GroupRegistry:
    """Owns every joined open group and fans polling out across them."""

    def __init__(self, transport: GroupTransport, default_channel_id: int = DEFAULT_CHANNEL_ID) -> None:
        self._transport = transport
        self._default_channel_id = default_channel_id
        self._registrations: dict[str, GroupRegistration] = {}

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, group_id: str) -> bool:
        return group_id in self._registrations

    def registrations(self) -> list[GroupRegistration]:
        return list(self._registrations.values())

    async def join(self, identity: Identity, url: str, channel_id: Optional[int] = None) -> GroupHandle:
        """Acquire a token, subscribe and register the channel.

        Re-joining an existing id overwrites the previous registration.
        """

        if channel_id is None:
            channel_id = self._default_channel_id
        group_id = build_group_id(url, channel_id)
        LOGGER.info("Joining open group %s", group_id)
        if group_id in self._registrations:
            LOGGER.warning("Open group %s already joined, replacing registration", group_id)

        token, last_message_id = await self._transport.join(
            url, channel_id, identity.keypair, identity.pubkey_hex
        )
        self._registrations[group_id] = GroupRegistration(
            id=group_id,
            url=url,
            channel_id=channel_id,
            token=token,
            last_seen_message_id=last_message_id or 0,
        )
        return GroupHandle(
            id=group_id,
            token=token,
            channel_id=channel_id,
            last_message_id=last_message_id or 0,
        )

    def resolve(self, group_id: str) -> GroupRegistration:
        """Find a registration by canonical or legacy id."""

        for candidate in legacy_group_id_candidates(group_id, self._default_channel_id):
            registration = self._registrations.get(candidate)
            if registration is not None:
                return registration
        raise GroupNotFoundError(group_id)

    async def _fetch_one(self, registration: GroupRegistration) -> list[RawGroupMessage]:
        try:
            messages = await self._transport.fetch(registration)
            # Message-level idempotency: open group ids are monotonically increasing
            # per channel, so anything at or below the last seen id was delivered.
            fresh = [m for m in messages or [] if m.id > registration.last_seen_message_id]
        except Exception as exc:
            LOGGER.warning("Open group %s poll failed: %s", registration.id, exc)
            return []

        if fresh:
            registration.last_seen_message_id = max(m.id for m in fresh)
        return fresh

    async def fetch_all(self) -> list[tuple[str, list[RawGroupMessage]]]:
        """Poll every registration concurrently.

        Each failure is caught per group and contributes no messages. Results
        keep registry order.
        """

        registrations = self.registrations()
        if not registrations:
            return []
        results = await asyncio.gather(*(self._fetch_one(reg) for reg in registrations))
        return [(reg.id, messages) for reg, messages in zip(registrations, results)]

    async def send(self, group_id: str, text: str) -> int | bool:
        """Post to a group; returns the new message id, or False on failure."""

        try:
            registration = self.resolve(group_id)
        except GroupNotFoundError as exc:
            LOGGER.error("send_group_message - %s", exc)
            return False
        try:
            return await self._transport.send(registration, text)
        except Exception as exc:
            LOGGER.warning("Open group %s send failed: %s", registration.id, exc)
            return False

    async def delete(self, group_id: str, message_ids: list[int]) -> bool:
        try:
            registration = self.resolve(group_id)
        except GroupNotFoundError as exc:
            LOGGER.error("delete_group_message - %s", exc)
            return False
        try:
            return bool(await self._transport.delete(registration, list(message_ids)))
        except Exception as exc:
            LOGGER.warning("Open group %s delete failed: %s", registration.id, exc)
            return False
