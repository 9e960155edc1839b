"""Inbox envelope classification (core domain).

Classification is a pure, total function: every envelope maps to exactly one
ClassifiedEvent, and nothing here talks to the network or emits events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from core import events
from core.models import (
    SESSION_RESET,
    DataEnvelope,
    NormalizedMessage,
    NullEnvelope,
    PreKeyBundleEnvelope,
    RawInboxEnvelope,
    ReceiptEnvelope,
)


@dataclass(frozen=True)
class DataMessage:
    """A content-bearing message destined for the batched `messages` event."""

    message: NormalizedMessage


@dataclass(frozen=True)
class ImmediateEvent:
    """A session-management signal emitted on its own, outside the batch."""

    event: str
    envelope: RawInboxEnvelope


@dataclass(frozen=True)
class Suppressed:
    """A session-reset envelope; its content is never surfaced."""

    envelope: RawInboxEnvelope


@dataclass(frozen=True)
class Unclassified:
    envelope: RawInboxEnvelope
    reason: str


ClassifiedEvent = Union[DataMessage, ImmediateEvent, Suppressed, Unclassified]


def _has_content(envelope: DataEnvelope) -> bool:
    return bool(envelope.body) or bool(envelope.attachments)


def classify_envelope(envelope: RawInboxEnvelope) -> ClassifiedEvent:
    """Return the classification for one inbox envelope.

    Rules, first match wins:
    - Data envelope with body or attachments and no session-reset flag.
    - Anything carrying the session-reset flag is suppressed.
    - Pre-key bundle, receipt and null envelopes become immediate events.
    - Everything else is unclassified.
    """

    flags = getattr(envelope, "flags", 0)

    if isinstance(envelope, DataEnvelope) and _has_content(envelope) and flags != SESSION_RESET:
        return DataMessage(
            NormalizedMessage(
                source=envelope.source,
                body=envelope.body,
                attachments=envelope.attachments,
            )
        )
    if flags == SESSION_RESET:
        return Suppressed(envelope)
    if isinstance(envelope, PreKeyBundleEnvelope):
        return ImmediateEvent(events.PRE_KEY_BUNDLE, envelope)
    if isinstance(envelope, ReceiptEnvelope):
        return ImmediateEvent(events.RECEIPT_MESSAGE, envelope)
    if isinstance(envelope, NullEnvelope):
        return ImmediateEvent(events.NULL_MESSAGE, envelope)
    if isinstance(envelope, DataEnvelope):
        return Unclassified(envelope, "data message without body or attachments")
    return Unclassified(envelope, getattr(envelope, "reason", "") or "unknown envelope shape")
