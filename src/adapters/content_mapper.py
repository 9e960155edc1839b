"""Wire-payload-to-core mapping adapter.

Transports hand back loosely-typed dicts (decrypted Content protobufs as
dicts, open group JSON). This keeps those shapes out of the core engine.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from core.errors import ClassificationAmbiguous
from core.models import (
    Attachment,
    DataEnvelope,
    GroupUser,
    NullEnvelope,
    PreKeyBundleEnvelope,
    RawGroupMessage,
    RawInboxEnvelope,
    ReceiptEnvelope,
    UnclassifiedEnvelope,
)

LOGGER = logging.getLogger(__name__)

_SHAPES = ("dataMessage", "preKeyBundleMessage", "receiptMessage", "nullMessage")


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return base64.b64decode(value)
    # Uint8Array-style lists of ints
    return bytes(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def attachment_from_pointer(pointer: dict) -> Attachment:
    """Build an Attachment from an AttachmentPointer dict."""

    digest = pointer.get("digest")
    return Attachment(
        url=pointer["url"],
        key=_as_bytes(pointer.get("key")),
        id=_optional_int(pointer.get("id")),
        content_type=pointer.get("contentType"),
        size=_optional_int(pointer.get("size")),
        digest=_as_bytes(digest) if digest is not None else None,
        file_name=pointer.get("fileName"),
    )


def _shape_of(content: dict) -> str:
    present = [shape for shape in _SHAPES if content.get(shape) is not None]
    if not present:
        raise ClassificationAmbiguous("no known message shape present")
    if len(present) > 1:
        raise ClassificationAmbiguous(f"several message shapes present: {', '.join(present)}")
    return present[0]


def envelope_from_content(content: dict) -> RawInboxEnvelope:
    """Map one decrypted inbox content dict to exactly one envelope variant."""

    source = content.get("source")
    try:
        shape = _shape_of(content)
    except ClassificationAmbiguous as exc:
        LOGGER.debug("Unclassified content from %s: %s", source, exc)
        return UnclassifiedEnvelope(source=source, content=content, reason=str(exc))

    if shape == "dataMessage":
        data = content["dataMessage"]
        # flags live on the DataMessage; older payloads hoist them to the envelope
        flags = content.get("flags") or data.get("flags") or 0
        return DataEnvelope(
            source=source or "",
            flags=int(flags),
            body=data.get("body") or None,
            attachments=tuple(attachment_from_pointer(p) for p in data.get("attachments") or []),
        )
    if shape == "preKeyBundleMessage":
        return PreKeyBundleEnvelope(source=source or "", content=content)
    if shape == "receiptMessage":
        return ReceiptEnvelope(source=source or "", content=content)
    return NullEnvelope(source=source or "", content=content)


def group_message_from_payload(payload: dict) -> RawGroupMessage:
    """Map an open group API message to a RawGroupMessage."""

    user = payload.get("user") or {}
    avatar_image = user.get("avatar_image") or {}
    return RawGroupMessage(
        id=int(payload["id"]),
        text=payload.get("text") or "",
        user=GroupUser(
            id=int(user.get("id", 0)),
            username=user.get("username", ""),
            name=user.get("name"),
            avatar_url=avatar_image.get("url"),
        ),
    )
