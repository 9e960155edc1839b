from __future__ import annotations

import base64

from adapters.content_mapper import envelope_from_content, group_message_from_payload
from core.models import (
    DataEnvelope,
    NullEnvelope,
    PreKeyBundleEnvelope,
    ReceiptEnvelope,
    UnclassifiedEnvelope,
)
from fakes import OTHER


def test_data_message_with_attachment_pointer() -> None:
    content = {
        "source": OTHER,
        "dataMessage": {
            "body": "look",
            "attachments": [
                {
                    "id": 159993,
                    "contentType": "image/jpeg",
                    "key": [132, 169, 117],
                    "size": 6993,
                    "digest": base64.b64encode(b"\xc1\x0f").decode("ascii"),
                    "fileName": "images.jpeg",
                    "url": "https://file-static.lokinet.org/f/ciebnq",
                }
            ],
        },
    }

    envelope = envelope_from_content(content)

    assert isinstance(envelope, DataEnvelope)
    assert envelope.source == OTHER
    assert envelope.body == "look"
    assert envelope.flags == 0
    attachment = envelope.attachments[0]
    assert attachment.key == bytes([132, 169, 117])
    assert attachment.digest == b"\xc1\x0f"
    assert attachment.content_type == "image/jpeg"
    assert attachment.size == 6993


def test_flags_are_read_from_envelope_or_data_message() -> None:
    hoisted = envelope_from_content({"source": OTHER, "flags": 1, "dataMessage": {"body": "TERMINATE"}})
    nested = envelope_from_content({"source": OTHER, "dataMessage": {"body": "TERMINATE", "flags": 1}})

    assert hoisted.flags == 1
    assert nested.flags == 1


def test_session_signal_shapes() -> None:
    assert isinstance(envelope_from_content({"source": OTHER, "preKeyBundleMessage": {"a": 1}}), PreKeyBundleEnvelope)
    assert isinstance(envelope_from_content({"source": OTHER, "receiptMessage": {"type": 1}}), ReceiptEnvelope)
    assert isinstance(envelope_from_content({"source": OTHER, "nullMessage": {"padding": "x"}}), NullEnvelope)


def test_unknown_or_ambiguous_content_is_unclassified() -> None:
    unknown = envelope_from_content({"source": OTHER, "typingMessage": {}})
    ambiguous = envelope_from_content(
        {"source": OTHER, "receiptMessage": {"type": 1}, "nullMessage": {"padding": "x"}}
    )

    assert isinstance(unknown, UnclassifiedEnvelope)
    assert "no known" in unknown.reason
    assert isinstance(ambiguous, UnclassifiedEnvelope)
    assert "receiptMessage" in ambiguous.reason


def test_group_message_from_payload() -> None:
    payload = {
        "id": 31,
        "text": "gm",
        "user": {
            "id": 4,
            "username": OTHER,
            "name": "Bob",
            "avatar_image": {"url": "https://chat.example/loki/v1/avatar/4"},
        },
    }

    message = group_message_from_payload(payload)

    assert message.id == 31
    assert message.text == "gm"
    assert message.user.username == OTHER
    assert message.user.avatar_url == "https://chat.example/loki/v1/avatar/4"


def test_group_message_without_avatar() -> None:
    message = group_message_from_payload({"id": "2", "text": None, "user": {"id": 1, "username": OTHER}})

    assert message.id == 2
    assert message.text == ""
    assert message.user.avatar_url is None


def test_empty_null_message_still_counts_as_present() -> None:
    assert isinstance(envelope_from_content({"source": OTHER, "nullMessage": {}}), NullEnvelope)


def test_zero_envelope_flags_do_not_hide_data_message_flags() -> None:
    envelope = envelope_from_content(
        {"source": OTHER, "flags": 0, "dataMessage": {"body": "TERMINATE", "flags": 1}}
    )

    assert envelope.flags == 1
