from __future__ import annotations

import asyncio

import pytest

from core.errors import GroupNotFoundError
from core.groups import GroupRegistry
from core.models import Identity
from fakes import PUBKEY, FakeGroups, group_message, make_keypair


def _identity() -> Identity:
    return Identity(pubkey_hex=PUBKEY, keypair=make_keypair())


def test_join_builds_id_from_url_and_channel() -> None:
    transport = FakeGroups()
    transport.last_ids["host.example"] = 99
    registry = GroupRegistry(transport)

    handle = asyncio.run(registry.join(_identity(), "host.example"))

    assert handle.id == "host.example_1"
    assert handle.channel_id == 1
    assert handle.last_message_id == 99
    assert handle.token == "token-host.example-1"
    assert registry.resolve("host.example_1").last_seen_message_id == 99


def test_rejoin_overwrites_registration() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    async def scenario() -> None:
        await registry.join(_identity(), "host.example", 2)
        await registry.join(_identity(), "host.example", 2)

    asyncio.run(scenario())

    assert len(registry) == 1
    assert registry.resolve("host.example_2").token == "token-host.example-2"


def test_legacy_ids_resolve_to_the_same_registration() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    async def scenario() -> None:
        await registry.join(_identity(), "host.example")
        await registry.send("host.example_1", "hi")
        await registry.send("host.example", "hi")

    asyncio.run(scenario())

    assert transport.sent == [("host.example_1", "hi"), ("host.example_1", "hi")]
    assert registry.resolve("host.example") is registry.resolve("host.example_1")


def test_unknown_group_returns_false_without_raising() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    assert asyncio.run(registry.send("nowhere.example", "hi")) is False
    assert asyncio.run(registry.delete("nowhere.example_1", [1, 2])) is False
    assert transport.sent == []
    with pytest.raises(GroupNotFoundError):
        registry.resolve("nowhere.example")


def test_send_failure_returns_false() -> None:
    transport = FakeGroups()
    transport.fail_send = True
    registry = GroupRegistry(transport)

    async def scenario():
        await registry.join(_identity(), "host.example")
        return await registry.send("host.example_1", "hi")

    assert asyncio.run(scenario()) is False


def test_delete_passes_ids_to_transport() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    async def scenario():
        await registry.join(_identity(), "host.example")
        return await registry.delete("host.example", [3, 4])

    assert asyncio.run(scenario()) is True
    assert transport.deleted == [("host.example_1", [3, 4])]


def test_failing_group_contributes_nothing_and_others_still_deliver() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    async def scenario():
        await registry.join(_identity(), "bad.example")
        await registry.join(_identity(), "good.example")
        transport.queues["bad.example_1"] = [ConnectionError("timeout")]
        transport.queues["good.example_1"] = [[group_message(1), group_message(2)]]
        return await registry.fetch_all()

    results = asyncio.run(scenario())

    assert [(group_id, [m.id for m in messages]) for group_id, messages in results] == [
        ("bad.example_1", []),
        ("good.example_1", [1, 2]),
    ]


def test_fetch_skips_already_seen_ids_and_advances() -> None:
    transport = FakeGroups()
    transport.last_ids["host.example"] = 10
    registry = GroupRegistry(transport)

    async def scenario():
        await registry.join(_identity(), "host.example")
        transport.queues["host.example_1"] = [
            [group_message(9), group_message(10), group_message(11), group_message(12)],
            [group_message(12), group_message(13)],
        ]
        first = await registry.fetch_all()
        second = await registry.fetch_all()
        return first, second

    first, second = asyncio.run(scenario())

    assert [m.id for m in first[0][1]] == [11, 12]
    assert [m.id for m in second[0][1]] == [13]
    assert registry.resolve("host.example_1").last_seen_message_id == 13


def test_fetch_all_without_groups_is_empty() -> None:
    registry = GroupRegistry(FakeGroups())

    assert asyncio.run(registry.fetch_all()) == []


def test_malformed_group_ids_are_isolated_to_that_group() -> None:
    transport = FakeGroups()
    registry = GroupRegistry(transport)

    async def scenario():
        await registry.join(_identity(), "odd.example")
        await registry.join(_identity(), "good.example")
        transport.queues["odd.example_1"] = [[group_message("not-a-number")]]
        transport.queues["good.example_1"] = [[group_message(4)]]
        return await registry.fetch_all()

    results = asyncio.run(scenario())

    assert [(group_id, [m.id for m in messages]) for group_id, messages in results] == [
        ("odd.example_1", []),
        ("good.example_1", [4]),
    ]
    assert registry.resolve("odd.example_1").last_seen_message_id == 0
