import re

import pytest

from fakes import ALICE, C1, C2, C3, G1, G2, G3
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.result_datatypes import AlreadyLinkedError, BannedGuildError, NotFoundError
from relaycord.global_chat.channel_registry import (
    ChannelRegistry,
    generate_channel_id,
    generate_join_key,
)
from relaycord.global_chat.link_registry import LinkRegistry


@pytest.fixture()
def channels(store) -> ChannelRegistry:
    return ChannelRegistry(store)


@pytest.fixture()
def links(channels) -> LinkRegistry:
    return LinkRegistry(channels)


async def _add(channels, channel_id="gc-aaaa0001", **extra) -> GlobalChatChannel:
    return await channels.add(GlobalChatChannel(channel_id=channel_id, name="Lobby", owner_id=ALICE, **extra))


def test_generated_ids_and_keys():
    assert re.fullmatch(r"gc-[a-z0-9]{8}", generate_channel_id())
    assert re.fullmatch(r"[A-Za-z0-9]{6}", generate_join_key())


@pytest.mark.asyncio
async def test_link_and_lookup(channels, links, store):
    await _add(channels)
    await links.link("gc-aaaa0001", G1, C1)

    assert links.is_linked("gc-aaaa0001", G1)
    assert links.destination_for("gc-aaaa0001", G1) == C1
    assert links.lookup(C1) == ("gc-aaaa0001", G1)
    assert store.channels["gc-aaaa0001"].linked_channels == {G1: C1}


@pytest.mark.asyncio
async def test_one_link_per_guild(channels, links):
    await _add(channels)
    await links.link("gc-aaaa0001", G1, C1)
    with pytest.raises(AlreadyLinkedError):
        await links.link("gc-aaaa0001", G1, C2)


@pytest.mark.asyncio
async def test_text_channel_belongs_to_one_global_channel(channels, links):
    await _add(channels, "gc-aaaa0001")
    await _add(channels, "gc-bbbb0002")
    await links.link("gc-aaaa0001", G1, C1)

    with pytest.raises(AlreadyLinkedError):
        await links.link("gc-bbbb0002", G1, C1)
    assert not links.is_linked("gc-bbbb0002", G1)


@pytest.mark.asyncio
async def test_guild_may_join_several_global_channels(channels, links):
    await _add(channels, "gc-aaaa0001")
    await _add(channels, "gc-bbbb0002")
    await links.link("gc-aaaa0001", G1, C1)
    await links.link("gc-bbbb0002", G1, C2)

    assert links.lookup(C2) == ("gc-bbbb0002", G1)


@pytest.mark.asyncio
async def test_banned_guild_cannot_link(channels, links):
    await _add(channels, banned_guilds={G2})
    with pytest.raises(BannedGuildError):
        await links.link("gc-aaaa0001", G2, C2)


@pytest.mark.asyncio
async def test_link_unknown_channel(links):
    with pytest.raises(NotFoundError):
        await links.link("gc-missing0", G1, C1)


@pytest.mark.asyncio
async def test_unlink_is_idempotent(channels, links, store):
    await _add(channels)
    await links.link("gc-aaaa0001", G1, C1)

    assert await links.unlink("gc-aaaa0001", G1) == C1
    writes = store.writes
    assert await links.unlink("gc-aaaa0001", G1) is None
    assert store.writes == writes
    assert links.lookup(C1) is None


@pytest.mark.asyncio
async def test_unlinked_text_channel_can_be_reused(channels, links):
    await _add(channels, "gc-aaaa0001")
    await _add(channels, "gc-bbbb0002")
    await links.link("gc-aaaa0001", G1, C1)
    await links.unlink("gc-aaaa0001", G1)

    await links.link("gc-bbbb0002", G1, C1)
    assert links.lookup(C1) == ("gc-bbbb0002", G1)


@pytest.mark.asyncio
async def test_removing_channel_releases_text_channels(channels, links, store):
    await _add(channels)
    await links.link("gc-aaaa0001", G1, C1)
    await links.link("gc-aaaa0001", G2, C2)

    await channels.remove("gc-aaaa0001")

    assert links.lookup(C1) is None
    assert links.linked_channels("gc-aaaa0001") == {}
    assert "gc-aaaa0001" not in store.channels


@pytest.mark.asyncio
async def test_load_rebuilds_text_channel_index(store):
    first = ChannelRegistry(store)
    await _add(first)
    await LinkRegistry(first).link("gc-aaaa0001", G3, C3)

    second = ChannelRegistry(store)
    await second.load()
    assert LinkRegistry(second).lookup(C3) == ("gc-aaaa0001", G3)
