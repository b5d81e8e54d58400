import asyncio

import pytest
import pytest_asyncio

from fakes import ALICE, C1, C2, G1, G2, G3
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.result_datatypes import BannedGuildError, NotBannedError, NotLinkedError
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.global_chat.moderation_ledger import PERMANENT, ModerationLedger

CHANNEL = "gc-mod00001"
MINUTE = 60_000


@pytest.fixture()
def channels(store):
    return ChannelRegistry(store)


@pytest.fixture()
def links(channels):
    return LinkRegistry(channels)


@pytest.fixture()
def ledger(channels, links, clock):
    return ModerationLedger(channels, links, clock)


@pytest_asyncio.fixture()
async def linked(channels, links):
    await channels.add(GlobalChatChannel(channel_id=CHANNEL, name="Lobby", owner_id=ALICE))
    await links.link(CHANNEL, G1, C1)
    await links.link(CHANNEL, G2, C2)


@pytest.mark.asyncio
async def test_ban_unlinks_and_blocks_relink(ledger, links, linked):
    removed = await ledger.ban(CHANNEL, G2)

    assert removed == C2
    assert ledger.is_banned(CHANNEL, G2)
    assert not links.is_linked(CHANNEL, G2)
    with pytest.raises(BannedGuildError):
        await links.link(CHANNEL, G2, C2)

    await ledger.unban(CHANNEL, G2)
    await links.link(CHANNEL, G2, C2)
    assert links.is_linked(CHANNEL, G2)


@pytest.mark.asyncio
async def test_ban_of_unlinked_guild(ledger, linked):
    assert await ledger.ban(CHANNEL, G3) is None
    assert ledger.is_banned(CHANNEL, G3)


@pytest.mark.asyncio
async def test_unban_requires_ban(ledger, linked):
    with pytest.raises(NotBannedError):
        await ledger.unban(CHANNEL, G1)


@pytest.mark.asyncio
async def test_kick_allows_relink(ledger, links, linked, store):
    assert await ledger.kick(CHANNEL, G2) == C2
    assert not links.is_linked(CHANNEL, G2)
    assert G2 in store.channels[CHANNEL].kicked_guilds

    await links.link(CHANNEL, G2, C2)
    assert links.is_linked(CHANNEL, G2)


@pytest.mark.asyncio
async def test_moderating_unlinked_guild_fails(ledger, linked):
    with pytest.raises(NotLinkedError):
        await ledger.kick(CHANNEL, G3)
    with pytest.raises(NotLinkedError):
        await ledger.mute(CHANNEL, G3, MINUTE)
    with pytest.raises(NotLinkedError):
        await ledger.warn(CHANNEL, G3, "spam")


@pytest.mark.asyncio
async def test_timed_mute_expires_lazily(ledger, linked, clock, store):
    until = await ledger.mute(CHANNEL, G2, 10 * MINUTE)
    assert until == clock.now + 10 * MINUTE

    clock.advance(9 * MINUTE)
    assert await ledger.is_muted(CHANNEL, G2)
    assert await ledger.remaining_mute_ms(CHANNEL, G2) == MINUTE

    clock.advance(MINUTE)
    assert not await ledger.is_muted(CHANNEL, G2)
    assert G2 not in store.channels[CHANNEL].muted_guilds
    assert await ledger.remaining_mute_ms(CHANNEL, G2) is None


@pytest.mark.asyncio
async def test_permanent_mute(ledger, linked, clock):
    assert await ledger.mute(CHANNEL, G2, 0) == PERMANENT
    clock.advance(365 * 24 * 60 * MINUTE)

    assert await ledger.is_muted(CHANNEL, G2)
    assert await ledger.muted_until(CHANNEL, G2) == PERMANENT
    assert await ledger.remaining_mute_ms(CHANNEL, G2) is None


@pytest.mark.asyncio
async def test_second_mute_overwrites(ledger, linked, clock):
    await ledger.mute(CHANNEL, G2, 0)
    until = await ledger.mute(CHANNEL, G2, MINUTE)
    assert await ledger.muted_until(CHANNEL, G2) == until


@pytest.mark.asyncio
async def test_unmute(ledger, linked):
    await ledger.mute(CHANNEL, G2, MINUTE)
    assert await ledger.unmute(CHANNEL, G2) is True
    assert await ledger.unmute(CHANNEL, G2) is False
    assert not await ledger.is_muted(CHANNEL, G2)


@pytest.mark.asyncio
async def test_ban_keeps_existing_mute(ledger, linked):
    await ledger.mute(CHANNEL, G2, MINUTE)
    await ledger.ban(CHANNEL, G2)
    assert await ledger.is_muted(CHANNEL, G2)

    await ledger.unban(CHANNEL, G2)
    assert await ledger.is_muted(CHANNEL, G2)


@pytest.mark.asyncio
async def test_unwarn_clears_every_warning(ledger, linked, store):
    assert await ledger.warn(CHANNEL, G1, "spam") == 1
    assert await ledger.warn(CHANNEL, G1, "rude") == 2
    assert ledger.warnings(CHANNEL, G1) == ["spam", "rude"]

    assert await ledger.unwarn(CHANNEL, G1) == ["spam", "rude"]
    assert ledger.warnings(CHANNEL, G1) == []
    assert G1 not in store.channels[CHANNEL].warnings

    writes = store.writes
    assert await ledger.unwarn(CHANNEL, G1) == []
    assert store.writes == writes


@pytest.mark.asyncio
async def test_concurrent_reads_after_expiry_evict_once(ledger, linked, clock, store):
    await ledger.mute(CHANNEL, G2, MINUTE)
    clock.advance(MINUTE)
    writes = store.writes

    results = await asyncio.gather(*(ledger.is_muted(CHANNEL, G2) for _ in range(8)))

    assert results == [False] * 8
    assert G2 not in store.channels[CHANNEL].muted_guilds
    assert store.writes == writes + 1


@pytest.mark.asyncio
async def test_eligibility(ledger, linked, clock):
    assert await ledger.is_eligible(CHANNEL, G1)
    assert not await ledger.is_eligible(CHANNEL, G3)

    await ledger.mute(CHANNEL, G1, MINUTE)
    assert not await ledger.is_eligible(CHANNEL, G1)

    clock.advance(MINUTE)
    assert await ledger.is_eligible(CHANNEL, G1)
