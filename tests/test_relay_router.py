import pytest
import pytest_asyncio

from fakes import ALICE, C1, C2, C3, G1, G2, G3, make_event
from relaycord.datatypes.discord_datatypes import ChannelID, Scope
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.proxy_datatypes import ProxyMember
from relaycord.datatypes.result_datatypes import (
    ErrorKind,
    MutedGuildError,
    NotLinkedError,
    SourceNotEligibleError,
)
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.global_chat.moderation_ledger import ModerationLedger
from relaycord.global_chat.relay_router import RelayRouter

CHANNEL = "gc-relay001"


@pytest.fixture()
def channels(store):
    return ChannelRegistry(store)


@pytest.fixture()
def links(channels):
    return LinkRegistry(channels)


@pytest.fixture()
def ledger(channels, links, clock):
    return ModerationLedger(channels, links, clock)


@pytest.fixture()
def router(channels, links, ledger, messenger):
    return RelayRouter(channels, links, ledger, messenger, "[GC]", "• {server}")


@pytest_asyncio.fixture()
async def three_guilds(channels, links):
    await channels.add(GlobalChatChannel(channel_id=CHANNEL, name="Lobby", owner_id=ALICE))
    await links.link(CHANNEL, G1, C1)
    await links.link(CHANNEL, G2, C2)
    await links.link(CHANNEL, G3, C3)


@pytest.mark.asyncio
async def test_fans_out_to_every_other_guild(router, messenger, three_guilds):
    outcomes = await router.route(make_event("hello", author_name="Alice"), "hello")

    assert {(o.guild_id, o.channel_id) for o in outcomes} == {(G2, C2), (G3, C3)}
    assert all(o.delivered for o in outcomes)
    assert messenger.to_channel(C1) == []
    sent = messenger.to_channel(C2)[0]
    assert sent["content"] == "hello"
    assert sent["display_name"] == "[GC] Alice • Server One"


@pytest.mark.asyncio
async def test_muted_destination_is_skipped(router, ledger, messenger, three_guilds):
    await ledger.mute(CHANNEL, G3, 60_000)

    outcomes = await router.route(make_event("hello"), "hello")

    assert [o.guild_id for o in outcomes] == [G2]
    assert messenger.to_channel(C3) == []


@pytest.mark.asyncio
async def test_muted_source_is_rejected(router, ledger, messenger, three_guilds):
    await ledger.mute(CHANNEL, G1, 0)

    with pytest.raises(SourceNotEligibleError) as raised:
        await router.route(make_event("hello"), "hello")
    assert messenger.sent == []
    assert isinstance(raised.value.__cause__, MutedGuildError)
    assert raised.value.__cause__.kind is ErrorKind.MUTED_GUILD
    assert raised.value.__cause__.remaining_ms is None


@pytest.mark.asyncio
async def test_timed_mute_reports_remaining_time(router, ledger, clock, three_guilds):
    await ledger.mute(CHANNEL, G1, 60_000)
    clock.advance(15_000)

    with pytest.raises(SourceNotEligibleError) as raised:
        await router.route(make_event("hello"), "hello")

    cause = raised.value.__cause__
    assert cause.kind is ErrorKind.MUTED_GUILD
    assert cause.remaining_ms == 45_000
    assert "45" in cause.message


@pytest.mark.asyncio
async def test_unlinked_source(router, three_guilds):
    with pytest.raises(NotLinkedError):
        await router.route(make_event("hello", channel=ChannelID(99)), "hello")


@pytest.mark.asyncio
async def test_source_guild_must_own_the_channel(router, three_guilds):
    with pytest.raises(NotLinkedError):
        await router.route(make_event("hello", guild=G2, channel=C1), "hello")


@pytest.mark.asyncio
async def test_partial_failure_does_not_stop_others(router, messenger, three_guilds):
    messenger.failing.add(C2)

    outcomes = {o.guild_id: o for o in await router.route(make_event("hello"), "hello")}

    assert not outcomes[G2].delivered
    assert outcomes[G2].error is ErrorKind.MESSENGER_UNAVAILABLE
    assert outcomes[G3].delivered
    assert len(messenger.to_channel(C3)) == 1


@pytest.mark.asyncio
async def test_proxied_message_shows_member(router, messenger, three_guilds):
    member = ProxyMember(
        member_id="abcd1234",
        owner_id=ALICE,
        scope=Scope.global_scope(),
        name="Robin",
        avatar_ref="https://example.com/robin.png",
    )

    await router.route(make_event("R:hi"), "hi", member)

    sent = messenger.to_channel(C2)[0]
    assert sent["display_name"] == "Robin"
    assert sent["avatar"] == "https://example.com/robin.png"
    assert sent["content"] == "hi"


@pytest.mark.asyncio
async def test_attachments_are_appended(router, messenger, three_guilds):
    event = make_event("", attachment_urls=["https://cdn/a.png"])

    await router.route(event, "")

    assert messenger.to_channel(C2)[0]["content"] == "https://cdn/a.png"


@pytest.mark.asyncio
async def test_nothing_to_relay(router, messenger, three_guilds):
    assert await router.route(make_event(""), "") == []
    assert messenger.sent == []


@pytest.mark.asyncio
async def test_lone_guild_has_no_destinations(channels, links, router, messenger):
    await channels.add(GlobalChatChannel(channel_id=CHANNEL, name="Lobby", owner_id=ALICE))
    await links.link(CHANNEL, G1, C1)

    assert await router.route(make_event("hello"), "hello") == []
    assert messenger.sent == []
