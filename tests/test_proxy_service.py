import pytest

from fakes import ALICE, BOB, G1, make_event
from relaycord.datatypes.discord_datatypes import Scope
from relaycord.datatypes.proxy_datatypes import AutoproxyMode, ProxyTag
from relaycord.datatypes.result_datatypes import ErrorKind

HERE = Scope.for_guild(G1)
GLOBAL = Scope.global_scope()


@pytest.fixture()
def service(core):
    return core.proxy_service


@pytest.mark.asyncio
async def test_create_and_resolve_by_prefix(service):
    created = await service.create_member(ALICE, GLOBAL, "Alpha", prefix="A:")
    assert created.ok

    identity = await service.resolve_identity(make_event("A:hello"))
    assert identity.member.member_id == created.value.member_id
    assert identity.content == "hello"


@pytest.mark.asyncio
async def test_prefix_alone_is_not_proxied(service):
    await service.create_member(ALICE, GLOBAL, "Alpha", prefix="A:")
    assert await service.resolve_identity(make_event("A:")) is None


@pytest.mark.asyncio
async def test_duplicate_name_reported(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")
    result = await service.create_member(ALICE, GLOBAL, "ALPHA")

    assert not result.ok
    assert result.error is ErrorKind.DUPLICATE_NAME


@pytest.mark.asyncio
async def test_edit_by_name_and_by_id(service):
    member = (await service.create_member(ALICE, GLOBAL, "Alpha")).value

    by_name = await service.edit_member(ALICE, HERE, "alpha", "pronouns", "they/them")
    by_id = await service.edit_member(ALICE, HERE, member.member_id, "displayname", "Al")

    assert by_name.ok and by_name.value.pronouns == "they/them"
    assert by_id.ok and by_id.value.display_name == "Al"


@pytest.mark.asyncio
async def test_invalid_field(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")
    result = await service.edit_member(ALICE, GLOBAL, "Alpha", "shoe size", "9")
    assert result.error is ErrorKind.INVALID_FIELD


@pytest.mark.asyncio
async def test_unknown_member(service):
    result = await service.get_member(ALICE, GLOBAL, "ghost")
    assert result.error is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_other_owner_cannot_see_member(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")
    result = await service.delete_member(BOB, GLOBAL, "Alpha")
    assert result.error is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_tags_add_remove(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")

    assert (await service.add_tag(ALICE, GLOBAL, "Alpha", prefix="[", suffix="]")).ok
    empty = await service.add_tag(ALICE, GLOBAL, "Alpha")
    assert empty.error is ErrorKind.INVALID_TAG

    out_of_range = await service.remove_tag(ALICE, GLOBAL, "Alpha", 3)
    assert out_of_range.error is ErrorKind.INVALID_INDEX

    removed = await service.remove_tag(ALICE, GLOBAL, "Alpha", 0)
    assert removed.value == ProxyTag("[", "]")


@pytest.mark.asyncio
async def test_settings_toggles(service):
    result = await service.update_settings(ALICE, HERE, show_indicator=True)
    assert result.ok
    assert result.value.show_indicator
    assert result.value.proxy_enabled

    viewed = await service.view_settings(ALICE, HERE)
    assert viewed.value.show_indicator


@pytest.mark.asyncio
async def test_set_autoproxy_parses_modes(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")

    latch = await service.set_autoproxy(ALICE, HERE, "latch")
    assert latch.value.autoproxy_mode is AutoproxyMode.FRONT

    pinned = await service.set_autoproxy(ALICE, HERE, "member", "Alpha")
    assert pinned.value.autoproxy_mode is AutoproxyMode.MEMBER

    bogus = await service.set_autoproxy(ALICE, HERE, "sometimes")
    assert bogus.error is ErrorKind.INVALID_AUTOPROXY_MODE

    missing = await service.set_autoproxy(ALICE, HERE, "member")
    assert missing.error is ErrorKind.INVALID_AUTOPROXY_MODE


@pytest.mark.asyncio
async def test_switch_and_front(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")
    await service.set_autoproxy(ALICE, HERE, "front")

    assert (await service.switch(ALICE, HERE, "Alpha")).ok
    identity = await service.resolve_identity(make_event("just talking"))
    assert identity.member.name == "Alpha"

    assert (await service.switch(ALICE, HERE, None)).ok
    assert await service.resolve_identity(make_event("just talking")) is None


@pytest.mark.asyncio
async def test_groups(service):
    await service.create_member(ALICE, GLOBAL, "Alpha")
    assert (await service.create_group(ALICE, GLOBAL, "Crew")).ok

    joined = await service.add_member_to_group(ALICE, GLOBAL, "crew", "alpha")
    assert joined.ok and joined.value.group_id is not None

    listed = await service.list_groups(ALICE, GLOBAL)
    assert [g.name for g in listed.value] == ["Crew"]

    left = await service.remove_member_from_group(ALICE, GLOBAL, "Alpha")
    assert left.value.group_id is None
    again = await service.remove_member_from_group(ALICE, GLOBAL, "Alpha")
    assert again.error is ErrorKind.NOT_FOUND

    assert (await service.delete_group(ALICE, GLOBAL, "Crew")).ok
    assert (await service.list_groups(ALICE, GLOBAL)).value == []


@pytest.mark.asyncio
async def test_store_outage_is_reported(service, store):
    store.available = False
    result = await service.create_member(ALICE, GLOBAL, "Alpha")

    assert not result.ok
    assert result.error is ErrorKind.STORE_UNAVAILABLE
