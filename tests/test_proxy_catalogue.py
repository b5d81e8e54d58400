import asyncio

import pytest

from fakes import ALICE, BOB, G1, G2, FakeStore
from relaycord.datatypes.discord_datatypes import Scope
from relaycord.datatypes.proxy_datatypes import ProxyTag
from relaycord.datatypes.result_datatypes import (
    DuplicateNameError,
    InvalidFieldError,
    InvalidIndexError,
    InvalidTagError,
    NotFoundError,
)
from relaycord.proxy.proxy_catalogue import ProxyCatalogue

GLOBAL = Scope.global_scope()
IN_G1 = Scope.for_guild(G1)
IN_G2 = Scope.for_guild(G2)


@pytest.fixture()
def catalogue(store) -> ProxyCatalogue:
    return ProxyCatalogue(store)


@pytest.mark.asyncio
async def test_create_persists_and_generates_short_id(catalogue, store):
    member = await catalogue.create(ALICE, GLOBAL, "Alice", tags=[ProxyTag("A:", "")])

    assert len(member.member_id) == 8
    assert store.members[member.member_id].name == "Alice"
    assert store.members[member.member_id].tags == [ProxyTag("A:", "")]


@pytest.mark.asyncio
async def test_duplicate_name_is_case_insensitive(catalogue):
    await catalogue.create(ALICE, GLOBAL, "Alice")
    with pytest.raises(DuplicateNameError):
        await catalogue.create(ALICE, GLOBAL, "alice")


@pytest.mark.asyncio
async def test_guild_member_clashes_with_visible_global(catalogue):
    await catalogue.create(ALICE, GLOBAL, "Alice")
    with pytest.raises(DuplicateNameError):
        await catalogue.create(ALICE, IN_G1, "ALICE")


@pytest.mark.asyncio
async def test_same_name_for_different_owners(catalogue):
    await catalogue.create(ALICE, GLOBAL, "Sam")
    member = await catalogue.create(BOB, GLOBAL, "Sam")
    assert member.owner_id == BOB


@pytest.mark.asyncio
async def test_guild_scoped_member_shadows_global(catalogue, store):
    global_member = await catalogue.create(ALICE, GLOBAL, "Robin")
    # create() refuses this clash, so plant the guild record directly
    guild_member = global_member.copy()
    guild_member.member_id = "guild001"
    guild_member.scope = IN_G1
    store.members[guild_member.member_id] = guild_member
    await catalogue.load()

    assert catalogue.get_by_name(ALICE, IN_G1, "robin").member_id == "guild001"
    assert catalogue.get_by_name(ALICE, IN_G2, "robin").member_id == global_member.member_id
    assert catalogue.get_by_name(ALICE, GLOBAL, "robin").member_id == global_member.member_id


@pytest.mark.asyncio
async def test_list_for_owner_sorted_and_scoped(catalogue):
    await catalogue.create(ALICE, GLOBAL, "zed")
    await catalogue.create(ALICE, IN_G1, "Amy")
    await catalogue.create(ALICE, IN_G2, "Bea")
    await catalogue.create(BOB, GLOBAL, "Other")

    names = [m.name for m in catalogue.list_for_owner(ALICE, IN_G1)]
    assert names == ["Amy", "zed"]
    assert [m.name for m in catalogue.list_for_owner(ALICE, GLOBAL)] == ["zed"]


@pytest.mark.asyncio
async def test_edit_bumps_updated_at_strictly(catalogue):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    first = await catalogue.edit(ALICE, member.member_id, "displayname", "Alice A.")
    second = await catalogue.edit(ALICE, member.member_id, "pronouns", "she/her")

    assert first.display_name == "Alice A."
    assert first.updated_at > member.updated_at
    assert second.updated_at > first.updated_at


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value,attribute,expected",
    [
        ("display", "Al", "display_name", "Al"),
        ("avatarurl", "https://x/a.png", "avatar_ref", "https://x/a.png"),
        ("desc", "hi", "description", "hi"),
        ("colour", "#ff0000", "color", "#ff0000"),
        ("keepproxy", "yes", "keep_proxy_text", True),
        ("description", "", "description", None),
    ],
)
async def test_edit_field_aliases(catalogue, field, value, attribute, expected):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    edited = await catalogue.edit(ALICE, member.member_id, field, value)
    assert getattr(edited, attribute) == expected


@pytest.mark.asyncio
async def test_edit_unknown_field(catalogue):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    with pytest.raises(InvalidFieldError):
        await catalogue.edit(ALICE, member.member_id, "birthday", "today")


@pytest.mark.asyncio
async def test_rename_onto_existing_name_fails(catalogue):
    await catalogue.create(ALICE, GLOBAL, "Alice")
    bob = await catalogue.create(ALICE, GLOBAL, "Bob")
    with pytest.raises(DuplicateNameError):
        await catalogue.edit(ALICE, bob.member_id, "name", "ALICE")

    renamed = await catalogue.edit(ALICE, bob.member_id, "name", "bob")
    assert renamed.name == "bob"


@pytest.mark.asyncio
async def test_other_owner_cannot_edit(catalogue):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    with pytest.raises(NotFoundError):
        await catalogue.edit(BOB, member.member_id, "name", "Mine")


@pytest.mark.asyncio
async def test_add_and_remove_tags(catalogue):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    await catalogue.add_tag(ALICE, member.member_id, ProxyTag("A:", ""))
    updated = await catalogue.add_tag(ALICE, member.member_id, ProxyTag("", "-a"))
    assert updated.tags == [ProxyTag("A:", ""), ProxyTag("", "-a")]

    removed = await catalogue.remove_tag(ALICE, member.member_id, 0)
    assert removed == ProxyTag("A:", "")
    assert catalogue.get_by_id(member.member_id).tags == [ProxyTag("", "-a")]


@pytest.mark.asyncio
async def test_remove_tag_out_of_range_is_reported_noop(catalogue, store):
    member = await catalogue.create(ALICE, GLOBAL, "Alice", tags=[ProxyTag("A:", "")])
    before = catalogue.get_by_id(member.member_id)
    writes = store.writes

    with pytest.raises(InvalidIndexError):
        await catalogue.remove_tag(ALICE, member.member_id, 5)

    after = catalogue.get_by_id(member.member_id)
    assert after.tags == before.tags
    assert after.updated_at == before.updated_at
    assert store.writes == writes


@pytest.mark.asyncio
async def test_empty_tag_rejected(catalogue):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    with pytest.raises(InvalidTagError):
        await catalogue.add_tag(ALICE, member.member_id, ProxyTag("", ""))
    with pytest.raises(InvalidTagError):
        await catalogue.create(ALICE, GLOBAL, "Other", tags=[ProxyTag()])


@pytest.mark.asyncio
async def test_delete_removes_from_store(catalogue, store):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    await catalogue.delete(ALICE, member.member_id)

    assert catalogue.get_by_id(member.member_id) is None
    assert member.member_id not in store.members


@pytest.mark.asyncio
async def test_groups_lifecycle(catalogue, store):
    member = await catalogue.create(ALICE, GLOBAL, "Alice")
    group = await catalogue.create_group(ALICE, GLOBAL, "Crew")

    await catalogue.add_member_to_group(ALICE, group.group_id, member.member_id)
    assert [m.name for m in catalogue.members_of_group(group.group_id)] == ["Alice"]

    await catalogue.delete_group(ALICE, group.group_id)
    assert catalogue.get_by_id(member.member_id).group_id is None
    assert group.group_id not in store.groups
    assert store.members[member.member_id].group_id is None


@pytest.mark.asyncio
async def test_concurrent_creates_keep_names_unique(catalogue):
    results = await asyncio.gather(
        *(catalogue.create(ALICE, GLOBAL, "Twin") for _ in range(5)),
        return_exceptions=True,
    )
    created = [r for r in results if not isinstance(r, Exception)]
    assert len(created) == 1
    assert all(isinstance(r, DuplicateNameError) for r in results if isinstance(r, Exception))


@pytest.mark.asyncio
async def test_load_restores_members():
    store = FakeStore()
    first = ProxyCatalogue(store)
    member = await first.create(ALICE, GLOBAL, "Alice", tags=[ProxyTag("A:", "")])

    second = ProxyCatalogue(store)
    await second.load()
    assert second.get_by_id(member.member_id).tags == [ProxyTag("A:", "")]
