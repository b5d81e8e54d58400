"""
ProxyCatalogue: in-memory registry of proxy members and groups.

Responsibilities:
- Scoped lookups (guild-scoped members shadow global ones of the same name)
- Name uniqueness per owner, case-insensitive
- Tag list edits and field edits, each bumping ``updated_at``
- Write-through persistence to the Store

Mutations of one owner's records are serialized on a per-owner lock. The
Store write happens after that lock is released, under a separate per-record
lock that always writes the latest in-memory snapshot.
"""

from __future__ import annotations

import uuid
from typing import Callable, Dict, List, Optional, Sequence

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.proxy_datatypes import ProxyGroup, ProxyMember, ProxyTag
from relaycord.datatypes.result_datatypes import (
    DuplicateNameError,
    InvalidFieldError,
    InvalidIndexError,
    InvalidTagError,
    NotFoundError,
)
from relaycord.store.store import Store
from relaycord.util.keyed_locks import KeyedLocks
from relaycord.util.logger import get_logger

logger = get_logger("proxy_catalogue")

_TRUE_WORDS = {"true", "yes", "on", "1", "enable", "enabled"}
_FALSE_WORDS = {"false", "no", "off", "0", "disable", "disabled"}

# Accepted edit field names and the attribute each one sets
EDIT_FIELDS: Dict[str, str] = {
    "name": "name",
    "displayname": "display_name",
    "display": "display_name",
    "avatar": "avatar_ref",
    "avatarurl": "avatar_ref",
    "pronouns": "pronouns",
    "description": "description",
    "desc": "description",
    "color": "color",
    "colour": "color",
    "keepproxy": "keep_proxy_text",
}


def _new_id(taken: Callable[[str], bool]) -> str:
    while True:
        candidate = uuid.uuid4().hex[:8]
        if not taken(candidate):
            return candidate


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_WORDS:
        return True
    if normalized in _FALSE_WORDS:
        return False
    raise InvalidFieldError(f"'{value}' is not a yes/no value.")


def _listing_key(record) -> tuple:
    # Alphabetical, with a guild member before a global one of the same name
    return (record.name.lower(), 0 if not record.scope.is_global else 1)


class ProxyCatalogue:
    """Owns every ProxyMember and ProxyGroup of the process."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._members: Dict[str, ProxyMember] = {}
        self._groups: Dict[str, ProxyGroup] = {}
        self._owner_locks: KeyedLocks[str] = KeyedLocks()
        self._persist_locks: KeyedLocks[str] = KeyedLocks()

    def _lock_for(self, owner_id: UserID):
        return self._owner_locks.hold(str(owner_id))

    def _persist_lock_for(self, record_key: str):
        return self._persist_locks.hold(record_key)

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Fill the cache from the Store."""
        members = await self._store.load_all_proxy_members()
        groups = await self._store.load_all_proxy_groups()
        self._members = {member.member_id: member for member in members}
        self._groups = {group.group_id: group for group in groups}
        logger.info("[PROXY CATALOGUE] Loaded %d members and %d groups", len(self._members), len(self._groups))

    async def _persist_member(self, member_id: str) -> None:
        async with self._persist_lock_for(f"member:{member_id}"):
            current = self._members.get(member_id)
            if current is None:
                await self._store.delete_proxy_member(member_id)
            else:
                await self._store.save_proxy_member(current.copy())

    async def _persist_group(self, group_id: str) -> None:
        async with self._persist_lock_for(f"group:{group_id}"):
            current = self._groups.get(group_id)
            if current is None:
                await self._store.delete_proxy_group(group_id)
            else:
                await self._store.save_proxy_group(current.copy())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _owned_visible(self, owner_id: UserID, scope: Scope) -> List[ProxyMember]:
        return [
            member for member in self._members.values()
            if member.owner_id == owner_id and member.scope.is_visible_in(scope)
        ]

    def _find_by_name(self, owner_id: UserID, scope: Scope, name: str) -> Optional[ProxyMember]:
        wanted = name.strip().lower()
        found: Optional[ProxyMember] = None
        for member in self._owned_visible(owner_id, scope):
            if member.name.lower() != wanted:
                continue
            if not member.scope.is_global:
                return member
            found = member
        return found

    def _owned_member(self, owner_id: UserID, member_id: str) -> ProxyMember:
        member = self._members.get(member_id)
        if member is None or member.owner_id != owner_id:
            raise NotFoundError(f"No proxy member with id `{member_id}`.")
        return member

    def get_by_id(self, member_id: str) -> Optional[ProxyMember]:
        member = self._members.get(member_id)
        return member.copy() if member is not None else None

    def get_by_name(self, owner_id: UserID, scope: Scope, name: str) -> Optional[ProxyMember]:
        """Look a member up by name as seen from ``scope``; a guild member shadows a global one."""
        member = self._find_by_name(owner_id, scope, name)
        return member.copy() if member is not None else None

    def resolve(self, owner_id: UserID, scope: Scope, reference: str) -> Optional[ProxyMember]:
        """Find a member visible in ``scope`` by id first, then by name."""
        member = self._members.get(reference.strip())
        if member is not None and member.owner_id == owner_id and member.scope.is_visible_in(scope):
            return member.copy()
        return self.get_by_name(owner_id, scope, reference)

    def list_for_owner(self, owner_id: UserID, scope: Scope) -> List[ProxyMember]:
        """Members of ``owner_id`` usable in ``scope``, sorted by name."""
        return [member.copy() for member in sorted(self._owned_visible(owner_id, scope), key=_listing_key)]

    def is_usable(self, member_id: Optional[str], owner_id: UserID, scope: Scope) -> Optional[ProxyMember]:
        """Return the member if it still exists, belongs to ``owner_id`` and is visible in ``scope``."""
        if member_id is None:
            return None
        member = self._members.get(member_id)
        if member is None or member.owner_id != owner_id or not member.scope.is_visible_in(scope):
            return None
        return member.copy()

    # ------------------------------------------------------------------
    # Member mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: UserID,
        scope: Scope,
        name: str,
        display_name: Optional[str] = None,
        avatar_ref: Optional[str] = None,
        tags: Optional[Sequence[ProxyTag]] = None,
    ) -> ProxyMember:
        """
        Create a member.

        Raises:
            InvalidFieldError: If the name is blank
            InvalidTagError: If one of ``tags`` has neither prefix nor suffix
            DuplicateNameError: If the owner already has a member of that name in ``scope``
        """
        name = (name or "").strip()
        if not name:
            raise InvalidFieldError("A proxy member needs a name.")
        tag_list = list(tags or [])
        if any(tag.is_empty for tag in tag_list):
            raise InvalidTagError()

        async with self._lock_for(owner_id):
            if self._find_by_name(owner_id, scope, name) is not None:
                raise DuplicateNameError()

            member = ProxyMember(
                member_id=_new_id(lambda candidate: candidate in self._members),
                owner_id=owner_id,
                scope=scope,
                name=name,
                display_name=display_name or None,
                avatar_ref=avatar_ref or None,
                tags=tag_list,
            )
            self._members[member.member_id] = member
            snapshot = member.copy()

        await self._persist_member(member.member_id)
        logger.info("[PROXY CATALOGUE] Created member %s (%s) for %s in %s", name, member.member_id, owner_id, scope)
        return snapshot

    async def edit(self, owner_id: UserID, member_id: str, field: str, value) -> ProxyMember:
        """
        Set one field of a member.

        Blank values clear the optional text fields. ``keepproxy`` takes a
        yes/no value.

        Raises:
            NotFoundError: If the member does not exist or is not the owner's
            InvalidFieldError: If ``field`` is unknown or the value is unusable
            DuplicateNameError: If renaming onto another member's name
        """
        attribute = EDIT_FIELDS.get((field or "").strip().lower())
        if attribute is None:
            raise InvalidFieldError(
                f"Unknown field '{field}'. Valid fields: name, displayname, avatar, pronouns, description, color, keepproxy."
            )

        async with self._lock_for(owner_id):
            member = self._owned_member(owner_id, member_id)

            if attribute == "name":
                new_name = str(value or "").strip()
                if not new_name:
                    raise InvalidFieldError("A proxy member needs a name.")
                clash = self._find_by_name(owner_id, member.scope, new_name)
                if clash is not None and clash.member_id != member.member_id:
                    raise DuplicateNameError()
                member.name = new_name
            elif attribute == "keep_proxy_text":
                member.keep_proxy_text = _parse_bool(value)
            else:
                text = None if value is None else str(value).strip()
                setattr(member, attribute, text or None)

            member.touch()
            snapshot = member.copy()

        await self._persist_member(member_id)
        logger.debug("[PROXY CATALOGUE] Edited %s of member %s", attribute, member_id)
        return snapshot

    async def delete(self, owner_id: UserID, member_id: str) -> ProxyMember:
        """Remove a member. Settings still pointing at it resolve to no member on read."""
        async with self._lock_for(owner_id):
            member = self._owned_member(owner_id, member_id)
            del self._members[member_id]

        await self._persist_member(member_id)
        logger.info("[PROXY CATALOGUE] Deleted member %s (%s)", member.name, member_id)
        return member

    async def add_tag(self, owner_id: UserID, member_id: str, tag: ProxyTag) -> ProxyMember:
        if tag.is_empty:
            raise InvalidTagError()

        async with self._lock_for(owner_id):
            member = self._owned_member(owner_id, member_id)
            member.tags.append(tag)
            member.touch()
            snapshot = member.copy()

        await self._persist_member(member_id)
        return snapshot

    async def remove_tag(self, owner_id: UserID, member_id: str, index: int) -> ProxyTag:
        """
        Remove the tag at ``index`` (0-based) and return it.

        Raises:
            InvalidIndexError: If ``index`` is out of range; the member is left untouched
        """
        async with self._lock_for(owner_id):
            member = self._owned_member(owner_id, member_id)
            if index < 0 or index >= len(member.tags):
                raise InvalidIndexError(
                    f"There is no tag #{index + 1}; {member.name} has {len(member.tags)} tag(s)."
                )
            removed = member.tags.pop(index)
            member.touch()

        await self._persist_member(member_id)
        return removed

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def _owned_group(self, owner_id: UserID, group_id: str) -> ProxyGroup:
        group = self._groups.get(group_id)
        if group is None or group.owner_id != owner_id:
            raise NotFoundError(f"No proxy group with id `{group_id}`.")
        return group

    def get_group(self, group_id: str) -> Optional[ProxyGroup]:
        group = self._groups.get(group_id)
        return group.copy() if group is not None else None

    def list_groups(self, owner_id: UserID, scope: Scope) -> List[ProxyGroup]:
        groups = [
            group for group in self._groups.values()
            if group.owner_id == owner_id and group.scope.is_visible_in(scope)
        ]
        return [group.copy() for group in sorted(groups, key=_listing_key)]

    def members_of_group(self, group_id: str) -> List[ProxyMember]:
        members = [member for member in self._members.values() if member.group_id == group_id]
        return [member.copy() for member in sorted(members, key=_listing_key)]

    async def create_group(self, owner_id: UserID, scope: Scope, name: str) -> ProxyGroup:
        name = (name or "").strip()
        if not name:
            raise InvalidFieldError("A proxy group needs a name.")

        async with self._lock_for(owner_id):
            for group in self._groups.values():
                if (
                    group.owner_id == owner_id
                    and group.scope.is_visible_in(scope)
                    and group.name.lower() == name.lower()
                ):
                    raise DuplicateNameError("You already have a proxy group with that name here.")

            group = ProxyGroup(
                group_id=_new_id(lambda candidate: candidate in self._groups),
                owner_id=owner_id,
                scope=scope,
                name=name,
            )
            self._groups[group.group_id] = group
            snapshot = group.copy()

        await self._persist_group(group.group_id)
        return snapshot

    async def add_member_to_group(self, owner_id: UserID, group_id: str, member_id: str) -> ProxyMember:
        async with self._lock_for(owner_id):
            self._owned_group(owner_id, group_id)
            member = self._owned_member(owner_id, member_id)
            member.group_id = group_id
            member.touch()
            snapshot = member.copy()

        await self._persist_member(member_id)
        return snapshot

    async def remove_member_from_group(self, owner_id: UserID, member_id: str) -> ProxyMember:
        async with self._lock_for(owner_id):
            member = self._owned_member(owner_id, member_id)
            if member.group_id is None:
                raise NotFoundError(f"{member.name} is not in a group.")
            member.group_id = None
            member.touch()
            snapshot = member.copy()

        await self._persist_member(member_id)
        return snapshot

    async def delete_group(self, owner_id: UserID, group_id: str) -> ProxyGroup:
        """Delete a group; its members stay and simply lose the group."""
        async with self._lock_for(owner_id):
            group = self._owned_group(owner_id, group_id)
            del self._groups[group_id]
            released: List[str] = []
            for member in self._members.values():
                if member.group_id == group_id:
                    member.group_id = None
                    member.touch()
                    released.append(member.member_id)

        await self._persist_group(group_id)
        for member_id in released:
            await self._persist_member(member_id)
        return group
