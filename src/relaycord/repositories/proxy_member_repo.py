"""
Repository for the proxy_members and proxy_tags tables.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

import aiosqlite

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.proxy_datatypes import ProxyMember, ProxyTag

_MEMBER_COLUMNS = (
    "member_id, owner_id, scope_key, name, display_name, pronouns, avatar_ref, "
    "description, color, keep_proxy_text, group_id, created_at, updated_at"
)


class ProxyMemberRepository:
    """CRUD for proxy members and their ordered tags."""

    async def get(self, conn: aiosqlite.Connection, member_id: str) -> Optional[ProxyMember]:
        async with conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM proxy_members WHERE member_id = ?",
            (member_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        async with conn.execute(
            "SELECT prefix, suffix FROM proxy_tags WHERE member_id = ? ORDER BY position",
            (member_id,),
        ) as cursor:
            tag_rows = await cursor.fetchall()

        return _row_to_member(row, [ProxyTag(prefix, suffix) for prefix, suffix in tag_rows])

    async def get_all(self, conn: aiosqlite.Connection) -> List[ProxyMember]:
        """Return every member, tags included, using two queries."""
        async with conn.execute(f"SELECT {_MEMBER_COLUMNS} FROM proxy_members") as cursor:
            rows = await cursor.fetchall()

        tags_by_member: Dict[str, List[ProxyTag]] = defaultdict(list)
        async with conn.execute(
            "SELECT member_id, prefix, suffix FROM proxy_tags ORDER BY member_id, position"
        ) as cursor:
            for member_id, prefix, suffix in await cursor.fetchall():
                tags_by_member[member_id].append(ProxyTag(prefix, suffix))

        return [_row_to_member(row, tags_by_member.get(row[0], [])) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, member: ProxyMember) -> None:
        """Insert or update a member and replace its tags."""
        await conn.execute(
            f"""
            INSERT INTO proxy_members ({_MEMBER_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(member_id) DO UPDATE SET
                owner_id = excluded.owner_id,
                scope_key = excluded.scope_key,
                name = excluded.name,
                display_name = excluded.display_name,
                pronouns = excluded.pronouns,
                avatar_ref = excluded.avatar_ref,
                description = excluded.description,
                color = excluded.color,
                keep_proxy_text = excluded.keep_proxy_text,
                group_id = excluded.group_id,
                updated_at = excluded.updated_at
            """,
            (
                member.member_id,
                str(member.owner_id),
                member.scope.key,
                member.name,
                member.display_name,
                member.pronouns,
                member.avatar_ref,
                member.description,
                member.color,
                1 if member.keep_proxy_text else 0,
                member.group_id,
                member.created_at.isoformat(),
                member.updated_at.isoformat(),
            ),
        )
        await conn.execute("DELETE FROM proxy_tags WHERE member_id = ?", (member.member_id,))
        if member.tags:
            await conn.executemany(
                "INSERT INTO proxy_tags (member_id, position, prefix, suffix) VALUES (?, ?, ?, ?)",
                [(member.member_id, position, tag.prefix, tag.suffix) for position, tag in enumerate(member.tags)],
            )

    async def delete(self, conn: aiosqlite.Connection, member_id: str) -> None:
        """Remove a member; its tags go with it through ON DELETE CASCADE."""
        await conn.execute("DELETE FROM proxy_members WHERE member_id = ?", (member_id,))


def _row_to_member(row, tags: List[ProxyTag]) -> ProxyMember:
    return ProxyMember(
        member_id=row[0],
        owner_id=UserID(row[1]),
        scope=Scope.from_key(row[2]),
        name=row[3],
        display_name=row[4],
        pronouns=row[5],
        avatar_ref=row[6],
        description=row[7],
        color=row[8],
        keep_proxy_text=bool(row[9]),
        group_id=row[10],
        tags=list(tags),
        created_at=datetime.fromisoformat(row[11]),
        updated_at=datetime.fromisoformat(row[12]),
    )
