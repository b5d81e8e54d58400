"""
Repository for the proxy_groups table.

Group membership is not stored here: a member points at its group through
``proxy_members.group_id``.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import aiosqlite

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.proxy_datatypes import ProxyGroup

_GROUP_COLUMNS = (
    "group_id, owner_id, scope_key, name, display_name, description, color, icon_ref, created_at, updated_at"
)


class ProxyGroupRepository:
    """CRUD for proxy groups."""

    async def get(self, conn: aiosqlite.Connection, group_id: str) -> Optional[ProxyGroup]:
        async with conn.execute(
            f"SELECT {_GROUP_COLUMNS} FROM proxy_groups WHERE group_id = ?", (group_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_group(row) if row is not None else None

    async def get_all(self, conn: aiosqlite.Connection) -> List[ProxyGroup]:
        async with conn.execute(f"SELECT {_GROUP_COLUMNS} FROM proxy_groups") as cursor:
            rows = await cursor.fetchall()
        return [_row_to_group(row) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, group: ProxyGroup) -> None:
        await conn.execute(
            f"""
            INSERT INTO proxy_groups ({_GROUP_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(group_id) DO UPDATE SET
                name = excluded.name,
                display_name = excluded.display_name,
                description = excluded.description,
                color = excluded.color,
                icon_ref = excluded.icon_ref,
                updated_at = excluded.updated_at
            """,
            (
                group.group_id,
                str(group.owner_id),
                group.scope.key,
                group.name,
                group.display_name,
                group.description,
                group.color,
                group.icon_ref,
                group.created_at.isoformat(),
                group.updated_at.isoformat(),
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, group_id: str) -> None:
        await conn.execute("DELETE FROM proxy_groups WHERE group_id = ?", (group_id,))
        await conn.execute("UPDATE proxy_members SET group_id = NULL WHERE group_id = ?", (group_id,))


def _row_to_group(row) -> ProxyGroup:
    return ProxyGroup(
        group_id=row[0],
        owner_id=UserID(row[1]),
        scope=Scope.from_key(row[2]),
        name=row[3],
        display_name=row[4],
        description=row[5],
        color=row[6],
        icon_ref=row[7],
        created_at=datetime.fromisoformat(row[8]),
        updated_at=datetime.fromisoformat(row[9]),
    )
