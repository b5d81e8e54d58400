"""
Repository for the proxy_settings table, one row per (owner, scope).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import aiosqlite

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.proxy_datatypes import AutoproxyMode, ProxySettings
from relaycord.util.logger import get_logger

logger = get_logger("proxy_settings_repo")

_SETTINGS_COLUMNS = (
    "owner_id, scope_key, proxy_enabled, autoproxy_mode, autoproxy_member_id, show_indicator, "
    "case_sensitive_tags, last_proxied_member_id, last_switch_time, updated_at"
)


class ProxySettingsRepository:
    """CRUD for per-user proxy settings."""

    async def get(
        self, conn: aiosqlite.Connection, owner_id: UserID, scope: Scope
    ) -> Optional[ProxySettings]:
        async with conn.execute(
            f"SELECT {_SETTINGS_COLUMNS} FROM proxy_settings WHERE owner_id = ? AND scope_key = ?",
            (str(owner_id), scope.key),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_settings(row) if row is not None else None

    async def get_all(self, conn: aiosqlite.Connection) -> List[ProxySettings]:
        async with conn.execute(f"SELECT {_SETTINGS_COLUMNS} FROM proxy_settings") as cursor:
            rows = await cursor.fetchall()
        return [_row_to_settings(row) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, settings: ProxySettings) -> None:
        await conn.execute(
            f"""
            INSERT INTO proxy_settings ({_SETTINGS_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(owner_id, scope_key) DO UPDATE SET
                proxy_enabled = excluded.proxy_enabled,
                autoproxy_mode = excluded.autoproxy_mode,
                autoproxy_member_id = excluded.autoproxy_member_id,
                show_indicator = excluded.show_indicator,
                case_sensitive_tags = excluded.case_sensitive_tags,
                last_proxied_member_id = excluded.last_proxied_member_id,
                last_switch_time = excluded.last_switch_time,
                updated_at = excluded.updated_at
            """,
            (
                str(settings.owner_id),
                settings.scope.key,
                1 if settings.proxy_enabled else 0,
                settings.autoproxy_mode.value,
                settings.autoproxy_member_id,
                1 if settings.show_indicator else 0,
                1 if settings.case_sensitive_tags else 0,
                settings.last_proxied_member_id,
                settings.last_switch_time.isoformat() if settings.last_switch_time else None,
                settings.updated_at.isoformat(),
            ),
        )


def _row_to_settings(row) -> ProxySettings:
    try:
        mode = AutoproxyMode.parse(row[3])
    except ValueError:
        logger.warning("[PROXY SETTINGS REPO] Unknown autoproxy mode %r for %s, using off", row[3], row[0])
        mode = AutoproxyMode.OFF

    return ProxySettings(
        owner_id=UserID(row[0]),
        scope=Scope.from_key(row[1]),
        proxy_enabled=bool(row[2]),
        autoproxy_mode=mode,
        autoproxy_member_id=row[4],
        show_indicator=bool(row[5]),
        case_sensitive_tags=bool(row[6]),
        last_proxied_member_id=row[7],
        last_switch_time=datetime.fromisoformat(row[8]) if row[8] else None,
        updated_at=datetime.fromisoformat(row[9]),
    )
