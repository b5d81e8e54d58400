"""
Persistence interface of the proxy and global chat registries.

The registries only see the :class:`Store` protocol. :class:`SQLiteStore`
implements it over the shared aiosqlite connection and the table
repositories; any database failure surfaces as
:class:`~relaycord.datatypes.result_datatypes.StoreUnavailableError`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol

import aiosqlite

from relaycord.database.db_connection import ConnectionManager
from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.proxy_datatypes import ProxyGroup, ProxyMember, ProxySettings
from relaycord.datatypes.result_datatypes import StoreUnavailableError
from relaycord.repositories import (
    GlobalChatRepository,
    ProxyGroupRepository,
    ProxyMemberRepository,
    ProxySettingsRepository,
)
from relaycord.util.logger import get_logger

logger = get_logger("store")


class Store(Protocol):
    """Keyed persistence used as the system of record."""

    async def load_proxy_member(self, member_id: str) -> Optional[ProxyMember]: ...

    async def save_proxy_member(self, member: ProxyMember) -> None: ...

    async def delete_proxy_member(self, member_id: str) -> None: ...

    async def load_all_proxy_members(self) -> List[ProxyMember]: ...

    async def load_settings(self, owner_id: UserID, scope: Scope) -> Optional[ProxySettings]: ...

    async def save_settings(self, settings: ProxySettings) -> None: ...

    async def load_all_settings(self) -> List[ProxySettings]: ...

    async def load_proxy_group(self, group_id: str) -> Optional[ProxyGroup]: ...

    async def save_proxy_group(self, group: ProxyGroup) -> None: ...

    async def delete_proxy_group(self, group_id: str) -> None: ...

    async def load_all_proxy_groups(self) -> List[ProxyGroup]: ...

    async def load_global_chat_channel(self, channel_id: str) -> Optional[GlobalChatChannel]: ...

    async def save_global_chat_channel(self, channel: GlobalChatChannel) -> None: ...

    async def delete_global_chat_channel(self, channel_id: str) -> None: ...

    async def load_all_global_chat_channels(self) -> List[GlobalChatChannel]: ...


class SQLiteStore:
    """Store backed by the shared SQLite connection."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._connections = connection_manager
        self._members = ProxyMemberRepository()
        self._groups = ProxyGroupRepository()
        self._settings = ProxySettingsRepository()
        self._channels = GlobalChatRepository()

    @asynccontextmanager
    async def _reading(self, what: str) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with self._connections.read() as conn:
                yield conn
        except (aiosqlite.Error, RuntimeError, TimeoutError) as exc:
            logger.error("[STORE] Failed to load %s: %s", what, exc)
            raise StoreUnavailableError() from exc

    @asynccontextmanager
    async def _writing(self, what: str) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with self._connections.transaction() as conn:
                yield conn
        except (aiosqlite.Error, RuntimeError, TimeoutError) as exc:
            logger.error("[STORE] Failed to write %s: %s", what, exc)
            raise StoreUnavailableError() from exc

    # ── Proxy members ────────────────────────────────────────────────
    async def load_proxy_member(self, member_id: str) -> Optional[ProxyMember]:
        async with self._reading(f"proxy member {member_id}") as conn:
            return await self._members.get(conn, member_id)

    async def save_proxy_member(self, member: ProxyMember) -> None:
        async with self._writing(f"proxy member {member.member_id}") as conn:
            await self._members.upsert(conn, member)
        logger.debug("[STORE] Saved proxy member %s", member.member_id)

    async def delete_proxy_member(self, member_id: str) -> None:
        async with self._writing(f"proxy member {member_id}") as conn:
            await self._members.delete(conn, member_id)

    async def load_all_proxy_members(self) -> List[ProxyMember]:
        async with self._reading("proxy members") as conn:
            return await self._members.get_all(conn)

    # ── Proxy settings ───────────────────────────────────────────────
    async def load_settings(self, owner_id: UserID, scope: Scope) -> Optional[ProxySettings]:
        async with self._reading(f"proxy settings {owner_id}/{scope}") as conn:
            return await self._settings.get(conn, owner_id, scope)

    async def save_settings(self, settings: ProxySettings) -> None:
        async with self._writing(f"proxy settings {settings.owner_id}/{settings.scope}") as conn:
            await self._settings.upsert(conn, settings)

    async def load_all_settings(self) -> List[ProxySettings]:
        async with self._reading("proxy settings") as conn:
            return await self._settings.get_all(conn)

    # ── Proxy groups ─────────────────────────────────────────────────
    async def load_proxy_group(self, group_id: str) -> Optional[ProxyGroup]:
        async with self._reading(f"proxy group {group_id}") as conn:
            return await self._groups.get(conn, group_id)

    async def save_proxy_group(self, group: ProxyGroup) -> None:
        async with self._writing(f"proxy group {group.group_id}") as conn:
            await self._groups.upsert(conn, group)

    async def delete_proxy_group(self, group_id: str) -> None:
        async with self._writing(f"proxy group {group_id}") as conn:
            await self._groups.delete(conn, group_id)

    async def load_all_proxy_groups(self) -> List[ProxyGroup]:
        async with self._reading("proxy groups") as conn:
            return await self._groups.get_all(conn)

    # ── Global chat channels ─────────────────────────────────────────
    async def load_global_chat_channel(self, channel_id: str) -> Optional[GlobalChatChannel]:
        async with self._reading(f"global chat channel {channel_id}") as conn:
            return await self._channels.get(conn, channel_id)

    async def save_global_chat_channel(self, channel: GlobalChatChannel) -> None:
        async with self._writing(f"global chat channel {channel.channel_id}") as conn:
            await self._channels.upsert(conn, channel)
        logger.debug("[STORE] Saved global chat channel %s", channel.channel_id)

    async def delete_global_chat_channel(self, channel_id: str) -> None:
        async with self._writing(f"global chat channel {channel_id}") as conn:
            await self._channels.delete(conn, channel_id)

    async def load_all_global_chat_channels(self) -> List[GlobalChatChannel]:
        async with self._reading("global chat channels") as conn:
            return await self._channels.get_all(conn)
