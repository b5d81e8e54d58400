"""
Repository for global chat channels and their guild links.

Set- and map-valued moderation fields are stored as JSON text columns; links
live in their own table so a text channel can be linked at most once.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

import aiosqlite

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel, Visibility
from relaycord.util.logger import get_logger

logger = get_logger("global_chat_repo")

_CHANNEL_COLUMNS = (
    "channel_id, name, description, visibility, key_required, join_key, owner_id, co_owner_ids, "
    "moderator_ids, rules, banned_guilds, muted_guilds, warnings, kicked_guilds, created_at, "
    "message_prefix, message_suffix"
)


class GlobalChatRepository:
    """CRUD for global chat channels."""

    async def get(self, conn: aiosqlite.Connection, channel_id: str) -> Optional[GlobalChatChannel]:
        async with conn.execute(
            f"SELECT {_CHANNEL_COLUMNS} FROM global_chat_channels WHERE channel_id = ?",
            (channel_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        links = await self._get_links(conn, channel_id)
        return _row_to_channel(row, links)

    async def get_all(self, conn: aiosqlite.Connection) -> List[GlobalChatChannel]:
        async with conn.execute(f"SELECT {_CHANNEL_COLUMNS} FROM global_chat_channels") as cursor:
            rows = await cursor.fetchall()

        links_by_channel: Dict[str, Dict[GuildID, ChannelID]] = {}
        async with conn.execute(
            "SELECT channel_id, guild_id, text_channel_id FROM global_chat_links"
        ) as cursor:
            for channel_id, guild_id, text_channel_id in await cursor.fetchall():
                links_by_channel.setdefault(channel_id, {})[GuildID(guild_id)] = ChannelID(text_channel_id)

        return [_row_to_channel(row, links_by_channel.get(row[0], {})) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, channel: GlobalChatChannel) -> None:
        """Insert or update a channel and replace its links."""
        await conn.execute(
            f"""
            INSERT INTO global_chat_channels ({_CHANNEL_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(channel_id) DO UPDATE SET
                name = excluded.name,
                description = excluded.description,
                visibility = excluded.visibility,
                key_required = excluded.key_required,
                join_key = excluded.join_key,
                owner_id = excluded.owner_id,
                co_owner_ids = excluded.co_owner_ids,
                moderator_ids = excluded.moderator_ids,
                rules = excluded.rules,
                banned_guilds = excluded.banned_guilds,
                muted_guilds = excluded.muted_guilds,
                warnings = excluded.warnings,
                kicked_guilds = excluded.kicked_guilds,
                message_prefix = excluded.message_prefix,
                message_suffix = excluded.message_suffix
            """,
            (
                channel.channel_id,
                channel.name,
                channel.description,
                channel.visibility.value,
                1 if channel.key_required else 0,
                channel.join_key,
                str(channel.owner_id),
                _dump_ids(channel.co_owner_ids),
                _dump_ids(channel.moderator_ids),
                json.dumps(channel.rules),
                _dump_ids(channel.banned_guilds),
                json.dumps({str(guild): until for guild, until in channel.muted_guilds.items()}),
                json.dumps({str(guild): reasons for guild, reasons in channel.warnings.items()}),
                _dump_ids(channel.kicked_guilds),
                channel.created_at,
                channel.message_prefix,
                channel.message_suffix,
            ),
        )

        await conn.execute("DELETE FROM global_chat_links WHERE channel_id = ?", (channel.channel_id,))
        if channel.linked_channels:
            await conn.executemany(
                "INSERT INTO global_chat_links (channel_id, guild_id, text_channel_id) VALUES (?, ?, ?)",
                [
                    (channel.channel_id, str(guild_id), str(text_channel_id))
                    for guild_id, text_channel_id in channel.linked_channels.items()
                ],
            )

    async def delete(self, conn: aiosqlite.Connection, channel_id: str) -> None:
        await conn.execute("DELETE FROM global_chat_channels WHERE channel_id = ?", (channel_id,))

    async def _get_links(self, conn: aiosqlite.Connection, channel_id: str) -> Dict[GuildID, ChannelID]:
        async with conn.execute(
            "SELECT guild_id, text_channel_id FROM global_chat_links WHERE channel_id = ?",
            (channel_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return {GuildID(guild_id): ChannelID(text_channel_id) for guild_id, text_channel_id in rows}


def _dump_ids(ids) -> str:
    return json.dumps(sorted(str(i) for i in ids))


def _row_to_channel(row, links: Dict[GuildID, ChannelID]) -> GlobalChatChannel:
    try:
        visibility = Visibility(row[3])
    except ValueError:
        logger.warning("[GLOBAL CHAT REPO] Unknown visibility %r on %s, using public", row[3], row[0])
        visibility = Visibility.PUBLIC

    return GlobalChatChannel(
        channel_id=row[0],
        name=row[1],
        description=row[2],
        visibility=visibility,
        key_required=bool(row[4]),
        join_key=row[5],
        owner_id=UserID(row[6]),
        co_owner_ids={UserID(i) for i in json.loads(row[7])},
        moderator_ids={UserID(i) for i in json.loads(row[8])},
        rules=list(json.loads(row[9])),
        linked_channels=dict(links),
        banned_guilds={GuildID(i) for i in json.loads(row[10])},
        muted_guilds={GuildID(g): int(until) for g, until in json.loads(row[11]).items()},
        warnings={GuildID(g): list(reasons) for g, reasons in json.loads(row[12]).items()},
        kicked_guilds={GuildID(i) for i in json.loads(row[13])},
        created_at=int(row[14]),
        message_prefix=row[15],
        message_suffix=row[16],
    )
