"""
Database schema initialization.

Handles creation of tables, indexes and schema version tracking. Snowflake ids
are stored as TEXT, record timestamps as ISO-8601 TEXT and mute deadlines as
INTEGER epoch milliseconds.
"""

import aiosqlite
from relaycord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the Relaycord schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all database tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS proxy_members (
                member_id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                scope_key TEXT NOT NULL,
                name TEXT NOT NULL,
                display_name TEXT,
                pronouns TEXT,
                avatar_ref TEXT,
                description TEXT,
                color TEXT,
                keep_proxy_text INTEGER NOT NULL DEFAULT 0,
                group_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        # Tag order is significant (first match wins), hence the position column
        await db.execute("""
            CREATE TABLE IF NOT EXISTS proxy_tags (
                member_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                prefix TEXT NOT NULL DEFAULT '',
                suffix TEXT NOT NULL DEFAULT '',
                PRIMARY KEY (member_id, position),
                FOREIGN KEY (member_id) REFERENCES proxy_members(member_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS proxy_groups (
                group_id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                scope_key TEXT NOT NULL,
                name TEXT NOT NULL,
                display_name TEXT,
                description TEXT,
                color TEXT,
                icon_ref TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS proxy_settings (
                owner_id TEXT NOT NULL,
                scope_key TEXT NOT NULL,
                proxy_enabled INTEGER NOT NULL DEFAULT 1,
                autoproxy_mode TEXT NOT NULL DEFAULT 'off',
                autoproxy_member_id TEXT,
                show_indicator INTEGER NOT NULL DEFAULT 0,
                case_sensitive_tags INTEGER NOT NULL DEFAULT 0,
                last_proxied_member_id TEXT,
                last_switch_time TEXT,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (owner_id, scope_key)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS global_chat_channels (
                channel_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                visibility TEXT NOT NULL DEFAULT 'public',
                key_required INTEGER NOT NULL DEFAULT 0,
                join_key TEXT,
                owner_id TEXT NOT NULL,
                co_owner_ids TEXT NOT NULL DEFAULT '[]',
                moderator_ids TEXT NOT NULL DEFAULT '[]',
                rules TEXT NOT NULL DEFAULT '[]',
                banned_guilds TEXT NOT NULL DEFAULT '[]',
                muted_guilds TEXT NOT NULL DEFAULT '{}',
                warnings TEXT NOT NULL DEFAULT '{}',
                kicked_guilds TEXT NOT NULL DEFAULT '[]',
                created_at INTEGER NOT NULL,
                message_prefix TEXT,
                message_suffix TEXT
            )
        """)

        # A text channel can belong to one global chat channel only
        await db.execute("""
            CREATE TABLE IF NOT EXISTS global_chat_links (
                channel_id TEXT NOT NULL,
                guild_id TEXT NOT NULL,
                text_channel_id TEXT NOT NULL UNIQUE,
                PRIMARY KEY (channel_id, guild_id),
                FOREIGN KEY (channel_id) REFERENCES global_chat_channels(channel_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_proxy_members_owner ON proxy_members(owner_id, scope_key)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_proxy_groups_owner ON proxy_groups(owner_id, scope_key)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_global_chat_links_guild ON global_chat_links(guild_id)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    @staticmethod
    async def current_version(db: aiosqlite.Connection) -> int:
        """Highest applied schema version, 0 for a fresh database."""
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
        )
        if await cursor.fetchone() is None:
            return 0
        cursor = await db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        return int(row[0] or 0)
