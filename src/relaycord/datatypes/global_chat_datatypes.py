"""
Global chat channel model.

A global chat channel is a logical channel that links one text channel per
participating guild. Its moderation state (bans, mutes, warnings, kicks) is
kept per guild on the same record so a single lock covers link and
moderation changes together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.util.time_utils import now_ms


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class GlobalChatChannel:
    """Persistent state of one global chat channel.

    Attributes:
        channel_id: Random unique id (``gc-`` followed by 8 characters)
        linked_channels: Guild id to the text channel linked in that guild
        muted_guilds: Guild id to unmute time in epoch milliseconds, 0 for permanent
        warnings: Guild id to the reasons of its warnings, oldest first
        message_prefix: Override of the default ``[GC]`` display prefix, None for default
        message_suffix: Override of the default ``• {server}`` display suffix, None for default
    """
    channel_id: str
    name: str
    owner_id: UserID
    description: str = ""
    visibility: Visibility = Visibility.PUBLIC
    key_required: bool = False
    join_key: Optional[str] = None
    co_owner_ids: Set[UserID] = field(default_factory=set)
    moderator_ids: Set[UserID] = field(default_factory=set)
    rules: List[str] = field(default_factory=list)
    linked_channels: Dict[GuildID, ChannelID] = field(default_factory=dict)
    banned_guilds: Set[GuildID] = field(default_factory=set)
    muted_guilds: Dict[GuildID, int] = field(default_factory=dict)
    warnings: Dict[GuildID, List[str]] = field(default_factory=dict)
    kicked_guilds: Set[GuildID] = field(default_factory=set)
    created_at: int = field(default_factory=now_ms)
    message_prefix: Optional[str] = None
    message_suffix: Optional[str] = None

    # ── Ownership / role checks ──────────────────────────────────────
    def is_owner(self, user_id: UserID) -> bool:
        return self.owner_id == user_id

    def is_co_owner(self, user_id: UserID) -> bool:
        return user_id in self.co_owner_ids

    def is_moderator(self, user_id: UserID) -> bool:
        return user_id in self.moderator_ids

    def has_manage_access(self, user_id: UserID) -> bool:
        """Owner or co-owner."""
        return self.is_owner(user_id) or self.is_co_owner(user_id)

    def has_moderate_access(self, user_id: UserID) -> bool:
        """Owner, co-owner or moderator."""
        return self.has_manage_access(user_id) or self.is_moderator(user_id)

    # ── Links ────────────────────────────────────────────────────────
    def is_linked(self, guild_id: GuildID) -> bool:
        return guild_id in self.linked_channels

    def guild_for_text_channel(self, text_channel_id: ChannelID) -> Optional[GuildID]:
        for guild_id, linked in self.linked_channels.items():
            if linked == text_channel_id:
                return guild_id
        return None

    def copy(self) -> "GlobalChatChannel":
        """Deep enough copy for persistence snapshots."""
        return GlobalChatChannel(
            channel_id=self.channel_id,
            name=self.name,
            owner_id=self.owner_id,
            description=self.description,
            visibility=self.visibility,
            key_required=self.key_required,
            join_key=self.join_key,
            co_owner_ids=set(self.co_owner_ids),
            moderator_ids=set(self.moderator_ids),
            rules=list(self.rules),
            linked_channels=dict(self.linked_channels),
            banned_guilds=set(self.banned_guilds),
            muted_guilds=dict(self.muted_guilds),
            warnings={guild: list(reasons) for guild, reasons in self.warnings.items()},
            kicked_guilds=set(self.kicked_guilds),
            created_at=self.created_at,
            message_prefix=self.message_prefix,
            message_suffix=self.message_suffix,
        )
