"""
Type-safe wrapper classes for Discord identifiers and proxy scopes.

Discord snowflakes are 64-bit integers, but they are stored and persisted as
strings for JSON parity. The wrappers compare equal to their string and int
forms and hash like the string, so dictionaries keyed by a wrapper can be
looked up with a raw string id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import discord


class _SnowflakeID:
    """Common behaviour for the snowflake wrappers below."""

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "_SnowflakeID"]) -> None:
        if isinstance(value, _SnowflakeID):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            # Validate that it's a valid integer string
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _SnowflakeID):
            return type(other) is type(self) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(_SnowflakeID):
    """
    Type-safe wrapper for Discord user snowflake IDs.

    Example:
        >>> uid = UserID.from_int(123456789012345678)
        >>> str(uid)
        '123456789012345678'
    """

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class GuildID(_SnowflakeID):
    """Type-safe wrapper for Discord guild snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(_SnowflakeID):
    """Type-safe wrapper for Discord text channel snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: Union[discord.TextChannel, discord.Thread, discord.abc.GuildChannel]) -> "ChannelID":
        return cls(channel.id)


GLOBAL_SCOPE_KEY = "global"


@dataclass(frozen=True, slots=True)
class Scope:
    """
    Where a proxy member or a settings record applies.

    Either global (every guild and DMs) or one guild. Replaces the nullable
    guild id so call sites cannot confuse "no guild" with "unknown guild".
    """

    guild_id: Optional[GuildID] = None

    @classmethod
    def global_scope(cls) -> "Scope":
        return cls(None)

    @classmethod
    def for_guild(cls, guild_id: Union[GuildID, str, int]) -> "Scope":
        return cls(GuildID(guild_id))

    @classmethod
    def from_optional(cls, guild_id: Union[GuildID, str, int, None]) -> "Scope":
        """Global when ``guild_id`` is None, otherwise the guild scope."""
        return cls.global_scope() if guild_id is None else cls.for_guild(guild_id)

    @classmethod
    def from_key(cls, key: str) -> "Scope":
        """Inverse of :attr:`key`, used when loading persisted rows."""
        return cls.global_scope() if key == GLOBAL_SCOPE_KEY else cls.for_guild(key)

    @property
    def is_global(self) -> bool:
        return self.guild_id is None

    @property
    def key(self) -> str:
        """Stable string form used as a storage and lock key."""
        return GLOBAL_SCOPE_KEY if self.guild_id is None else str(self.guild_id)

    def is_visible_in(self, context: "Scope") -> bool:
        """True if a record with this scope can be used from ``context``.

        Global records are visible everywhere; guild records only inside
        their own guild.
        """
        return self.is_global or self.guild_id == context.guild_id

    def __str__(self) -> str:
        return self.key
