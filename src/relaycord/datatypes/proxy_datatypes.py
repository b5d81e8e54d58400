"""
Proxy identities, groups and per-user proxy settings.

A proxy member is an alternate identity a user can post as. Members carry an
ordered list of :class:`ProxyTag` envelopes; the order is significant because
tag matching is first-match.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.util.time_utils import utc_now


def _bump(previous: datetime) -> datetime:
    """Return now, nudged forward so ``updated_at`` strictly increases."""
    now = utc_now()
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


@dataclass(frozen=True, slots=True)
class ProxyTag:
    """A ``prefix + content + suffix`` envelope. At least one side is non-empty."""

    prefix: str = ""
    suffix: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.prefix and not self.suffix

    def __str__(self) -> str:
        if self.is_empty:
            return "(no tags)"
        return f"{self.prefix}text{self.suffix}"


@dataclass(slots=True)
class ProxyMember:
    """One proxy identity owned by a user, global or bound to a guild."""

    member_id: str
    owner_id: UserID
    scope: Scope
    name: str
    display_name: Optional[str] = None
    pronouns: Optional[str] = None
    avatar_ref: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    tags: List[ProxyTag] = field(default_factory=list)
    keep_proxy_text: bool = False
    group_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def effective_display_name(self) -> str:
        """Name shown on relayed messages; falls back to ``name``."""
        return self.display_name or self.name

    def touch(self) -> None:
        self.updated_at = _bump(self.updated_at)

    def copy(self) -> "ProxyMember":
        return replace(self, tags=list(self.tags))


@dataclass(slots=True)
class ProxyGroup:
    """A named collection of a user's proxy members."""

    group_id: str
    owner_id: UserID
    scope: Scope
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon_ref: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        self.updated_at = _bump(self.updated_at)

    def copy(self) -> "ProxyGroup":
        return replace(self)


class AutoproxyMode(Enum):
    """
    Autoproxy modes.

    ``LATCH`` is accepted as an alias of ``FRONT`` when parsing but is not a
    separate member, so the two can never drift apart.
    """

    OFF = "off"
    FRONT = "front"
    MEMBER = "member"
    STICKY = "sticky"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "AutoproxyMode":
        """Parse a user-supplied mode name. Raises ValueError when unknown."""
        normalized = (value or "").strip().lower()
        if normalized == "latch":
            return cls.FRONT
        return cls(normalized)


@dataclass(slots=True)
class ProxySettings:
    """Proxy preferences and fronting state for one ``(owner, scope)`` pair."""

    owner_id: UserID
    scope: Scope
    proxy_enabled: bool = True
    autoproxy_mode: AutoproxyMode = AutoproxyMode.OFF
    autoproxy_member_id: Optional[str] = None
    show_indicator: bool = False
    case_sensitive_tags: bool = False
    last_proxied_member_id: Optional[str] = None
    last_switch_time: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        self.updated_at = _bump(self.updated_at)

    def copy(self) -> "ProxySettings":
        return replace(self)
