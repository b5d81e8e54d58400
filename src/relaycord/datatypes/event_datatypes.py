"""
Message-flow data structures.

:class:`InboundEvent` is what the Discord listener hands to the core;
:class:`ResolvedIdentity` is the proxy engine's answer; :class:`DisplayIdentity`
is the name and avatar a destination channel will see; :class:`RelayOutcome`
is the per-destination delivery result of a relay.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, Scope, UserID
from relaycord.datatypes.proxy_datatypes import ProxyMember
from relaycord.datatypes.result_datatypes import ErrorKind
from relaycord.util.time_utils import utc_now


@dataclass(slots=True)
class InboundEvent:
    """A message observed by the listener.

    Only ``author_id``, ``guild_id``, ``channel_id``, ``raw_text`` and
    ``timestamp`` drive identity resolution; the remaining fields feed the
    default relay display name.
    """
    author_id: UserID
    guild_id: Optional[GuildID]
    channel_id: ChannelID
    raw_text: str
    timestamp: datetime = field(default_factory=utc_now)
    author_name: str = ""
    username: Optional[str] = None
    global_display_name: Optional[str] = None
    avatar_ref: Optional[str] = None
    pronouns: str = ""
    server_name: Optional[str] = None
    attachment_urls: List[str] = field(default_factory=list)

    @property
    def scope(self) -> Scope:
        return Scope.from_optional(self.guild_id)


class ResolutionSource(Enum):
    TAG = "tag"
    AUTOPROXY = "autoproxy"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ResolvedIdentity:
    """The proxy member a message is sent as, and the text to send."""
    member: ProxyMember
    content: str
    source: ResolutionSource
    tag_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class DisplayIdentity:
    """Name and avatar shown in a destination channel."""
    display_name: str
    avatar_ref: Optional[str] = None


@dataclass(slots=True)
class RelayOutcome:
    """Delivery result for one destination of a relay."""
    guild_id: GuildID
    channel_id: ChannelID
    delivered: bool
    error: Optional[ErrorKind] = None
    message: str = ""


@dataclass(slots=True)
class PipelineOutcome:
    """Everything the message pipeline did for one inbound event.

    Attributes:
        identity: Resolved proxy identity, None when the message is not proxied
        proxied: True once the proxied copy was posted in the source channel
        relay_error: Why the relay was skipped, when it was
        relay_message: Explanation of relay_error, naming the ban or the mute behind it
        relay_detail: Remaining mute milliseconds when a mute blocked the relay (None if permanent)
        relays: Per-destination relay outcomes
    """
    identity: Optional[ResolvedIdentity] = None
    proxied: bool = False
    relay_error: Optional[ErrorKind] = None
    relay_message: str = ""
    relay_detail: Optional[int] = None
    relays: List[RelayOutcome] = field(default_factory=list)
