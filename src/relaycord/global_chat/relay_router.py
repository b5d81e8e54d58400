"""
RelayRouter: fans a message from one linked text channel out to every other
eligible guild of the same global chat channel.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID
from relaycord.datatypes.event_datatypes import DisplayIdentity, InboundEvent, RelayOutcome
from relaycord.datatypes.proxy_datatypes import ProxyMember
from relaycord.datatypes.result_datatypes import (
    BannedGuildError,
    ErrorKind,
    MessengerUnavailableError,
    MutedGuildError,
    NotLinkedError,
    SourceNotEligibleError,
)
from relaycord.global_chat import display_format
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.global_chat.moderation_ledger import ModerationLedger
from relaycord.messaging.messenger import Messenger
from relaycord.util.logger import get_logger

logger = get_logger("relay_router")


class RelayRouter:
    def __init__(
        self,
        channels: ChannelRegistry,
        links: LinkRegistry,
        ledger: ModerationLedger,
        messenger: Messenger,
        default_prefix: str,
        default_suffix: str,
        max_display_name_length: int = 80,
        max_content_length: int = 2000,
        max_attachments: int = 5,
    ) -> None:
        self._channels = channels
        self._links = links
        self._ledger = ledger
        self._messenger = messenger
        self.default_prefix = default_prefix
        self.default_suffix = default_suffix
        self.max_display_name_length = max_display_name_length
        self.max_content_length = max_content_length
        self.max_attachments = max_attachments

    def is_linked_text_channel(self, text_channel_id: ChannelID) -> bool:
        return self._links.lookup(text_channel_id) is not None

    async def destinations(self, channel_id: str, source_guild: GuildID) -> List[Tuple[GuildID, ChannelID]]:
        """Every linked guild other than the source that is neither banned nor muted."""
        result: List[Tuple[GuildID, ChannelID]] = []
        for guild_id, text_channel_id in self._links.linked_channels(channel_id).items():
            if guild_id == source_guild:
                continue
            if await self._ledger.is_eligible(channel_id, guild_id):
                result.append((guild_id, text_channel_id))
        return result

    async def route(
        self,
        event: InboundEvent,
        content: str,
        member: Optional[ProxyMember] = None,
    ) -> List[RelayOutcome]:
        """
        Relay ``content`` from the event's channel to the other guilds.

        Args:
            event: Inbound message; its guild and channel are the source
            content: Text to relay (already stripped of proxy tags when proxied)
            member: Proxy member the message is sent as, None for the author

        Returns:
            One outcome per destination. A failed destination does not stop the others.

        Raises:
            NotLinkedError: If the source channel is not linked
            SourceNotEligibleError: If the source guild is banned or muted; its
                ``__cause__`` is the BannedGuildError or MutedGuildError behind it
        """
        located = self._links.lookup(event.channel_id)
        if located is None or event.guild_id is None or located[1] != event.guild_id:
            raise NotLinkedError()
        channel_id, source_guild = located

        if self._ledger.is_banned(channel_id, source_guild):
            raise SourceNotEligibleError() from BannedGuildError()
        if await self._ledger.is_muted(channel_id, source_guild):
            remaining = await self._ledger.remaining_mute_ms(channel_id, source_guild)
            raise SourceNotEligibleError() from MutedGuildError(remaining)

        body = display_format.build_relay_content(
            content, event.attachment_urls, self.max_content_length, self.max_attachments
        )
        if not body:
            return []

        channel = self._channels.get(channel_id)
        if channel is None:
            raise NotLinkedError()
        display = display_format.display_for(
            channel, event, member, self.default_prefix, self.default_suffix, self.max_display_name_length
        )

        targets = await self.destinations(channel_id, source_guild)
        outcomes = await asyncio.gather(
            *(self._deliver(guild_id, text_channel_id, display, body) for guild_id, text_channel_id in targets)
        )
        logger.debug(
            "[RELAY ROUTER] Relayed from %s in %s to %d/%d destinations",
            source_guild,
            channel_id,
            sum(1 for outcome in outcomes if outcome.delivered),
            len(outcomes),
        )
        return list(outcomes)

    async def _deliver(
        self, guild_id: GuildID, text_channel_id: ChannelID, display: DisplayIdentity, body: str
    ) -> RelayOutcome:
        try:
            await self._messenger.send(guild_id, text_channel_id, display.display_name, display.avatar_ref, body)
        except MessengerUnavailableError as exc:
            logger.warning("[RELAY ROUTER] Delivery to %s/%s failed: %s", guild_id, text_channel_id, exc.message)
            return RelayOutcome(guild_id, text_channel_id, False, ErrorKind.MESSENGER_UNAVAILABLE, exc.message)
        return RelayOutcome(guild_id, text_channel_id, True)
