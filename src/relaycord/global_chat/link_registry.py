"""
LinkRegistry: which text channel each guild has linked to a global chat channel.

A guild links at most one text channel per global chat channel, a text
channel belongs to at most one global chat channel, and a banned guild cannot
link until it is unbanned.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.result_datatypes import AlreadyLinkedError, BannedGuildError
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.util.logger import get_logger

logger = get_logger("link_registry")


class LinkRegistry:
    def __init__(self, channels: ChannelRegistry) -> None:
        self._channels = channels

    async def link(self, channel_id: str, guild_id: GuildID, text_channel_id: ChannelID) -> GlobalChatChannel:
        """
        Link ``text_channel_id`` of ``guild_id`` to the global chat channel.

        Raises:
            NotFoundError: If the channel does not exist
            BannedGuildError: If the guild is banned from the channel
            AlreadyLinkedError: If the guild already has a link here, or the text
                channel is linked to any global chat channel
        """
        async with self._channels.mutate(channel_id) as channel:
            if guild_id in channel.banned_guilds:
                raise BannedGuildError()
            if channel.is_linked(guild_id):
                raise AlreadyLinkedError("This server is already linked to that global chat channel.")
            if not self._channels.claim_text_channel(text_channel_id, channel_id):
                raise AlreadyLinkedError("That text channel is already linked to a global chat channel.")
            channel.linked_channels[guild_id] = text_channel_id
            snapshot = channel.copy()

        logger.info("[LINK REGISTRY] Linked %s/%s to %s", guild_id, text_channel_id, channel_id)
        return snapshot

    async def unlink(self, channel_id: str, guild_id: GuildID) -> Optional[ChannelID]:
        """Remove the guild's link. Unlinking an unlinked guild is a no-op returning None."""
        async with self._channels.locked(channel_id) as channel:
            removed = self.detach(channel, guild_id)

        if removed is not None:
            await self._channels.persist(channel_id)
            logger.info("[LINK REGISTRY] Unlinked %s from %s", guild_id, channel_id)
        return removed

    def detach(self, channel: GlobalChatChannel, guild_id: GuildID) -> Optional[ChannelID]:
        """Drop a guild's link from a channel whose lock the caller holds."""
        removed = channel.linked_channels.pop(guild_id, None)
        if removed is not None:
            self._channels.release_text_channel(removed, channel.channel_id)
        return removed

    def is_linked(self, channel_id: str, guild_id: GuildID) -> bool:
        channel = self._channels.get(channel_id)
        return channel is not None and channel.is_linked(guild_id)

    def destination_for(self, channel_id: str, guild_id: GuildID) -> Optional[ChannelID]:
        channel = self._channels.get(channel_id)
        if channel is None:
            return None
        return channel.linked_channels.get(guild_id)

    def linked_channels(self, channel_id: str) -> Dict[GuildID, ChannelID]:
        channel = self._channels.get(channel_id)
        return dict(channel.linked_channels) if channel is not None else {}

    def lookup(self, text_channel_id: ChannelID) -> Optional[Tuple[str, GuildID]]:
        """Reverse lookup: the global chat channel and guild a text channel is linked as."""
        channel_id = self._channels.channel_id_for_text_channel(text_channel_id)
        if channel_id is None:
            return None
        channel = self._channels.get(channel_id)
        if channel is None:
            return None
        guild_id = channel.guild_for_text_channel(text_channel_id)
        if guild_id is None:
            return None
        return channel_id, guild_id
