"""
ModerationLedger: per (global chat channel, guild) moderation state.

- ban: adds the guild to the banned set and removes its link; blocks relinking until unban
- kick: removes the link; the guild may link again right away
- mute: relaying from the guild stops until the deadline (0 means permanent)
- warn: appends a reason to the guild's warnings; unwarn clears them all

Bans, mutes and warnings are independent: a ban leaves an existing mute in
place, so it still applies after an unban.

Mute expiry is lazy: the first read after the deadline removes the entry
under the channel lock, so exactly one caller evicts it and every later
caller sees the guild as unmuted.
"""

from __future__ import annotations

from typing import List, Optional

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.result_datatypes import NotBannedError, NotLinkedError
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import Clock, now_ms

logger = get_logger("moderation_ledger")

PERMANENT = 0


class ModerationLedger:
    def __init__(self, channels: ChannelRegistry, links: LinkRegistry, clock: Clock = now_ms) -> None:
        self._channels = channels
        self._links = links
        self._clock = clock

    def _require_linked(self, channel: GlobalChatChannel, guild_id: GuildID) -> None:
        if not channel.is_linked(guild_id):
            raise NotLinkedError()

    def _expired(self, until: int) -> bool:
        return until != PERMANENT and self._clock() >= until

    # ------------------------------------------------------------------
    # Bans and kicks
    # ------------------------------------------------------------------

    async def ban(self, channel_id: str, guild_id: GuildID) -> Optional[ChannelID]:
        """Ban a guild; returns the text channel it was linked with, if any."""
        async with self._channels.mutate(channel_id) as channel:
            channel.banned_guilds.add(guild_id)
            removed = self._links.detach(channel, guild_id)

        logger.info("[MODERATION LEDGER] Banned %s from %s", guild_id, channel_id)
        return removed

    async def unban(self, channel_id: str, guild_id: GuildID) -> None:
        async with self._channels.mutate(channel_id) as channel:
            if guild_id not in channel.banned_guilds:
                raise NotBannedError()
            channel.banned_guilds.discard(guild_id)

        logger.info("[MODERATION LEDGER] Unbanned %s from %s", guild_id, channel_id)

    def is_banned(self, channel_id: str, guild_id: GuildID) -> bool:
        channel = self._channels.get(channel_id)
        return channel is not None and guild_id in channel.banned_guilds

    async def kick(self, channel_id: str, guild_id: GuildID) -> ChannelID:
        """Remove a linked guild; returns the text channel it was linked with."""
        async with self._channels.mutate(channel_id) as channel:
            self._require_linked(channel, guild_id)
            removed = self._links.detach(channel, guild_id)
            channel.kicked_guilds.add(guild_id)

        logger.info("[MODERATION LEDGER] Kicked %s from %s", guild_id, channel_id)
        return removed

    # ------------------------------------------------------------------
    # Mutes
    # ------------------------------------------------------------------

    async def mute(self, channel_id: str, guild_id: GuildID, duration_ms: int) -> int:
        """
        Mute a linked guild for ``duration_ms``; zero or negative means permanent.

        Returns the unmute deadline in epoch milliseconds (0 for permanent).
        A second mute overwrites the first.
        """
        until = PERMANENT if duration_ms <= 0 else self._clock() + duration_ms
        async with self._channels.mutate(channel_id) as channel:
            self._require_linked(channel, guild_id)
            channel.muted_guilds[guild_id] = until

        logger.info("[MODERATION LEDGER] Muted %s in %s until %s", guild_id, channel_id, until or "forever")
        return until

    async def unmute(self, channel_id: str, guild_id: GuildID) -> bool:
        """Lift a mute. Returns False when the guild was not muted."""
        async with self._channels.locked(channel_id) as channel:
            was_muted = channel.muted_guilds.pop(guild_id, None) is not None

        if was_muted:
            await self._channels.persist(channel_id)
            logger.info("[MODERATION LEDGER] Unmuted %s in %s", guild_id, channel_id)
        return was_muted

    async def muted_until(self, channel_id: str, guild_id: GuildID) -> Optional[int]:
        """
        Return the mute deadline of a guild, 0 for permanent, None when not muted.

        An expired mute is removed here.
        """
        expired = False
        async with self._channels.locked(channel_id) as channel:
            until = channel.muted_guilds.get(guild_id)
            if until is not None and self._expired(until):
                del channel.muted_guilds[guild_id]
                expired = True
                until = None

        if expired:
            logger.debug("[MODERATION LEDGER] Mute of %s in %s expired", guild_id, channel_id)
            await self._channels.persist(channel_id)
        return until

    async def is_muted(self, channel_id: str, guild_id: GuildID) -> bool:
        return await self.muted_until(channel_id, guild_id) is not None

    async def remaining_mute_ms(self, channel_id: str, guild_id: GuildID) -> Optional[int]:
        """Milliseconds left on a timed mute; None if permanent or not muted."""
        until = await self.muted_until(channel_id, guild_id)
        if until is None or until == PERMANENT:
            return None
        return max(0, until - self._clock())

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    async def warn(self, channel_id: str, guild_id: GuildID, reason: str) -> int:
        """Record a warning; returns the guild's warning count."""
        async with self._channels.mutate(channel_id) as channel:
            self._require_linked(channel, guild_id)
            reasons = channel.warnings.setdefault(guild_id, [])
            reasons.append(reason)
            count = len(reasons)

        logger.info("[MODERATION LEDGER] Warned %s in %s (%d total)", guild_id, channel_id, count)
        return count

    async def unwarn(self, channel_id: str, guild_id: GuildID) -> List[str]:
        """Clear every warning of a guild; returns the cleared reasons (empty when there were none)."""
        async with self._channels.locked(channel_id) as channel:
            removed = channel.warnings.pop(guild_id, None) or []

        if removed:
            await self._channels.persist(channel_id)
            logger.info("[MODERATION LEDGER] Cleared %d warning(s) of %s in %s", len(removed), guild_id, channel_id)
        return removed

    def warnings(self, channel_id: str, guild_id: GuildID) -> List[str]:
        channel = self._channels.get(channel_id)
        if channel is None:
            return []
        return list(channel.warnings.get(guild_id, []))

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    async def is_eligible(self, channel_id: str, guild_id: GuildID) -> bool:
        """Linked and neither banned nor muted."""
        if not self._links.is_linked(channel_id, guild_id) or self.is_banned(channel_id, guild_id):
            return False
        return not await self.is_muted(channel_id, guild_id)
