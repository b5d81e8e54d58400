"""
Outbound message delivery.

The core depends on the :class:`Messenger` protocol only. The Discord
implementation posts through a channel webhook so the message can carry an
arbitrary display name and avatar.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional, Protocol

import aiohttp
import discord

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID
from relaycord.datatypes.result_datatypes import MessengerUnavailableError
from relaycord.util.logger import get_logger

logger = get_logger("messenger")


class Messenger(Protocol):
    """Sends one message into one destination channel, impersonating a name and avatar."""

    async def send(
        self,
        dest_guild: GuildID,
        dest_channel: ChannelID,
        display_name: str,
        avatar_ref: Optional[str],
        content: str,
    ) -> None: ...


class WebhookMessenger:
    """
    Messenger backed by Discord webhooks.

    One webhook per text channel is looked up (or created) on first use and
    cached. A webhook deleted behind our back is recreated once; any other
    Discord failure is reported as :class:`MessengerUnavailableError` for
    that destination.
    """

    def __init__(self, bot: discord.Client, webhook_name: str) -> None:
        self.bot = bot
        self.webhook_name = webhook_name
        self._webhooks: Dict[ChannelID, discord.Webhook] = {}
        self._locks: Dict[ChannelID, asyncio.Lock] = {}

    def _lock_for(self, channel_id: ChannelID) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[channel_id] = lock
        return lock

    async def _resolve_channel(self, channel_id: ChannelID) -> discord.TextChannel:
        channel = self.bot.get_channel(channel_id.to_int())
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id.to_int())
        if isinstance(channel, discord.Thread):
            channel = channel.parent
        if not isinstance(channel, discord.TextChannel):
            raise MessengerUnavailableError(f"Channel {channel_id} is not a text channel.")
        return channel

    async def _get_webhook(self, channel_id: ChannelID) -> discord.Webhook:
        async with self._lock_for(channel_id):
            cached = self._webhooks.get(channel_id)
            if cached is not None:
                return cached

            channel = await self._resolve_channel(channel_id)
            bot_user = self.bot.user
            webhook = None
            for existing in await channel.webhooks():
                if existing.name == self.webhook_name and (bot_user is None or existing.user == bot_user):
                    webhook = existing
                    break
            if webhook is None:
                webhook = await channel.create_webhook(name=self.webhook_name)
                logger.info("[MESSENGER] Created webhook %s in channel %s", self.webhook_name, channel_id)

            self._webhooks[channel_id] = webhook
            return webhook

    def forget(self, channel_id: ChannelID) -> None:
        """Drop the cached webhook of a channel."""
        self._webhooks.pop(channel_id, None)

    async def send(
        self,
        dest_guild: GuildID,
        dest_channel: ChannelID,
        display_name: str,
        avatar_ref: Optional[str],
        content: str,
    ) -> None:
        try:
            try:
                await self._deliver(dest_channel, display_name, avatar_ref, content)
            except discord.NotFound:
                # Cached webhook was deleted; recreate it once
                self.forget(dest_channel)
                await self._deliver(dest_channel, display_name, avatar_ref, content)
        except discord.Forbidden as exc:
            logger.warning("[MESSENGER] Missing permissions in %s/%s: %s", dest_guild, dest_channel, exc)
            raise MessengerUnavailableError(
                f"Missing the Manage Webhooks permission in channel {dest_channel}."
            ) from exc
        except discord.HTTPException as exc:
            logger.warning("[MESSENGER] Delivery to %s/%s failed: %s", dest_guild, dest_channel, exc)
            raise MessengerUnavailableError() from exc
        except (aiohttp.ClientError, asyncio.TimeoutError, discord.ClientException) as exc:
            logger.warning(
                "[MESSENGER] Delivery to %s/%s failed: %s: %s", dest_guild, dest_channel, type(exc).__name__, exc
            )
            raise MessengerUnavailableError() from exc

    async def _deliver(
        self,
        dest_channel: ChannelID,
        display_name: str,
        avatar_ref: Optional[str],
        content: str,
    ) -> None:
        webhook = await self._get_webhook(dest_channel)
        kwargs = {
            "content": content,
            "username": display_name,
            "allowed_mentions": discord.AllowedMentions.none(),
        }
        if avatar_ref:
            kwargs["avatar_url"] = avatar_ref
        await webhook.send(**kwargs)
