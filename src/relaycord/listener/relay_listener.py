"""Relay listener Cog for Relaycord.

Turns every eligible ``on_message`` event into an :class:`InboundEvent` and
runs it through the message pipeline: proxying first, then the global chat
relay.
"""

from typing import List, Optional

import discord
from discord.ext import commands

from relaycord.configuration.app_configuration import app_config
from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.event_datatypes import InboundEvent, PipelineOutcome
from relaycord.services.core import RelaycordCore
from relaycord.util.logger import get_logger

logger = get_logger("relay_listener_cog")


def should_process_message(message: discord.Message, ignored_prefixes: List[str]) -> bool:
    """
    Filter messages the pipeline never handles.

    Skips bots and webhooks (our own relayed copies included), DMs, thread
    messages and messages that look like commands.
    """
    if message.author.bot or message.webhook_id is not None:
        return False
    if message.guild is None:
        return False
    if isinstance(message.channel, discord.Thread):
        return False
    content = message.content or ""
    if any(content.startswith(prefix) for prefix in ignored_prefixes):
        return False
    return bool(content) or bool(message.attachments)


def pronouns_from_roles(member: Optional[discord.Member]) -> str:
    """Pronoun roles are the ones whose name contains a slash, e.g. ``she/her``."""
    if member is None:
        return ""
    return ", ".join(role.name for role in member.roles if "/" in role.name)


def to_inbound_event(message: discord.Message) -> InboundEvent:
    author = message.author
    member = author if isinstance(author, discord.Member) else None
    avatar = author.display_avatar.url if author.display_avatar else None
    return InboundEvent(
        author_id=UserID.from_user(author),
        guild_id=GuildID.from_guild(message.guild) if message.guild else None,
        channel_id=ChannelID.from_channel(message.channel),
        raw_text=message.content or "",
        timestamp=message.created_at,
        author_name=author.display_name,
        username=author.name,
        global_display_name=getattr(author, "global_name", None),
        avatar_ref=avatar,
        pronouns=pronouns_from_roles(member),
        server_name=message.guild.name if message.guild else None,
        attachment_urls=[attachment.url for attachment in message.attachments],
    )


class RelayListenerCog(commands.Cog):
    """Cog responsible for proxying and relaying new messages."""

    def __init__(self, discord_bot_instance, core: RelaycordCore):
        self.bot = discord_bot_instance
        self.core = core
        logger.info("[RELAY LISTENER] Relay listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        if not should_process_message(message, app_config.ignored_prefixes):
            return

        outcome = await self.core.pipeline.handle(to_inbound_event(message))
        if outcome.proxied:
            await self._delete_original(message)
        self._log_outcome(message, outcome)

    async def _delete_original(self, message: discord.Message) -> None:
        try:
            await message.delete()
        except discord.HTTPException as exc:
            logger.warning("[RELAY LISTENER] Could not delete proxied message %s: %s", message.id, exc)

    @staticmethod
    def _log_outcome(message: discord.Message, outcome: PipelineOutcome) -> None:
        failed = [relay for relay in outcome.relays if not relay.delivered]
        if failed:
            logger.warning(
                "[RELAY LISTENER] Message %s reached %d of %d destinations",
                message.id,
                len(outcome.relays) - len(failed),
                len(outcome.relays),
            )


def setup(discord_bot_instance, core: RelaycordCore):
    """Register the RelayListenerCog with the bot."""
    discord_bot_instance.add_cog(RelayListenerCog(discord_bot_instance, core))
