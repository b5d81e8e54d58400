"""
GlobalChatService: command-level global chat operations.

Role checks happen here (owner > co-owner > moderator). Moderation actions
post a plain-text notice into the affected guild's linked channel once the
state change is done; a failed notice is logged and never fails the action.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel, Visibility
from relaycord.datatypes.result_datatypes import (
    InvalidFieldError,
    InvalidKeyError,
    MessengerUnavailableError,
    NotFoundError,
    OperationResult,
    PermissionDeniedError,
    RelaycordError,
)
from relaycord.global_chat.channel_registry import ChannelRegistry, generate_channel_id, generate_join_key
from relaycord.global_chat.display_format import format_rules
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.global_chat.moderation_ledger import ModerationLedger
from relaycord.messaging.messenger import Messenger
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import Clock, format_duration, now_ms

logger = get_logger("global_chat_service")

T = TypeVar("T")

NO_REASON = "No reason provided."


async def _attempt(what: str, action: Callable[[], Awaitable[T]], message: str = "") -> OperationResult[T]:
    try:
        value = await action()
    except RelaycordError as exc:
        logger.debug("[GLOBAL CHAT SERVICE] %s failed: %s (%s)", what, exc.message, exc.kind)
        return OperationResult.failure(exc)
    return OperationResult.success(value, message)


class GlobalChatService:
    def __init__(
        self,
        channels: ChannelRegistry,
        links: LinkRegistry,
        ledger: ModerationLedger,
        messenger: Messenger,
        notice_display_name: str = "Global Chat",
        clock: Clock = now_ms,
    ) -> None:
        self.channels = channels
        self.links = links
        self.ledger = ledger
        self.messenger = messenger
        self.notice_display_name = notice_display_name
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _channel(self, channel_id: str) -> GlobalChatChannel:
        channel = self.channels.get(channel_id)
        if channel is None:
            raise NotFoundError(f"No global chat channel with id `{channel_id}`.")
        return channel

    def _require_owner(self, channel: GlobalChatChannel, actor_id: UserID) -> None:
        if not channel.is_owner(actor_id):
            raise PermissionDeniedError("Only the owner of this global chat channel can do that.")

    def _require_manage(self, channel: GlobalChatChannel, actor_id: UserID) -> None:
        if not channel.has_manage_access(actor_id):
            raise PermissionDeniedError("Only the owner or a co-owner can do that.")

    def _require_moderate(self, channel: GlobalChatChannel, actor_id: UserID) -> None:
        if not channel.has_moderate_access(actor_id):
            raise PermissionDeniedError()

    async def _notify(self, targets: Iterable[Tuple[GuildID, ChannelID]], text: str) -> None:
        for guild_id, text_channel_id in targets:
            try:
                await self.messenger.send(guild_id, text_channel_id, self.notice_display_name, None, text)
            except MessengerUnavailableError as exc:
                logger.warning(
                    "[GLOBAL CHAT SERVICE] Notice to %s/%s failed: %s", guild_id, text_channel_id, exc.message
                )

    # ------------------------------------------------------------------
    # Channel lifecycle
    # ------------------------------------------------------------------

    async def create_channel(
        self,
        owner_id: UserID,
        name: str,
        description: str = "",
        visibility: Visibility = Visibility.PUBLIC,
        key_required: bool = False,
        join_key: Optional[str] = None,
        message_prefix: Optional[str] = None,
        message_suffix: Optional[str] = None,
    ) -> OperationResult[GlobalChatChannel]:
        """Create a channel; a key-required channel without a key gets a generated one."""
        async def action() -> GlobalChatChannel:
            clean_name = (name or "").strip()
            if not clean_name:
                raise InvalidFieldError("A global chat channel needs a name.")
            key = join_key or None
            if key_required and key is None:
                key = generate_join_key()
            channel = GlobalChatChannel(
                channel_id=generate_channel_id(),
                name=clean_name,
                owner_id=owner_id,
                description=description or "",
                visibility=visibility,
                key_required=key_required,
                join_key=key,
                created_at=self._clock(),
                message_prefix=message_prefix,
                message_suffix=message_suffix,
            )
            return await self.channels.add(channel)

        return await _attempt("create channel", action, f"Created global chat channel **{name}**.")

    async def delete_channel(self, actor_id: UserID, channel_id: str) -> OperationResult[GlobalChatChannel]:
        async def action() -> GlobalChatChannel:
            self._require_owner(self._channel(channel_id), actor_id)
            return await self.channels.remove(channel_id)

        return await _attempt("delete channel", action)

    async def get_channel(self, channel_id: str) -> OperationResult[GlobalChatChannel]:
        async def action() -> GlobalChatChannel:
            return self._channel(channel_id)

        return await _attempt("get channel", action)

    def list_public_channels(self) -> List[GlobalChatChannel]:
        channels = [c for c in self.channels.all() if c.visibility is Visibility.PUBLIC]
        return sorted(channels, key=lambda c: (c.name.lower(), c.channel_id))

    def channels_managed_by(self, user_id: UserID) -> List[GlobalChatChannel]:
        channels = [c for c in self.channels.all() if c.has_manage_access(user_id)]
        return sorted(channels, key=lambda c: (c.name.lower(), c.channel_id))

    def channel_for_text_channel(self, text_channel_id: ChannelID) -> Optional[GlobalChatChannel]:
        located = self.links.lookup(text_channel_id)
        return self.channels.get(located[0]) if located is not None else None

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    async def link(
        self,
        channel_id: str,
        guild_id: GuildID,
        text_channel_id: ChannelID,
        key: Optional[str] = None,
    ) -> OperationResult[GlobalChatChannel]:
        """Link a guild's text channel; key-required channels need the join key."""
        async def action() -> GlobalChatChannel:
            channel = self._channel(channel_id)
            if channel.key_required and (not key or key != channel.join_key):
                raise InvalidKeyError()
            linked = await self.links.link(channel_id, guild_id, text_channel_id)
            if linked.rules:
                await self._notify(
                    [(guild_id, text_channel_id)],
                    f"**Rules for global chat channel {linked.name}:**\n{format_rules(linked.rules)}",
                )
            return linked

        return await _attempt("link", action, "Linked to the global chat channel.")

    async def unlink(self, channel_id: str, guild_id: GuildID) -> OperationResult[Optional[ChannelID]]:
        """Unlink a guild; unlinking a guild that is not linked succeeds and changes nothing."""
        return await _attempt("unlink", lambda: self.links.unlink(channel_id, guild_id), "Unlinked.")

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def ban(
        self, actor_id: UserID, channel_id: str, guild_id: GuildID, reason: Optional[str] = None
    ) -> OperationResult[None]:
        async def action() -> None:
            channel = self._channel(channel_id)
            self._require_manage(channel, actor_id)
            removed = await self.ledger.ban(channel_id, guild_id)
            if removed is not None:
                await self._notify(
                    [(guild_id, removed)],
                    f"This server has been **banned** from the global chat channel **{channel.name}**.\n"
                    f"Reason: {reason or NO_REASON}",
                )

        return await _attempt("ban", action, "Server banned.")

    async def unban(self, actor_id: UserID, channel_id: str, guild_id: GuildID) -> OperationResult[None]:
        async def action() -> None:
            self._require_manage(self._channel(channel_id), actor_id)
            await self.ledger.unban(channel_id, guild_id)

        return await _attempt("unban", action, "Server unbanned.")

    async def kick(
        self, actor_id: UserID, channel_id: str, guild_id: GuildID, reason: Optional[str] = None
    ) -> OperationResult[None]:
        async def action() -> None:
            channel = self._channel(channel_id)
            self._require_moderate(channel, actor_id)
            removed = await self.ledger.kick(channel_id, guild_id)
            await self._notify(
                [(guild_id, removed)],
                f"This server has been **kicked** from the global chat channel **{channel.name}**.\n"
                f"Reason: {reason or NO_REASON}",
            )

        return await _attempt("kick", action, "Server kicked.")

    async def mute(
        self,
        actor_id: UserID,
        channel_id: str,
        guild_id: GuildID,
        duration_ms: int = 0,
        reason: Optional[str] = None,
    ) -> OperationResult[int]:
        """Mute a linked guild; ``duration_ms`` of zero or less mutes permanently."""
        async def action() -> int:
            channel = self._channel(channel_id)
            self._require_moderate(channel, actor_id)
            until = await self.ledger.mute(channel_id, guild_id, duration_ms)
            duration = "permanently" if duration_ms <= 0 else f"for {format_duration(duration_ms)}"
            destination = self.links.destination_for(channel_id, guild_id)
            if destination is not None:
                await self._notify(
                    [(guild_id, destination)],
                    f"This server has been **muted** {duration} in the global chat channel **{channel.name}**.\n"
                    f"Reason: {reason or NO_REASON}",
                )
            return until

        return await _attempt("mute", action, "Server muted.")

    async def unmute(self, actor_id: UserID, channel_id: str, guild_id: GuildID) -> OperationResult[bool]:
        async def action() -> bool:
            channel = self._channel(channel_id)
            self._require_moderate(channel, actor_id)
            was_muted = await self.ledger.unmute(channel_id, guild_id)
            destination = self.links.destination_for(channel_id, guild_id)
            if was_muted and destination is not None:
                await self._notify(
                    [(guild_id, destination)],
                    f"This server has been **unmuted** in the global chat channel **{channel.name}**.",
                )
            return was_muted

        return await _attempt("unmute", action, "Server unmuted.")

    async def mute_status(self, channel_id: str, guild_id: GuildID) -> OperationResult[Optional[int]]:
        """Remaining mute in milliseconds; the result value is None for a permanent mute.

        Fails with NOT_FOUND when the guild is not muted.
        """
        async def action() -> Optional[int]:
            self._channel(channel_id)
            if not await self.ledger.is_muted(channel_id, guild_id):
                raise NotFoundError("That server is not muted.")
            return await self.ledger.remaining_mute_ms(channel_id, guild_id)

        return await _attempt("mute status", action)

    async def warn(
        self, actor_id: UserID, channel_id: str, guild_id: GuildID, reason: Optional[str] = None
    ) -> OperationResult[int]:
        async def action() -> int:
            channel = self._channel(channel_id)
            self._require_moderate(channel, actor_id)
            count = await self.ledger.warn(channel_id, guild_id, reason or NO_REASON)
            destination = self.links.destination_for(channel_id, guild_id)
            if destination is not None:
                await self._notify(
                    [(guild_id, destination)],
                    f"This server has received a **warning** in the global chat channel **{channel.name}**.\n"
                    f"Reason: {reason or NO_REASON}",
                )
            return count

        return await _attempt("warn", action, "Server warned.")

    async def unwarn(self, actor_id: UserID, channel_id: str, guild_id: GuildID) -> OperationResult[List[str]]:
        """Clear all warnings of a guild; the value is the cleared reasons."""
        async def action() -> List[str]:
            self._require_moderate(self._channel(channel_id), actor_id)
            return await self.ledger.unwarn(channel_id, guild_id)

        return await _attempt("unwarn", action, "Warnings cleared.")

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def _edit_roles(
        self, actor_id: UserID, channel_id: str, owner_only: bool, edit: Callable[[GlobalChatChannel], None]
    ) -> GlobalChatChannel:
        channel = self._channel(channel_id)
        if owner_only:
            self._require_owner(channel, actor_id)
        else:
            self._require_manage(channel, actor_id)
        async with self.channels.mutate(channel_id) as live:
            edit(live)
            snapshot = live.copy()
        return snapshot

    async def add_moderator(self, actor_id: UserID, channel_id: str, user_id: UserID) -> OperationResult[GlobalChatChannel]:
        return await _attempt(
            "add moderator",
            lambda: self._edit_roles(actor_id, channel_id, False, lambda c: c.moderator_ids.add(user_id)),
            "Moderator added.",
        )

    async def remove_moderator(
        self, actor_id: UserID, channel_id: str, user_id: UserID
    ) -> OperationResult[GlobalChatChannel]:
        return await _attempt(
            "remove moderator",
            lambda: self._edit_roles(actor_id, channel_id, False, lambda c: c.moderator_ids.discard(user_id)),
            "Moderator removed.",
        )

    async def add_co_owner(self, actor_id: UserID, channel_id: str, user_id: UserID) -> OperationResult[GlobalChatChannel]:
        return await _attempt(
            "add co-owner",
            lambda: self._edit_roles(actor_id, channel_id, True, lambda c: c.co_owner_ids.add(user_id)),
            "Co-owner added.",
        )

    async def remove_co_owner(
        self, actor_id: UserID, channel_id: str, user_id: UserID
    ) -> OperationResult[GlobalChatChannel]:
        return await _attempt(
            "remove co-owner",
            lambda: self._edit_roles(actor_id, channel_id, True, lambda c: c.co_owner_ids.discard(user_id)),
            "Co-owner removed.",
        )

    # ------------------------------------------------------------------
    # Rules and message format
    # ------------------------------------------------------------------

    async def set_rules(self, actor_id: UserID, channel_id: str, rules: Sequence[str]) -> OperationResult[List[str]]:
        """Replace the rules and announce them in every linked channel."""
        async def action() -> List[str]:
            self._require_manage(self._channel(channel_id), actor_id)
            cleaned = [rule.strip() for rule in rules if rule and rule.strip()]
            async with self.channels.mutate(channel_id) as live:
                live.rules = cleaned
                name = live.name
                targets = list(live.linked_channels.items())
            await self._notify(
                targets,
                f"The rules for global chat channel **{name}** have been updated:\n{format_rules(cleaned)}",
            )
            return cleaned

        return await _attempt("set rules", action, "Rules updated.")

    async def rules_text(self, channel_id: str) -> OperationResult[str]:
        async def action() -> str:
            return format_rules(self._channel(channel_id).rules)

        return await _attempt("rules", action)

    async def set_message_format(
        self,
        actor_id: UserID,
        channel_id: str,
        prefix: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> OperationResult[GlobalChatChannel]:
        """Set the display prefix and suffix; None restores a default, the empty string hides that side."""
        async def action() -> GlobalChatChannel:
            self._require_manage(self._channel(channel_id), actor_id)
            async with self.channels.mutate(channel_id) as live:
                live.message_prefix = prefix
                live.message_suffix = suffix
                snapshot = live.copy()
            return snapshot

        return await _attempt("set message format", action, "Message format updated.")
