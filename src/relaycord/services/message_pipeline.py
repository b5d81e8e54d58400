"""
MessagePipeline: everything that happens to one inbound message.

1. Resolve the proxy identity (tag match or autoproxy)
2. If proxied, re-post the message in its own channel as the member
3. If the channel is linked to a global chat channel, relay it to the other
   guilds, as the member when proxied and as the author otherwise
"""

from __future__ import annotations

from relaycord.datatypes.event_datatypes import InboundEvent, PipelineOutcome, ResolvedIdentity
from relaycord.datatypes.result_datatypes import MessengerUnavailableError, RelaycordError
from relaycord.global_chat.display_format import build_relay_content
from relaycord.global_chat.relay_router import RelayRouter
from relaycord.messaging.messenger import Messenger
from relaycord.services.proxy_service import ProxyService
from relaycord.util.logger import get_logger

logger = get_logger("message_pipeline")


class MessagePipeline:
    def __init__(
        self,
        proxy_service: ProxyService,
        router: RelayRouter,
        proxy_messenger: Messenger,
        indicator_text: str = " `[proxied]`",
    ) -> None:
        self.proxy_service = proxy_service
        self.router = router
        self.proxy_messenger = proxy_messenger
        self.indicator_text = indicator_text

    async def handle(self, event: InboundEvent) -> PipelineOutcome:
        outcome = PipelineOutcome()
        if event.guild_id is None:
            # Webhooks only exist in guild channels
            return outcome

        identity = await self._resolve(event)
        if identity is not None:
            outcome.identity = identity
            outcome.proxied = await self._post_proxied(event, identity)

        if not self.router.is_linked_text_channel(event.channel_id):
            return outcome

        member = identity.member if outcome.proxied else None
        content = identity.content if outcome.proxied else event.raw_text
        try:
            outcome.relays = await self.router.route(event, content, member)
        except RelaycordError as exc:
            reason = exc.__cause__ if isinstance(exc.__cause__, RelaycordError) else exc
            logger.debug("[MESSAGE PIPELINE] Relay from %s skipped: %s", event.channel_id, reason.message)
            outcome.relay_error = exc.kind
            outcome.relay_message = reason.message
            outcome.relay_detail = getattr(reason, "remaining_ms", None)
        return outcome

    async def _resolve(self, event: InboundEvent):
        try:
            identity = await self.proxy_service.resolve_identity(event)
        except RelaycordError as exc:
            logger.warning("[MESSAGE PIPELINE] Identity resolution for %s failed: %s", event.author_id, exc.message)
            return None
        if identity is not None and not identity.content and not event.attachment_urls:
            return None
        return identity

    async def _post_proxied(self, event: InboundEvent, identity: ResolvedIdentity) -> bool:
        content = identity.content
        settings = await self.proxy_service.view_settings(event.author_id, event.scope)
        if settings.ok and settings.value.show_indicator:
            content = f"{content}{self.indicator_text}"

        body = build_relay_content(content, event.attachment_urls)
        member = identity.member
        try:
            await self.proxy_messenger.send(
                event.guild_id, event.channel_id, member.effective_display_name, member.avatar_ref, body
            )
        except MessengerUnavailableError as exc:
            logger.warning("[MESSAGE PIPELINE] Proxying as %s failed: %s", member.member_id, exc.message)
            return False

        logger.debug("[MESSAGE PIPELINE] Proxied message of %s as %s", event.author_id, member.member_id)
        return True
