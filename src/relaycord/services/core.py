"""
Wiring of the registries, engines and services around one Store and the Messengers.
"""

from __future__ import annotations

from typing import Optional

from relaycord.configuration.app_configuration import AppConfig, app_config
from relaycord.global_chat.channel_registry import ChannelRegistry
from relaycord.global_chat.link_registry import LinkRegistry
from relaycord.global_chat.moderation_ledger import ModerationLedger
from relaycord.global_chat.relay_router import RelayRouter
from relaycord.messaging.messenger import Messenger
from relaycord.proxy.autoproxy_engine import AutoproxyEngine
from relaycord.proxy.proxy_catalogue import ProxyCatalogue
from relaycord.services.global_chat_service import GlobalChatService
from relaycord.services.message_pipeline import MessagePipeline
from relaycord.services.proxy_service import ProxyService
from relaycord.store.store import Store
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import Clock, now_ms

logger = get_logger("core")


class RelaycordCore:
    """
    Owns every in-memory registry of the process.

    ``messenger`` delivers relayed messages and notices; ``proxy_messenger``
    re-posts proxied messages in their own channel and defaults to
    ``messenger``.
    """

    def __init__(
        self,
        store: Store,
        messenger: Messenger,
        proxy_messenger: Optional[Messenger] = None,
        clock: Clock = now_ms,
        config: AppConfig = app_config,
    ) -> None:
        self.store = store
        self.clock = clock

        self.catalogue = ProxyCatalogue(store)
        self.autoproxy = AutoproxyEngine(store, self.catalogue)
        self.proxy_service = ProxyService(self.catalogue, self.autoproxy)

        self.channels = ChannelRegistry(store)
        self.links = LinkRegistry(self.channels)
        self.ledger = ModerationLedger(self.channels, self.links, clock)
        self.router = RelayRouter(
            self.channels,
            self.links,
            self.ledger,
            messenger,
            default_prefix=config.default_message_prefix,
            default_suffix=config.default_message_suffix,
            max_display_name_length=config.max_display_name_length,
            max_content_length=config.max_content_length,
            max_attachments=config.max_attachments,
        )
        self.global_chat_service = GlobalChatService(
            self.channels,
            self.links,
            self.ledger,
            messenger,
            notice_display_name=config.notice_display_name,
            clock=clock,
        )
        self.pipeline = MessagePipeline(
            self.proxy_service,
            self.router,
            proxy_messenger or messenger,
            indicator_text=config.proxy_indicator_text,
        )

    async def load(self) -> None:
        """Fill every registry from the Store."""
        await self.catalogue.load()
        await self.autoproxy.load()
        await self.channels.load()
        logger.info("[CORE] Registries loaded")
