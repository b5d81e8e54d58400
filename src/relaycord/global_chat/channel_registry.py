"""
ChannelRegistry: in-memory owner of every GlobalChatChannel.

Each channel has its own lock; link and moderation changes to one channel go
through :meth:`ChannelRegistry.mutate`, which hands out the live record under
that lock and persists the latest snapshot once the lock is released. A
reverse index maps every linked text channel to its global chat channel.
"""

from __future__ import annotations

import secrets
import string
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from relaycord.datatypes.discord_datatypes import ChannelID
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.result_datatypes import NotFoundError
from relaycord.store.store import Store
from relaycord.util.keyed_locks import KeyedLocks
from relaycord.util.logger import get_logger

logger = get_logger("channel_registry")

CHANNEL_ID_PREFIX = "gc-"
_ID_ALPHABET = string.ascii_lowercase + string.digits
_KEY_ALPHABET = string.ascii_letters + string.digits


def generate_channel_id() -> str:
    return CHANNEL_ID_PREFIX + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


def generate_join_key() -> str:
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(6))


class ChannelRegistry:
    """Owns global chat channels, their locks and the text channel index."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._channels: Dict[str, GlobalChatChannel] = {}
        self._by_text_channel: Dict[ChannelID, str] = {}
        self._channel_locks: KeyedLocks[str] = KeyedLocks()
        self._persist_locks: KeyedLocks[str] = KeyedLocks()

    def _lock_for(self, channel_id: str):
        return self._channel_locks.hold(channel_id)

    def _persist_lock_for(self, channel_id: str):
        return self._persist_locks.hold(channel_id)

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        channels = await self._store.load_all_global_chat_channels()
        self._channels = {channel.channel_id: channel for channel in channels}
        self._by_text_channel = {}
        for channel in channels:
            for text_channel_id in channel.linked_channels.values():
                if not self.claim_text_channel(text_channel_id, channel.channel_id):
                    logger.warning(
                        "[CHANNEL REGISTRY] Text channel %s linked twice, keeping the first link",
                        text_channel_id,
                    )
        logger.info("[CHANNEL REGISTRY] Loaded %d global chat channels", len(self._channels))

    async def persist(self, channel_id: str) -> None:
        """Write the current in-memory state of a channel, or delete it if gone."""
        async with self._persist_lock_for(channel_id):
            current = self._channels.get(channel_id)
            if current is None:
                await self._store.delete_global_chat_channel(channel_id)
            else:
                await self._store.save_global_chat_channel(current.copy())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, channel_id: str) -> Optional[GlobalChatChannel]:
        channel = self._channels.get(channel_id)
        return channel.copy() if channel is not None else None

    def all(self) -> List[GlobalChatChannel]:
        return [channel.copy() for channel in self._channels.values()]

    def channel_id_for_text_channel(self, text_channel_id: ChannelID) -> Optional[str]:
        return self._by_text_channel.get(text_channel_id)

    # ------------------------------------------------------------------
    # Text channel index
    # ------------------------------------------------------------------

    def claim_text_channel(self, text_channel_id: ChannelID, channel_id: str) -> bool:
        """Record ``text_channel_id`` as linked to ``channel_id``; False if it belongs elsewhere."""
        owner = self._by_text_channel.get(text_channel_id)
        if owner is not None and owner != channel_id:
            return False
        self._by_text_channel[text_channel_id] = channel_id
        return True

    def release_text_channel(self, text_channel_id: ChannelID, channel_id: str) -> None:
        if self._by_text_channel.get(text_channel_id) == channel_id:
            del self._by_text_channel[text_channel_id]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, channel: GlobalChatChannel) -> GlobalChatChannel:
        """Register a new channel, regenerating its id on the rare collision."""
        while channel.channel_id in self._channels:
            channel.channel_id = generate_channel_id()
        self._channels[channel.channel_id] = channel
        snapshot = channel.copy()
        await self.persist(channel.channel_id)
        logger.info("[CHANNEL REGISTRY] Created global chat channel %s (%s)", channel.name, channel.channel_id)
        return snapshot

    async def remove(self, channel_id: str) -> GlobalChatChannel:
        async with self._lock_for(channel_id):
            channel = self._channels.pop(channel_id, None)
            if channel is None:
                raise NotFoundError(f"No global chat channel with id `{channel_id}`.")
            for text_channel_id in channel.linked_channels.values():
                self.release_text_channel(text_channel_id, channel_id)

        await self.persist(channel_id)
        logger.info("[CHANNEL REGISTRY] Deleted global chat channel %s", channel_id)
        return channel

    @asynccontextmanager
    async def mutate(self, channel_id: str) -> AsyncIterator[GlobalChatChannel]:
        """
        Yield the live channel under its lock, then persist after the lock is released.

        Raises:
            NotFoundError: If the channel does not exist
        """
        async with self._lock_for(channel_id):
            channel = self._channels.get(channel_id)
            if channel is None:
                raise NotFoundError(f"No global chat channel with id `{channel_id}`.")
            yield channel
        await self.persist(channel_id)

    @asynccontextmanager
    async def locked(self, channel_id: str) -> AsyncIterator[GlobalChatChannel]:
        """Like :meth:`mutate` but without persisting; callers persist when they changed something."""
        async with self._lock_for(channel_id):
            channel = self._channels.get(channel_id)
            if channel is None:
                raise NotFoundError(f"No global chat channel with id `{channel_id}`.")
            yield channel
