"""
AutoproxyEngine: per-(owner, scope) proxy settings and identity resolution.

For every inbound message the engine decides whether it is sent as a proxy
member and as which one:

1. ``proxy_enabled`` off means no proxy at all.
2. An explicit tag match wins and always records the member as the last
   proxied one.
3. Otherwise the autoproxy mode picks, one resolver per mode. Only STICKY
   records the member it picked itself.

Settings are created lazily: a cache miss asks the Store, and falls back to
defaults that are only persisted once something changes.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.event_datatypes import InboundEvent, ResolutionSource, ResolvedIdentity
from relaycord.datatypes.proxy_datatypes import AutoproxyMode, ProxyMember, ProxySettings
from relaycord.datatypes.result_datatypes import InvalidAutoproxyModeError, NotFoundError
from relaycord.proxy import tag_matcher
from relaycord.proxy.proxy_catalogue import ProxyCatalogue
from relaycord.store.store import Store
from relaycord.util.keyed_locks import KeyedLocks
from relaycord.util.logger import get_logger
from relaycord.util.time_utils import utc_now

logger = get_logger("autoproxy_engine")

SettingsKey = Tuple[str, str]


def _key(owner_id: UserID, scope: Scope) -> SettingsKey:
    return (str(owner_id), scope.key)


class AutoproxyEngine:
    """Owns every ProxySettings record and resolves the acting identity of messages."""

    def __init__(self, store: Store, catalogue: ProxyCatalogue) -> None:
        self._store = store
        self._catalogue = catalogue
        self._settings: Dict[SettingsKey, ProxySettings] = {}
        self._key_locks: KeyedLocks[SettingsKey] = KeyedLocks()
        self._persist_locks: KeyedLocks[SettingsKey] = KeyedLocks()
        self._resolvers: Dict[AutoproxyMode, Callable[[ProxySettings], Optional[ProxyMember]]] = {
            AutoproxyMode.OFF: self._resolve_off,
            AutoproxyMode.FRONT: self._resolve_front,
            AutoproxyMode.MEMBER: self._resolve_member,
            AutoproxyMode.STICKY: self._resolve_sticky,
        }

    def _lock_for(self, key: SettingsKey):
        return self._key_locks.hold(key)

    def _persist_lock_for(self, key: SettingsKey):
        return self._persist_locks.hold(key)

    # ------------------------------------------------------------------
    # Settings access
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Fill the cache with every persisted settings record."""
        records = await self._store.load_all_settings()
        self._settings = {_key(s.owner_id, s.scope): s for s in records}
        logger.info("[AUTOPROXY ENGINE] Loaded %d settings records", len(self._settings))

    async def _settings_locked(self, owner_id: UserID, scope: Scope) -> ProxySettings:
        """Cached settings for the key; caller must hold the key's lock."""
        key = _key(owner_id, scope)
        settings = self._settings.get(key)
        if settings is None:
            settings = await self._store.load_settings(owner_id, scope)
            if settings is None:
                settings = ProxySettings(owner_id=owner_id, scope=scope)
            self._settings[key] = settings
        return settings

    async def _persist(self, key: SettingsKey) -> None:
        async with self._persist_lock_for(key):
            current = self._settings.get(key)
            if current is not None:
                await self._store.save_settings(current.copy())

    async def get_settings(self, owner_id: UserID, scope: Scope) -> ProxySettings:
        async with self._lock_for(_key(owner_id, scope)):
            settings = await self._settings_locked(owner_id, scope)
            return settings.copy()

    async def update_settings(
        self, owner_id: UserID, scope: Scope, mutate: Callable[[ProxySettings], None]
    ) -> ProxySettings:
        """Apply ``mutate`` to the settings under their lock, then persist."""
        key = _key(owner_id, scope)
        async with self._lock_for(key):
            settings = await self._settings_locked(owner_id, scope)
            mutate(settings)
            settings.touch()
            snapshot = settings.copy()

        await self._persist(key)
        return snapshot

    async def set_mode(
        self, owner_id: UserID, scope: Scope, mode: AutoproxyMode, member_id: Optional[str] = None
    ) -> ProxySettings:
        """
        Change the autoproxy mode.

        Raises:
            InvalidAutoproxyModeError: MEMBER mode without a member
            NotFoundError: The member does not exist or is not usable here
        """
        if mode is AutoproxyMode.MEMBER:
            if member_id is None:
                raise InvalidAutoproxyModeError("Member mode needs a member to pin.")
            if self._catalogue.is_usable(member_id, owner_id, scope) is None:
                raise NotFoundError(f"No proxy member with id `{member_id}`.")

        def apply(settings: ProxySettings) -> None:
            settings.autoproxy_mode = mode
            settings.autoproxy_member_id = member_id if mode is AutoproxyMode.MEMBER else None

        return await self.update_settings(owner_id, scope, apply)

    async def switch(self, owner_id: UserID, scope: Scope, member_id: Optional[str]) -> ProxySettings:
        """Set or clear the current fronter regardless of mode."""
        if member_id is not None and self._catalogue.is_usable(member_id, owner_id, scope) is None:
            raise NotFoundError(f"No proxy member with id `{member_id}`.")

        def apply(settings: ProxySettings) -> None:
            settings.last_proxied_member_id = member_id
            settings.last_switch_time = utc_now() if member_id is not None else None

        return await self.update_settings(owner_id, scope, apply)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, event: InboundEvent) -> Optional[ResolvedIdentity]:
        """Return the identity ``event`` is sent as, or None for no proxy."""
        owner_id = event.author_id
        scope = event.scope
        key = _key(owner_id, scope)
        changed = False

        async with self._lock_for(key):
            settings = await self._settings_locked(owner_id, scope)
            if not settings.proxy_enabled:
                return None

            identity = self._match_tags(event, settings)
            if identity is not None:
                self._record_use(settings, identity.member)
                changed = True
            else:
                member = self._resolvers[settings.autoproxy_mode](settings)
                if member is None:
                    return None
                identity = ResolvedIdentity(member=member, content=event.raw_text, source=ResolutionSource.AUTOPROXY)
                if settings.autoproxy_mode is AutoproxyMode.STICKY:
                    self._record_use(settings, member)
                    changed = True

        if changed:
            await self._persist(key)
        return identity

    def _match_tags(self, event: InboundEvent, settings: ProxySettings) -> Optional[ResolvedIdentity]:
        for member in self._catalogue.list_for_owner(event.author_id, event.scope):
            found = tag_matcher.match(event.raw_text, member.tags, settings.case_sensitive_tags)
            if found is None:
                continue
            content = event.raw_text if member.keep_proxy_text else found.content
            return ResolvedIdentity(
                member=member,
                content=content,
                source=ResolutionSource.TAG,
                tag_index=found.tag_index,
            )
        return None

    @staticmethod
    def _record_use(settings: ProxySettings, member: ProxyMember) -> None:
        settings.last_proxied_member_id = member.member_id
        settings.last_switch_time = utc_now()
        settings.touch()

    def _usable(self, member_id: Optional[str], settings: ProxySettings) -> Optional[ProxyMember]:
        return self._catalogue.is_usable(member_id, settings.owner_id, settings.scope)

    def _resolve_off(self, settings: ProxySettings) -> Optional[ProxyMember]:
        return None

    def _resolve_front(self, settings: ProxySettings) -> Optional[ProxyMember]:
        return self._usable(settings.last_proxied_member_id, settings)

    def _resolve_member(self, settings: ProxySettings) -> Optional[ProxyMember]:
        member = self._usable(settings.autoproxy_member_id, settings)
        if member is None:
            logger.warning(
                "[AUTOPROXY ENGINE] Member mode for %s in %s points at missing member %s",
                settings.owner_id,
                settings.scope,
                settings.autoproxy_member_id,
            )
        return member

    def _resolve_sticky(self, settings: ProxySettings) -> Optional[ProxyMember]:
        return self._usable(settings.last_proxied_member_id, settings)
