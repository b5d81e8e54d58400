"""
ProxyService: command-level proxy operations.

Every public method returns an :class:`OperationResult`; errors raised by the
catalogue and the autoproxy engine are converted here and never escape.
Members can be referenced by id or by name as seen from the caller's scope.
"""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, TypeVar

from relaycord.datatypes.discord_datatypes import Scope, UserID
from relaycord.datatypes.event_datatypes import InboundEvent, ResolvedIdentity
from relaycord.datatypes.proxy_datatypes import AutoproxyMode, ProxyGroup, ProxyMember, ProxySettings, ProxyTag
from relaycord.datatypes.result_datatypes import (
    InvalidAutoproxyModeError,
    NotFoundError,
    OperationResult,
    RelaycordError,
)
from relaycord.proxy.autoproxy_engine import AutoproxyEngine
from relaycord.proxy.proxy_catalogue import ProxyCatalogue
from relaycord.util.logger import get_logger

logger = get_logger("proxy_service")

T = TypeVar("T")


async def _attempt(what: str, action: Callable[[], Awaitable[T]], message: str = "") -> OperationResult[T]:
    try:
        value = await action()
    except RelaycordError as exc:
        logger.debug("[PROXY SERVICE] %s failed: %s (%s)", what, exc.message, exc.kind)
        return OperationResult.failure(exc)
    return OperationResult.success(value, message)


class ProxyService:
    def __init__(self, catalogue: ProxyCatalogue, engine: AutoproxyEngine) -> None:
        self.catalogue = catalogue
        self.engine = engine

    def _member(self, owner_id: UserID, scope: Scope, reference: str) -> ProxyMember:
        member = self.catalogue.resolve(owner_id, scope, reference)
        if member is None:
            raise NotFoundError(f"No proxy member called '{reference}'.")
        return member

    def _group(self, owner_id: UserID, scope: Scope, reference: str) -> ProxyGroup:
        group = self.catalogue.get_group(reference.strip())
        if group is not None and group.owner_id == owner_id and group.scope.is_visible_in(scope):
            return group
        wanted = reference.strip().lower()
        for group in self.catalogue.list_groups(owner_id, scope):
            if group.name.lower() == wanted:
                return group
        raise NotFoundError(f"No proxy group called '{reference}'.")

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def create_member(
        self,
        owner_id: UserID,
        scope: Scope,
        name: str,
        display_name: Optional[str] = None,
        avatar_ref: Optional[str] = None,
        prefix: str = "",
        suffix: str = "",
    ) -> OperationResult[ProxyMember]:
        """Create a member, with a first tag when ``prefix`` or ``suffix`` is given."""
        tags = [ProxyTag(prefix or "", suffix or "")] if (prefix or suffix) else []
        return await _attempt(
            "create member",
            lambda: self.catalogue.create(owner_id, scope, name, display_name, avatar_ref, tags),
            f"Created proxy member **{name.strip()}**.",
        )

    async def edit_member(
        self, owner_id: UserID, scope: Scope, reference: str, field: str, value
    ) -> OperationResult[ProxyMember]:
        async def action() -> ProxyMember:
            member = self._member(owner_id, scope, reference)
            return await self.catalogue.edit(owner_id, member.member_id, field, value)

        return await _attempt("edit member", action, f"Updated {field}.")

    async def delete_member(self, owner_id: UserID, scope: Scope, reference: str) -> OperationResult[ProxyMember]:
        async def action() -> ProxyMember:
            member = self._member(owner_id, scope, reference)
            return await self.catalogue.delete(owner_id, member.member_id)

        return await _attempt("delete member", action)

    async def get_member(self, owner_id: UserID, scope: Scope, reference: str) -> OperationResult[ProxyMember]:
        async def action() -> ProxyMember:
            return self._member(owner_id, scope, reference)

        return await _attempt("get member", action)

    async def list_members(self, owner_id: UserID, scope: Scope) -> OperationResult[List[ProxyMember]]:
        members = self.catalogue.list_for_owner(owner_id, scope)
        return OperationResult.success(members, f"{len(members)} proxy member(s).")

    async def add_tag(
        self, owner_id: UserID, scope: Scope, reference: str, prefix: str = "", suffix: str = ""
    ) -> OperationResult[ProxyMember]:
        tag = ProxyTag(prefix or "", suffix or "")

        async def action() -> ProxyMember:
            member = self._member(owner_id, scope, reference)
            return await self.catalogue.add_tag(owner_id, member.member_id, tag)

        return await _attempt("add tag", action, f"Added tag `{tag}`.")

    async def remove_tag(
        self, owner_id: UserID, scope: Scope, reference: str, index: int
    ) -> OperationResult[ProxyTag]:
        """Remove the tag at ``index`` (0-based); out of range reports INVALID_INDEX and changes nothing."""
        async def action() -> ProxyTag:
            member = self._member(owner_id, scope, reference)
            return await self.catalogue.remove_tag(owner_id, member.member_id, index)

        return await _attempt("remove tag", action)

    # ------------------------------------------------------------------
    # Settings and fronting
    # ------------------------------------------------------------------

    async def view_settings(self, owner_id: UserID, scope: Scope) -> OperationResult[ProxySettings]:
        return await _attempt("view settings", lambda: self.engine.get_settings(owner_id, scope))

    async def update_settings(
        self,
        owner_id: UserID,
        scope: Scope,
        proxy_enabled: Optional[bool] = None,
        show_indicator: Optional[bool] = None,
        case_sensitive_tags: Optional[bool] = None,
    ) -> OperationResult[ProxySettings]:
        """Change the given toggles; None leaves a toggle as it is."""
        def apply(settings: ProxySettings) -> None:
            if proxy_enabled is not None:
                settings.proxy_enabled = proxy_enabled
            if show_indicator is not None:
                settings.show_indicator = show_indicator
            if case_sensitive_tags is not None:
                settings.case_sensitive_tags = case_sensitive_tags

        return await _attempt(
            "update settings",
            lambda: self.engine.update_settings(owner_id, scope, apply),
            "Proxy settings updated.",
        )

    async def set_autoproxy(
        self, owner_id: UserID, scope: Scope, mode: str, member_reference: Optional[str] = None
    ) -> OperationResult[ProxySettings]:
        """Set the autoproxy mode from its name (``off``, ``front``, ``latch``, ``member``, ``sticky``)."""
        async def action() -> ProxySettings:
            try:
                parsed = AutoproxyMode.parse(mode)
            except ValueError as exc:
                raise InvalidAutoproxyModeError(
                    f"Unknown autoproxy mode '{mode}'. Use off, front, latch, member or sticky."
                ) from exc
            member_id = None
            if parsed is AutoproxyMode.MEMBER:
                if not member_reference:
                    raise InvalidAutoproxyModeError("Member mode needs a member to pin.")
                member_id = self._member(owner_id, scope, member_reference).member_id
            return await self.engine.set_mode(owner_id, scope, parsed, member_id)

        return await _attempt("set autoproxy", action, f"Autoproxy set to {mode}.")

    async def switch(
        self, owner_id: UserID, scope: Scope, member_reference: Optional[str]
    ) -> OperationResult[ProxySettings]:
        """Switch to a member, or switch out when ``member_reference`` is None."""
        async def action() -> ProxySettings:
            member_id = None
            if member_reference:
                member_id = self._member(owner_id, scope, member_reference).member_id
            return await self.engine.switch(owner_id, scope, member_id)

        message = "Switched out." if not member_reference else f"Switched to {member_reference}."
        return await _attempt("switch", action, message)

    async def resolve_identity(self, event: InboundEvent) -> Optional[ResolvedIdentity]:
        """
        Identity an inbound message is sent as, or None for no proxy.

        Raises:
            StoreUnavailableError: If settings could not be loaded
        """
        return await self.engine.resolve(event)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def create_group(self, owner_id: UserID, scope: Scope, name: str) -> OperationResult[ProxyGroup]:
        return await _attempt(
            "create group",
            lambda: self.catalogue.create_group(owner_id, scope, name),
            f"Created group **{name.strip()}**.",
        )

    async def add_member_to_group(
        self, owner_id: UserID, scope: Scope, group_reference: str, member_reference: str
    ) -> OperationResult[ProxyMember]:
        async def action() -> ProxyMember:
            group = self._group(owner_id, scope, group_reference)
            member = self._member(owner_id, scope, member_reference)
            return await self.catalogue.add_member_to_group(owner_id, group.group_id, member.member_id)

        return await _attempt("add member to group", action)

    async def remove_member_from_group(
        self, owner_id: UserID, scope: Scope, member_reference: str
    ) -> OperationResult[ProxyMember]:
        async def action() -> ProxyMember:
            member = self._member(owner_id, scope, member_reference)
            return await self.catalogue.remove_member_from_group(owner_id, member.member_id)

        return await _attempt("remove member from group", action)

    async def delete_group(self, owner_id: UserID, scope: Scope, group_reference: str) -> OperationResult[ProxyGroup]:
        async def action() -> ProxyGroup:
            group = self._group(owner_id, scope, group_reference)
            return await self.catalogue.delete_group(owner_id, group.group_id)

        return await _attempt("delete group", action)

    async def list_groups(self, owner_id: UserID, scope: Scope) -> OperationResult[List[ProxyGroup]]:
        return OperationResult.success(self.catalogue.list_groups(owner_id, scope))
