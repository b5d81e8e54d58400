"""
Error kinds, the internal exception tree and the typed operation result.

Registries and engines raise :class:`RelaycordError` subclasses. The public
service operations catch them and return an :class:`OperationResult`, so no
exception from this module ever crosses a service boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from relaycord.util.time_utils import format_duration

T = TypeVar("T")


class ErrorKind(Enum):
    """Enumeration of every failure a public operation can report."""

    NOT_FOUND = "not_found"
    DUPLICATE_NAME = "duplicate_name"
    ALREADY_LINKED = "already_linked"
    NOT_LINKED = "not_linked"
    INVALID_INDEX = "invalid_index"
    INVALID_TAG = "invalid_tag"
    INVALID_FIELD = "invalid_field"
    INVALID_AUTOPROXY_MODE = "invalid_autoproxy_mode"
    INVALID_KEY = "invalid_key"
    BANNED_GUILD = "banned_guild"
    NOT_BANNED = "not_banned"
    MUTED_GUILD = "muted_guild"
    SOURCE_NOT_ELIGIBLE = "source_not_eligible"
    PERMISSION_DENIED = "permission_denied"
    STORE_UNAVAILABLE = "store_unavailable"
    MESSENGER_UNAVAILABLE = "messenger_unavailable"

    def __str__(self) -> str:
        return self.value


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "The requested item could not be found.",
    ErrorKind.DUPLICATE_NAME: "You already have a proxy member with that name here.",
    ErrorKind.ALREADY_LINKED: "That server or channel is already linked to a global chat channel.",
    ErrorKind.NOT_LINKED: "That server or channel is not linked to this global chat channel.",
    ErrorKind.INVALID_INDEX: "There is no proxy tag at that position.",
    ErrorKind.INVALID_TAG: "A proxy tag needs a prefix, a suffix, or both.",
    ErrorKind.INVALID_FIELD: "That field cannot be edited.",
    ErrorKind.INVALID_AUTOPROXY_MODE: "That autoproxy mode is not valid, or the member mode has no member.",
    ErrorKind.INVALID_KEY: "Invalid or missing key for this global chat channel.",
    ErrorKind.BANNED_GUILD: "This server is banned from this global chat channel.",
    ErrorKind.NOT_BANNED: "That server is not banned.",
    ErrorKind.MUTED_GUILD: "This server is muted in this global chat channel.",
    ErrorKind.SOURCE_NOT_ELIGIBLE: "Messages from this server are not relayed right now.",
    ErrorKind.PERMISSION_DENIED: "You do not have permission to do that in this global chat channel.",
    ErrorKind.STORE_UNAVAILABLE: "Storage is unavailable; the change may not have been saved.",
    ErrorKind.MESSENGER_UNAVAILABLE: "The message could not be delivered to that channel.",
}


class RelaycordError(Exception):
    """Base class of every error raised inside the relay and proxy core."""

    kind: ErrorKind = ErrorKind.NOT_FOUND

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or ERROR_MESSAGES[self.kind]
        super().__init__(self.message)


class NotFoundError(RelaycordError):
    kind = ErrorKind.NOT_FOUND


class DuplicateNameError(RelaycordError):
    kind = ErrorKind.DUPLICATE_NAME


class AlreadyLinkedError(RelaycordError):
    kind = ErrorKind.ALREADY_LINKED


class NotLinkedError(RelaycordError):
    kind = ErrorKind.NOT_LINKED


class InvalidIndexError(RelaycordError):
    kind = ErrorKind.INVALID_INDEX


class InvalidTagError(RelaycordError):
    kind = ErrorKind.INVALID_TAG


class InvalidFieldError(RelaycordError):
    kind = ErrorKind.INVALID_FIELD


class InvalidAutoproxyModeError(RelaycordError):
    kind = ErrorKind.INVALID_AUTOPROXY_MODE


class InvalidKeyError(RelaycordError):
    kind = ErrorKind.INVALID_KEY


class BannedGuildError(RelaycordError):
    kind = ErrorKind.BANNED_GUILD


class NotBannedError(RelaycordError):
    kind = ErrorKind.NOT_BANNED


class MutedGuildError(RelaycordError):
    """Raised for a muted guild; ``remaining_ms`` is None for a permanent mute."""

    kind = ErrorKind.MUTED_GUILD

    def __init__(self, remaining_ms: Optional[int] = None) -> None:
        self.remaining_ms = remaining_ms
        if remaining_ms is None:
            detail = "permanently"
        else:
            detail = f"for another {format_duration(remaining_ms)}"
        super().__init__(f"{ERROR_MESSAGES[self.kind][:-1]} {detail}.")


class SourceNotEligibleError(RelaycordError):
    kind = ErrorKind.SOURCE_NOT_ELIGIBLE


class PermissionDeniedError(RelaycordError):
    kind = ErrorKind.PERMISSION_DENIED


class StoreUnavailableError(RelaycordError):
    kind = ErrorKind.STORE_UNAVAILABLE


class MessengerUnavailableError(RelaycordError):
    kind = ErrorKind.MESSENGER_UNAVAILABLE


@dataclass(slots=True)
class OperationResult(Generic[T]):
    """Outcome of one public operation: a value on success, an error kind otherwise.

    Attributes:
        ok: Whether the operation succeeded
        value: Operation-specific payload on success
        error: Error kind on failure
        message: Human-readable explanation for the caller to display
        detail: Extra data for some kinds (remaining mute milliseconds)
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    detail: Any = None

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = "") -> "OperationResult[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: RelaycordError) -> "OperationResult[T]":
        detail = getattr(error, "remaining_ms", None)
        return cls(ok=False, error=error.kind, message=error.message, detail=detail)

    def __bool__(self) -> bool:
        return self.ok
