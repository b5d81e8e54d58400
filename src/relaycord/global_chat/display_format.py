"""
Display name and content composition for relayed messages.

The default display name is ``"<prefix> <author> <suffix>"`` where the
prefix and suffix come from the channel (or the configured defaults) after
placeholder substitution. Supported placeholders: ``{user}``, ``{server}``,
``{username}``, ``{displayname}``, ``{pronouns}``.
"""

from __future__ import annotations

from typing import Optional, Sequence

from relaycord.datatypes.event_datatypes import DisplayIdentity, InboundEvent
from relaycord.datatypes.global_chat_datatypes import GlobalChatChannel
from relaycord.datatypes.proxy_datatypes import ProxyMember

UNKNOWN_SERVER = "Unknown"


def resolve_placeholders(template: str, event: InboundEvent) -> str:
    username = event.username or event.author_name
    display_name = event.global_display_name or username
    return (
        template
        .replace("{user}", event.author_name)
        .replace("{server}", event.server_name or UNKNOWN_SERVER)
        .replace("{username}", username)
        .replace("{displayname}", display_name)
        .replace("{pronouns}", event.pronouns or "")
    )


def compose_display_name(
    channel: GlobalChatChannel,
    event: InboundEvent,
    default_prefix: str,
    default_suffix: str,
    max_length: int = 80,
) -> str:
    """
    Build the default relay display name for ``event`` in ``channel``.

    A channel format of None falls back to the default; the empty string
    suppresses that side. Empty sides add no extra spaces.
    """
    prefix = default_prefix if channel.message_prefix is None else channel.message_prefix
    suffix = default_suffix if channel.message_suffix is None else channel.message_suffix

    parts = [resolve_placeholders(prefix, event), event.author_name, resolve_placeholders(suffix, event)]
    display_name = " ".join(part for part in parts if part)
    return display_name[:max_length]


def display_for(
    channel: GlobalChatChannel,
    event: InboundEvent,
    member: Optional[ProxyMember],
    default_prefix: str,
    default_suffix: str,
    max_length: int = 80,
) -> DisplayIdentity:
    """Proxy members are shown as themselves; everyone else gets the composed name."""
    if member is not None:
        return DisplayIdentity(member.effective_display_name[:max_length], member.avatar_ref)
    return DisplayIdentity(
        compose_display_name(channel, event, default_prefix, default_suffix, max_length),
        event.avatar_ref,
    )


def build_relay_content(
    content: str,
    attachment_urls: Sequence[str],
    max_content_length: int = 2000,
    max_attachments: int = 5,
) -> str:
    """Truncate ``content`` and append up to ``max_attachments`` URLs, one per line."""
    lines = [content[:max_content_length]] if content else []
    lines.extend(list(attachment_urls)[:max_attachments])
    return "\n".join(lines)


def format_rules(rules: Sequence[str]) -> str:
    if not rules:
        return "No rules set."
    return "\n".join(f"{number}. {rule}" for number, rule in enumerate(rules, start=1))
