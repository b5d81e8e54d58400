"""Table-level SQL for proxy and global chat records."""

from relaycord.repositories.global_chat_repo import GlobalChatRepository
from relaycord.repositories.proxy_group_repo import ProxyGroupRepository
from relaycord.repositories.proxy_member_repo import ProxyMemberRepository
from relaycord.repositories.proxy_settings_repo import ProxySettingsRepository

__all__ = [
    "GlobalChatRepository",
    "ProxyGroupRepository",
    "ProxyMemberRepository",
    "ProxySettingsRepository",
]
