"""Messenger interface and its webhook implementation."""

from relaycord.messaging.messenger import Messenger, WebhookMessenger

__all__ = ["Messenger", "WebhookMessenger"]
