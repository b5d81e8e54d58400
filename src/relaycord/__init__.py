"""Relaycord: cross-server global chat and proxy identities for Discord."""
