"""Proxy identities: tag matching, the member catalogue and autoproxy."""
