"""Store interface and its SQLite implementation."""

from relaycord.store.store import SQLiteStore, Store

__all__ = ["SQLiteStore", "Store"]
