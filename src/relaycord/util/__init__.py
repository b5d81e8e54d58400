"""
Utility functions and helpers for Relaycord.

- **logger.py**: Centralized logging configuration with colored console output,
  a rotating file per session, all installed once on the ``relaycord`` parent
  logger. Console level comes from ``RELAYCORD_LOG_LEVEL``. Suppresses noise from
  Discord internals and the database driver. Uses prompt_toolkit for
  non-blocking console I/O.

- **time_utils.py**: Millisecond clock helpers shared by the moderation ledger
  and the proxy engine, plus short duration formatting for notices.

- **keyed_locks.py**: Per-key asyncio locks that are dropped once unused,
  shared by the registries.
"""
