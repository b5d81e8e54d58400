"""
Data structures shared across Relaycord.

- **discord_datatypes.py**: snowflake id wrappers and the explicit ``Scope`` type
- **proxy_datatypes.py**: proxy tags, members, groups, settings and autoproxy modes
- **global_chat_datatypes.py**: the global chat channel record
- **event_datatypes.py**: inbound events, resolved identities and relay outcomes
- **result_datatypes.py**: error kinds, the exception tree and ``OperationResult``
"""
