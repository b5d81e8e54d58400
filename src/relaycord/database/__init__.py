"""
Database package for Relaycord.

- **db_connection.py**: the shared aiosqlite connection and its write queue
- **db_schema.py**: table creation and schema versioning
- **database.py**: ``Database`` startup/shutdown and the process-wide ``get_db()``
"""
