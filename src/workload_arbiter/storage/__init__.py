"""
Durable state.

- schema.py: SQLite connection helpers and table definitions
- apply_log.py: append-only apply/revert log keyed by plan name
"""
from .schema import DEFAULT_DB_PATH, get_connection, initialize_schema
from .apply_log import ApplyLog, LogEntry
