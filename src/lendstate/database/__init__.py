from lendstate.database.operations import (
    backup_sqlite_database,
    compact_sqlite_database,
    create_new_sqlite_database,
    get_database_revisions,
    get_in_memory_session,
    get_scoped_sqlite_session,
    get_state_summary,
    upgrade_existing_sqlite_database,
)

__all__ = (
    "backup_sqlite_database",
    "compact_sqlite_database",
    "create_new_sqlite_database",
    "get_database_revisions",
    "get_in_memory_session",
    "get_scoped_sqlite_session",
    "get_state_summary",
    "upgrade_existing_sqlite_database",
)
