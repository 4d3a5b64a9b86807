"""Record store adapters.

One implementation of IRecordStore (src/interfaces/record_store.py):
    - SQLiteRecordStore -- aiosqlite-backed local database (data/policies.db)
"""

from src.providers.record_store.sqlite_record_store import SQLiteRecordStore

__all__ = ["SQLiteRecordStore"]
