"""
Storage adapters for weathersync.

This module contains the SQLite reconciliation store for regions, zones,
alerts and their associations.
"""

from .sqlite_store import SQLiteReconciliationStore, from_db_time, to_db_time

__all__ = ["SQLiteReconciliationStore", "from_db_time", "to_db_time"]
