"""
Adapters for weathersync hexagonal architecture.

This module contains the concrete implementations of the ports: the NWS
API client and the SQLite reconciliation store.
"""

from .nws import NWSClient
from .storage import SQLiteReconciliationStore

__all__ = ["NWSClient", "SQLiteReconciliationStore"]
