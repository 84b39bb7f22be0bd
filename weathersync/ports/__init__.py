"""
Port interfaces for weathersync.

This module defines the port interfaces (Protocols) between the
reconciliation services and the remote API and storage adapters.
"""

from .remote import WeatherDataPort
from .store import ReconciliationStorePort

__all__ = ["WeatherDataPort", "ReconciliationStorePort"]
