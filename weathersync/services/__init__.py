"""
Application services for weathersync.

This module contains the services that drive reconciliation: zone
fetching, region onboarding/sync and alert sync/cleanup.
"""

from .fetcher import Fetcher
from .regions import RegionService
from .alerts import AlertService

__all__ = ["Fetcher", "RegionService", "AlertService"]
