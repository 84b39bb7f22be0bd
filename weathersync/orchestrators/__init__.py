"""
Orchestrators for weathersync.

This module contains the scheduler that drives the periodic alert
sync and retention cleanup.
"""
from .scheduler import SchedulerState, SyncScheduler

__all__ = ["SchedulerState", "SyncScheduler"]
