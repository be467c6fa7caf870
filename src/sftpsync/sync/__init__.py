"""Reconciliation engine for one-way directory synchronization.

This package provides functionality for:
- Per-directory reconciliation tables and task derivation
- The recursive, concurrency-bounded sync orchestrator
"""
from .table import EntryStatus, Side, SyncTable, SyncTableEntry, SyncTask, TaskMethod, derive_task
from .orchestrator import SftpSync, gather_or_abort

__all__ = [
    'EntryStatus',
    'Side',
    'SyncTable',
    'SyncTableEntry',
    'SyncTask',
    'TaskMethod',
    'derive_task',
    'SftpSync',
    'gather_or_abort',
]
