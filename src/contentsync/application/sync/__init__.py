"""
Sync Package - Change detection and dispatch.

Package Structure:
    differ.py      - ChangeDetector (import vs. snapshot field diff)
    dispatcher.py  - SyncDispatcher (bounded parallel record updates)
    service.py     - ReconciliationService (main orchestrator)
"""

from contentsync.application.sync.differ import ChangeDetector, detect_changes
from contentsync.application.sync.dispatcher import SyncDispatcher

__all__ = [
    "ChangeDetector",
    "detect_changes",
    "SyncDispatcher",
]
