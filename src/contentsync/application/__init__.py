"""
Application layer package.

Contains the components that orchestrate reconciliation workflows.
Services coordinate between domain models and infrastructure.
"""

from contentsync.application.sync.service import ReconciliationService

__all__ = [
    "ReconciliationService",
]
