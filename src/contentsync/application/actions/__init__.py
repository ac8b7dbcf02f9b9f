"""
Actions module for recording sync outcomes.

This module handles:
- Fingerprinting and deduplicating sync outcomes
- Expanding field changes into readable audit rows
- Persisting audit entries
"""

from contentsync.application.actions.audit_logger import (
    AuditLogger,
    compute_fingerprint,
    expand_page_changes,
)

__all__ = [
    "AuditLogger",
    "compute_fingerprint",
    "expand_page_changes",
]
