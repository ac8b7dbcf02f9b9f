"""
contentsync - Import reconciliation and synchronization for HubSpot CMS content.

Validates that a spreadsheet import matches the export it came from,
computes field-level changes against the stored snapshot, pushes the
confirmed changes to HubSpot and records each sync exactly once.

Usage:
    # CLI
    contentsync detect landing_pages_export.csv -t landing_pages -u alice

    # Programmatic
    from contentsync.application.container import Container

    container = Container(Path("config"))
    plan = container.service.prepare(user_id, "landing_pages", "file", batch)
"""

__version__ = "0.1.0"
