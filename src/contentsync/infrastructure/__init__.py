"""
Infrastructure layer package.

Contains all I/O and external system integrations:
- SQLite snapshot and audit store (sqlite/)
- HubSpot CMS client (hubspot/)
- Import file readers (readers/)
- Field metadata providers (schema/)
- Configuration loading and logging setup
"""
