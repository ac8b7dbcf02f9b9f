"""
Dependency injection container for the application.

Creates infrastructure and services lazily from EngineSettings so the CLI
(and tests) can swap individual collaborators.
"""

import logging
from pathlib import Path
from typing import Optional

from contentsync.application.actions.audit_logger import AuditLogger
from contentsync.application.schema_compare import MissingFieldComparator
from contentsync.application.sync.differ import ChangeDetector, FieldMetadataProvider
from contentsync.application.sync.dispatcher import ContentClient, SyncDispatcher
from contentsync.application.sync.service import ReconciliationService
from contentsync.infrastructure.cache.timed_cache import TimedCache
from contentsync.infrastructure.config_loader import ConfigLoader, EngineSettings
from contentsync.infrastructure.hubspot.client import HubSpotClient
from contentsync.infrastructure.schema.metadata_provider import JsonFieldMetadataProvider
from contentsync.infrastructure.sqlite.store import ReconciliationStore

logger = logging.getLogger(__name__)


class Container:
    """
    Dependency injection container.

    Manages the creation and lifecycle of services and infrastructure.
    The dedup cache lives here, so it is scoped to one container (one
    CLI session) rather than the process.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialize the container.

        Args:
            config_dir: Directory holding contentsync.json
            settings: Explicit settings (overrides the config file)
        """
        self.config_dir = config_dir or Path.cwd() / "config"
        self.settings = settings or ConfigLoader(self.config_dir).load()

        self._store: Optional[ReconciliationStore] = None
        self._metadata_provider: Optional[FieldMetadataProvider] = None
        self._content_client: Optional[ContentClient] = None
        self._dedup_cache: Optional[TimedCache] = None
        self._schema_cache: Optional[TimedCache] = None
        self._service: Optional[ReconciliationService] = None

    @property
    def store(self) -> ReconciliationStore:
        """Get the SQLite store (schema initialized on first use)."""
        if self._store is None:
            self._store = ReconciliationStore(self.settings.db_path)
            self._store.initialize_schema()
        return self._store

    @store.setter
    def store(self, value: ReconciliationStore) -> None:
        self._store = value

    @property
    def metadata_provider(self) -> FieldMetadataProvider:
        """Get the field metadata provider."""
        if self._metadata_provider is None:
            self._metadata_provider = JsonFieldMetadataProvider(self.settings.metadata_path)
        return self._metadata_provider

    @metadata_provider.setter
    def metadata_provider(self, value: FieldMetadataProvider) -> None:
        self._metadata_provider = value

    @property
    def content_client(self) -> ContentClient:
        """Get the HubSpot client. Requires HUBSPOT_ACCESS_TOKEN."""
        if self._content_client is None:
            self._content_client = HubSpotClient(
                token=self.settings.require_token(),
                base_url=self.settings.hubspot_base_url,
                default_timeout=self.settings.call_timeout_seconds,
            )
        return self._content_client

    @content_client.setter
    def content_client(self, value: ContentClient) -> None:
        self._content_client = value

    @property
    def dedup_cache(self) -> TimedCache:
        if self._dedup_cache is None:
            self._dedup_cache = TimedCache(self.settings.dedup_window_seconds)
        return self._dedup_cache

    @property
    def detector(self) -> ChangeDetector:
        return ChangeDetector(
            self.metadata_provider,
            id_field=self.settings.id_field,
            ignored_fields=self.settings.ignored_fields,
        )

    @property
    def audit_logger(self) -> AuditLogger:
        return AuditLogger(self.store, self.dedup_cache)

    @property
    def service(self) -> ReconciliationService:
        """Get the reconciliation service (the dispatcher is built lazily)."""
        if self._service is None:
            self._service = ReconciliationService(
                store=self.store,
                detector=self.detector,
                dispatcher=_LazyDispatcher(self),
                audit_logger=self.audit_logger,
            )
        return self._service

    @property
    def dispatcher(self) -> SyncDispatcher:
        return SyncDispatcher(
            self.content_client,
            max_workers=self.settings.max_workers,
            call_timeout=self.settings.call_timeout_seconds,
        )

    @property
    def missing_field_comparator(self) -> MissingFieldComparator:
        if self._schema_cache is None:
            self._schema_cache = TimedCache(self.settings.schema_cache_ttl_seconds)
        return MissingFieldComparator(
            self.content_client, self.metadata_provider, self._schema_cache
        )

    def close(self) -> None:
        """Release the database connection and HTTP client."""
        if self._store is not None:
            self._store.close()
        if isinstance(self._content_client, HubSpotClient):
            self._content_client.close()


class _LazyDispatcher:
    """Defers building the HubSpot client until something is dispatched."""

    def __init__(self, container: Container):
        self._container = container
        self._dispatcher: Optional[SyncDispatcher] = None

    def dispatch(self, *args, **kwargs):
        if self._dispatcher is None:
            self._dispatcher = self._container.dispatcher
        return self._dispatcher.dispatch(*args, **kwargs)
