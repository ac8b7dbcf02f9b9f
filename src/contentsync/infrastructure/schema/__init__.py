"""Field metadata providers."""

from contentsync.infrastructure.schema.metadata_provider import (
    JsonFieldMetadataProvider,
    StaticFieldMetadataProvider,
)

__all__ = ["JsonFieldMetadataProvider", "StaticFieldMetadataProvider"]
