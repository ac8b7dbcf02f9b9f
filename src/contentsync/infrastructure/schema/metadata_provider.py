"""
Field metadata providers.

Field metadata classifies every field of a content type (data type,
read-only, editable). The JSON file format is:

    {
      "content_types": {
        "landing_pages": [
          {"key": "id", "data_type": "string", "read_only": true},
          {"key": "html_title", "data_type": "string"},
          {"key": "publish_date", "data_type": "date"}
        ]
      }
    }
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from contentsync.domain.change_types import DataType
from contentsync.domain.errors import ConfigError
from contentsync.domain.field_registry import header_to_field_key, normalize_content_type
from contentsync.domain.models import FieldMetadata

logger = logging.getLogger(__name__)


class FieldSpec(BaseModel):
    """One field definition as written in the metadata file."""

    model_config = ConfigDict(extra="ignore")

    key: str = Field(..., min_length=1, description="Field key (snake_case)")
    data_type: DataType = Field(default=DataType.STRING)
    read_only: bool = Field(default=False)
    editable: bool = Field(default=True)

    @field_validator("key")
    @classmethod
    def normalize_key(cls, v: str) -> str:
        """Keys are stored in the same form import headers are converted to."""
        return header_to_field_key(v)

    @field_validator("data_type", mode="before")
    @classmethod
    def parse_data_type(cls, v):
        """Accept aliases such as 'int', 'bool', 'datetime'."""
        if isinstance(v, DataType):
            return v
        return DataType.from_string(v)

    def to_metadata(self) -> FieldMetadata:
        return FieldMetadata(
            key=self.key,
            data_type=self.data_type,
            read_only=self.read_only,
            editable=self.editable and not self.read_only,
        )


class FieldMetadataConfig(BaseModel):
    """Field definitions for every known content type."""

    content_types: dict[str, list[FieldSpec]] = Field(default_factory=dict)

    @field_validator("content_types")
    @classmethod
    def normalize_content_types(cls, v: dict[str, list[FieldSpec]]) -> dict[str, list[FieldSpec]]:
        return {normalize_content_type(name): specs for name, specs in v.items()}

    def metadata_for(self, content_type: str) -> dict[str, FieldMetadata]:
        specs = self.content_types.get(normalize_content_type(content_type), [])
        return {spec.key: spec.to_metadata() for spec in specs}


class StaticFieldMetadataProvider:
    """In-memory provider, for tests and embedding."""

    def __init__(self, mapping: Mapping[str, Mapping[str, FieldMetadata]]):
        self._mapping = {
            normalize_content_type(name): dict(fields) for name, fields in mapping.items()
        }

    def get_field_metadata(self, content_type: str) -> dict[str, FieldMetadata]:
        return dict(self._mapping.get(normalize_content_type(content_type), {}))


class JsonFieldMetadataProvider:
    """
    Provider backed by a JSON file, parsed once on first use.

    Usage:
        provider = JsonFieldMetadataProvider(Path("config/field_metadata.json"))
        fields = provider.get_field_metadata("landing_pages")
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._config: FieldMetadataConfig | None = None
        self._lock = threading.Lock()

    def _load(self) -> FieldMetadataConfig:
        with self._lock:
            if self._config is None:
                if not self.path.exists():
                    raise ConfigError(f"Field metadata file not found: {self.path}")
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        raw = json.load(f)
                    self._config = FieldMetadataConfig.model_validate(raw)
                except json.JSONDecodeError as e:
                    raise ConfigError(f"Invalid JSON in {self.path}: {e}") from e
                except ValidationError as e:
                    raise ConfigError(f"Invalid field metadata in {self.path}: {e}") from e
                logger.info(
                    "Loaded field metadata for %d content types from %s",
                    len(self._config.content_types),
                    self.path,
                )
            return self._config

    def content_types(self) -> list[str]:
        return sorted(self._load().content_types)

    def get_field_metadata(self, content_type: str) -> dict[str, FieldMetadata]:
        return self._load().metadata_for(content_type)
