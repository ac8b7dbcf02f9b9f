"""
Engine settings and configuration loading.

Settings are pydantic models loaded from a JSON file. The HubSpot access
token is never stored in the file; it is read from HUBSPOT_ACCESS_TOKEN.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from contentsync.domain.errors import ConfigError

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "HUBSPOT_ACCESS_TOKEN"
DEFAULT_CONFIG_FILE = "contentsync.json"


class EngineSettings(BaseModel):
    """
    Runtime settings for the reconciliation engine.

    Controls persistence paths, dispatch concurrency and cache windows.
    """

    model_config = ConfigDict(extra="forbid")

    db_path: Path = Field(
        default=Path("output/contentsync.db"),
        description="SQLite database holding snapshots and audit entries",
    )
    metadata_path: Path = Field(
        default=Path("config/field_metadata.json"),
        description="JSON file describing field metadata per content type",
    )
    max_workers: int = Field(
        default=5,
        description="Concurrent external calls during dispatch",
        ge=1,
        le=10,
    )
    call_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single external call",
        gt=0,
        le=300,
    )
    dedup_window_seconds: float = Field(
        default=2.0,
        description="Window in which identical audit entries are suppressed",
        ge=0,
    )
    schema_cache_ttl_seconds: float = Field(
        default=300.0,
        description="How long missing-field comparisons are cached",
        ge=0,
    )
    id_field: str = Field(default="id", description="Row key holding the record identity")
    ignored_fields: list[str] = Field(
        default_factory=lambda: ["export_date", "created_at", "updated_at"],
        description="Field keys never compared during change detection",
    )
    hubspot_base_url: str = Field(
        default="https://api.hubapi.com",
        description="Base URL of the HubSpot API",
    )
    hubspot_token: SecretStr | None = Field(
        default=None,
        description="Private app token (taken from the environment)",
        exclude=True,
    )

    @field_validator("id_field")
    @classmethod
    def validate_id_field(cls, v: str) -> str:
        """Identity field must be a non-blank key."""
        v = v.strip()
        if not v:
            raise ValueError("id_field cannot be blank")
        return v

    @field_validator("hubspot_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Base URL must be http(s); trailing slashes are dropped."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("hubspot_base_url must start with http:// or https://")
        return v.rstrip("/")

    def require_token(self) -> str:
        """Return the HubSpot token or raise ConfigError if it is not set."""
        if self.hubspot_token is None or not self.hubspot_token.get_secret_value():
            raise ConfigError(f"{TOKEN_ENV_VAR} is not set")
        return self.hubspot_token.get_secret_value()


class ConfigLoader:
    """
    Loads EngineSettings from JSON plus the environment.

    Usage:
        settings = ConfigLoader(Path("config")).load()
    """

    def __init__(self, config_dir: Path | str = Path("config"), environ: dict | None = None):
        self.config_dir = Path(config_dir)
        self.environ = os.environ if environ is None else environ

    def load(self, filename: str = DEFAULT_CONFIG_FILE) -> EngineSettings:
        """
        Load settings. A missing file yields defaults.

        Raises:
            ConfigError: if the file is not valid JSON or fails validation
        """
        path = self.config_dir / filename
        data: dict[str, Any] = {}
        if path.exists():
            data = self._read_json(path)
            logger.info("Loaded settings from %s", path)
        else:
            logger.debug("No settings file at %s, using defaults", path)

        token = self.environ.get(TOKEN_ENV_VAR)
        if token:
            data["hubspot_token"] = token

        try:
            return EngineSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings in {path}: {e}") from e

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return data
