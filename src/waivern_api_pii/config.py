"""Configuration for the API PII analyser and its MongoDB store."""

import os
from pathlib import Path
from typing import Any, Self, override

from pydantic import BaseModel, ConfigDict, Field, field_validator

from waivern_api_pii.errors import ApiPiiConfigError


class BaseServiceConfiguration(BaseModel):
    """Base class for service configurations.

    Configurations are immutable and reject unknown fields. Subclasses
    override ``from_properties`` to apply environment variable overrides.
    """

    model_config = ConfigDict(
        # Immutable - configuration cannot be modified after creation
        frozen=True,
        # Strict - extra fields not in the model are rejected
        extra="forbid",
    )

    @classmethod
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration from a properties dictionary.

        Raises:
            ApiPiiConfigError: If the properties are invalid

        """
        try:
            return cls.model_validate(properties)
        except ValueError as e:
            raise ApiPiiConfigError(f"Invalid {cls.__name__}: {e}") from e


class ApiPiiConfig(BaseServiceConfiguration):
    """Configuration of the detector and batch processing."""

    patterns_path: Path | None = Field(
        default=None,
        description="Pattern document to load; None uses the bundled default",
    )
    max_concurrency: int = Field(
        default=10, gt=0, description="Worker threads used for batch analysis"
    )
    reanalysis_interval_hours: float = Field(
        default=24,
        ge=0,
        description="Stored records analysed more recently than this are not re-scanned",
    )
    risky_endpoint_threshold: int = Field(
        default=5,
        ge=0,
        description="Risk score a finding must exceed to list its endpoint as risky",
    )
    top_risky_limit: int = Field(
        default=10, gt=0, description="Maximum risky endpoints listed in a report"
    )

    @classmethod
    @override
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration with environment variable support.

        Environment variables take precedence over properties:
        - WAIVERN_PII_PATTERNS overrides patterns_path
        - WAIVERN_PII_MAX_CONCURRENCY overrides max_concurrency

        Raises:
            ApiPiiConfigError: If validation fails

        """
        config_data = properties.copy()
        if "WAIVERN_PII_PATTERNS" in os.environ:
            config_data["patterns_path"] = os.environ["WAIVERN_PII_PATTERNS"]
        if "WAIVERN_PII_MAX_CONCURRENCY" in os.environ:
            config_data["max_concurrency"] = os.environ["WAIVERN_PII_MAX_CONCURRENCY"]
        return super().from_properties(config_data)


class MongoTrafficStoreConfig(BaseServiceConfiguration):
    """Configuration of the MongoDB traffic store."""

    uri: str = Field(description="MongoDB connection URI")
    database: str = Field(default="raven_api_db", description="Database name")
    records_collection: str = Field(
        default="user_api_data", description="Collection holding traffic records"
    )
    reports_collection: str = Field(
        default="pii_reports", description="Collection holding compliance reports"
    )
    timeout_ms: int = Field(
        default=10_000, gt=0, description="Server selection and socket timeout"
    )

    @field_validator("uri", "database")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that connection settings are not blank."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @classmethod
    @override
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration with environment variable support.

        Environment variables take precedence over properties:
        - MONGODB_URI overrides uri
        - MONGODB_DATABASE overrides database

        Raises:
            ApiPiiConfigError: If validation fails or no URI is available

        """
        config_data = properties.copy()
        if "MONGODB_URI" in os.environ:
            config_data["uri"] = os.environ["MONGODB_URI"]
        if "MONGODB_DATABASE" in os.environ:
            config_data["database"] = os.environ["MONGODB_DATABASE"]

        if config_data.get("uri") is None:
            raise ApiPiiConfigError(
                "MongoDB uri is required (either 'uri' property or MONGODB_URI env var)"
            )
        return super().from_properties(config_data)
