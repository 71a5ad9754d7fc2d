"""Pydantic models for annotation pipeline configuration."""

import hashlib
import json
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class EnsemblConfig(BaseModel):
    """Ensembl REST endpoint settings."""

    base_url: str = Field(
        default="https://rest.ensembl.org",
        description="Ensembl REST API base URL",
    )
    species: str = Field(
        default="human",
        description="Species name used in VEP endpoint paths",
    )
    include_clinvar: bool = Field(
        default=True,
        description="Request ClinVar significance for colocated variants",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class APIConfig(BaseModel):
    """Configuration for API clients."""

    rate_limit_per_second: int = Field(
        default=5,
        ge=1,
        description="Maximum API requests per second",
    )
    max_retries: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum retry attempts for failed requests",
    )
    cache_ttl_seconds: int = Field(
        default=86400,
        ge=0,
        description="Cache time-to-live in seconds (0 = infinite)",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=1,
        description="Request timeout in seconds",
    )


class BatchConfig(BaseModel):
    """Batch-annotation runner settings."""

    batch_size: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Identifiers per lookup request and per checkpoint (VEP POST limit is 200)",
    )
    identifier_pattern: str = Field(
        default=r"rs\d+",
        description="Regular expression a whitespace token must fully match to be annotated",
    )
    comment_prefix: str = Field(
        default="#",
        min_length=1,
        description="Lines starting with this prefix are skipped",
    )
    restrict_to_panel: bool = Field(
        default=False,
        description="Only annotate identifiers in the curated relevant-SNP panel",
    )
    on_identifier_mismatch: Literal["warn", "reject"] = Field(
        default="warn",
        description="Policy when a resume supplies identifiers that differ from the stored list",
    )

    @field_validator("identifier_pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid identifier_pattern: {e}") from e
        return v


class AnnotationConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for exports and provenance sidecars",
    )
    cache_dir: Path = Field(
        ...,
        description="Directory for API response caching",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database holding sessions and results",
    )
    ensembl: EnsemblConfig = Field(
        default_factory=EnsemblConfig,
        description="Ensembl VEP endpoint configuration",
    )
    api: APIConfig = Field(
        default_factory=APIConfig,
        description="API client configuration",
    )
    batch: BatchConfig = Field(
        default_factory=BatchConfig,
        description="Batch runner configuration",
    )

    @field_validator("data_dir", "cache_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Used in provenance sidecars to tie exported results to the settings
        (endpoint, batch size, identifier pattern) that produced them.
        """
        config_json = json.dumps(
            self.model_dump(mode="python"),
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
