"""Configuration management for the orphan sweeper."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetadataConfig(BaseModel):
    """Metadata store configuration."""

    backend: Literal["tikv", "memory"] = Field(default="tikv", description="Store backend")
    pd_endpoints: str = Field(
        default="", description="Comma-separated placement driver addresses"
    )
    key_namespace: str = Field(
        default="", description="String prepended to every key prefix (e.g. YDS3_)"
    )
    scan_batch_size: int = Field(default=256, ge=1, description="Keys fetched per scan round trip")

    @property
    def addresses(self) -> list[str]:
        """Placement driver addresses with blanks removed."""
        return [addr.strip() for addr in self.pd_endpoints.split(",") if addr.strip()]


class BlobStoreConfig(BaseModel):
    """Blob store configuration, consumed by a physical deletion pass."""

    master: str = Field(default="", description="Blob store master endpoint")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    metrics_port: int = Field(
        default=0, ge=0, le=65535, description="Prometheus metrics port (0 disables it)"
    )
    otlp_endpoint: str = Field(default="", description="OpenTelemetry collector endpoint")
    trace_console: bool = Field(default=False, description="Also print finished spans to stderr")
    environment: str = Field(default="development", description="Deployment environment")


class Config(BaseSettings):
    """Main configuration for the orphan sweeper.

    Sections read ``CLEANER_<SECTION>__<FIELD>``. The short variables
    ``CLEANER_PD`` and ``CLEANER_MASTER`` fill the metadata addresses and
    the blob master when the section values are not set.
    """

    model_config = SettingsConfigDict(
        env_prefix="CLEANER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    pd: str = Field(default="", description="Shorthand for metadata.pd_endpoints")
    master: str = Field(default="", description="Shorthand for blob.master")

    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    blob: BlobStoreConfig = Field(default_factory=BlobStoreConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @model_validator(mode="after")
    def _apply_shorthands(self) -> Config:
        if self.pd and not self.metadata.pd_endpoints:
            self.metadata.pd_endpoints = self.pd
        if self.master and not self.blob.master:
            self.blob.master = self.master
        return self

    def validate_backend(self) -> None:
        """Check settings that depend on the chosen backend.

        Raises:
            ValueError: If the TiKV backend has no address to connect to.
        """
        if self.metadata.backend == "tikv" and not self.metadata.addresses:
            raise ValueError("invalid address: set CLEANER_PD to the placement driver endpoints")


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
