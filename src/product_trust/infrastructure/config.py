"""
Configuration Management
========================

Pydantic-settings based configuration for the engine and all external
services. Reads from environment variables with sensible defaults.

Weight sets are validated into immutable ``SignalWeights`` when the
settings load; an invalid set fails startup, never a request.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from product_trust.domain.errors import ConfigurationError
from product_trust.domain.weights import SignalWeights


class RedisSettings(BaseSettings):
    """Configuration for the Redis result cache and history stores."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    enabled: bool = Field(default=True, description="Use Redis; in-memory stores otherwise")
    host: str = Field(default="localhost")
    port: int = Field(default=6379)
    socket_path: str | None = Field(default=None, description="Path to Unix socket")
    password: SecretStr | None = Field(default=None)
    db: int = Field(default=0, ge=0)
    cache_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Default TTL for cached trust scores",
    )
    scan_retention_hours: int = Field(
        default=72,
        ge=1,
        description="How long scan history is kept per serial",
    )
    max_connections: int = Field(default=10, ge=1)


class APISettings(BaseSettings):
    """Configuration for the FastAPI application."""

    model_config = SettingsConfigDict(env_prefix="API_")

    title: str = Field(default="Product Trust API")
    version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=1, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    # API key for public access (optional, leave empty to disable)
    api_key: str = Field(
        default="",
        description="API key for authentication. Leave empty to disable auth.",
    )


class SourceSettings(BaseSettings):
    """Base URLs of the external signal collaborators. Empty disables a source."""

    model_config = SettingsConfigDict(env_prefix="SOURCES_")

    registry_url: str = Field(default="", description="Manufacturer serial registry")
    ledger_url: str = Field(default="", description="Distributed-ledger provenance gateway")
    vision_url: str = Field(
        default="",
        description="Vision service (visual comparison, tamper detectors, expiry OCR)",
    )
    social_proof_url: str = Field(default="")
    custody_url: str = Field(default="", description="Supply-chain custody history")
    reviews_url: str = Field(default="", description="Scored review signals")
    notification_url: str = Field(
        default="",
        description="Fraud alert webhook. Alerts are only logged when empty.",
    )
    api_token: SecretStr | None = Field(default=None, description="Bearer token for sources")
    connect_timeout_seconds: float = Field(default=2.0, gt=0.0)
    max_connections: int = Field(default=20, ge=1)


class EngineSettings(BaseSettings):
    """Thresholds and latency budgets of the trust engine."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    # === Latency budgets (milliseconds) ===
    lookup_timeout_ms: float = Field(
        default=500.0,
        ge=10.0,
        description="Budget for cheap lookups (registry, ledger, social proof)",
    )
    vision_timeout_ms: float = Field(
        default=5000.0,
        ge=100.0,
        description="Budget for visual comparison, tamper detection and OCR",
    )
    aggregation_overhead_ms: float = Field(default=250.0, ge=0.0)

    # === Authenticity ===
    pass_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    fraud_alert_threshold: float = Field(default=0.60, ge=0.0, le=1.0)

    # === Tampering ===
    indicator_threshold: float = Field(default=0.40, ge=0.0, le=1.0)

    # === Fraud detection ===
    clone_window_hours: float = Field(default=24.0, gt=0.0)
    clone_distance_km: float = Field(default=50.0, gt=0.0)
    clone_flag_ttl_hours: float = Field(
        default=720.0,
        gt=0.0,
        description="How long a serial stays flagged as cloned after its latest detection",
    )
    custody_window_hours: float = Field(default=24.0, gt=0.0)
    review_window_days: float = Field(default=7.0, gt=0.0)
    review_fraud_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    alert_queue_size: int = Field(default=1000, ge=1)
    alert_max_attempts: int = Field(default=3, ge=1)

    # === Freshness ===
    freshness_horizon_days: int = Field(default=30, ge=1)


class WeightSettings(BaseSettings):
    """Signal weights: defaults plus per-category overrides."""

    model_config = SettingsConfigDict(env_prefix="WEIGHTS_")

    authenticity: float = Field(default=0.30)
    tampering: float = Field(default=0.30)
    freshness: float = Field(default=0.25)
    social_proof: float = Field(default=0.15)
    category_overrides: dict[str, dict[str, float]] = Field(
        default_factory=dict,
        description='JSON mapping, e.g. {"pharma": {"authenticity": 0.4, ...}}',
    )

    @field_validator("category_overrides", mode="before")
    @classmethod
    def _parse_overrides(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value

    def default_weights(self) -> SignalWeights:
        return SignalWeights(
            authenticity=self.authenticity,
            tampering=self.tampering,
            freshness=self.freshness,
            social_proof=self.social_proof,
        )

    def build(self) -> tuple[SignalWeights, dict[str, SignalWeights]]:
        """
        Validate every weight set.

        Raises:
            ConfigurationError: If any set is incomplete, out of range or
                does not sum to 1.0.
        """
        defaults = self.default_weights()
        overrides: dict[str, SignalWeights] = {}
        for category, mapping in self.category_overrides.items():
            try:
                overrides[category] = SignalWeights.from_mapping(mapping)
            except ConfigurationError as e:
                raise ConfigurationError(f"category {category!r}: {e}") from e
        return defaults, overrides


class Settings(BaseSettings):
    """
    Root configuration aggregating all service settings.

    Usage:
        settings = get_settings()
        budget = settings.engine.lookup_timeout_ms
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested settings (manually instantiated due to pydantic-settings behavior)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    api: APISettings = Field(default_factory=APISettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    weights: WeightSettings = Field(default_factory=WeightSettings)

    # Environment
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance, reading from environment on first call.
    """
    return Settings()
