"""
Configuration module for the advertiser stats scraper.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from pathlib import Path
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheConfig(BaseSettings):
    """Result cache configuration."""

    model_config = SettingsConfigDict(env_prefix="ADSTATS_CACHE_")

    ttl_seconds: float = Field(default=1800.0, description="Lifetime of a cached result (seconds)")


class BatchConfig(BaseSettings):
    """Admission queue and batching configuration."""

    model_config = SettingsConfigDict(env_prefix="ADSTATS_BATCH_")

    flush_interval: float = Field(
        default=0.2,
        description="Seconds after the first enqueue before a partial batch is flushed",
    )


class FetchConfig(BaseSettings):
    """Outbound HTTP configuration."""

    model_config = SettingsConfigDict(env_prefix="ADSTATS_FETCH_")

    timeout: float = Field(default=20.0, description="Hard timeout per page fetch (seconds)")
    base_url: str = Field(
        default="https://www.facebook.com/ads/library/",
        description="Ad Library endpoint queried for advertiser pages",
    )
    http2: bool = Field(default=True, description="Negotiate HTTP/2 when available")


class MonitorConfig(BaseSettings):
    """Blocking event monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="ADSTATS_MONITOR_")

    max_events_in_memory: int = Field(default=1000, description="Size of the in-memory event ring")
    analysis_window_hours: float = Field(default=24.0, description="Default analysis lookback")
    retention_days: int = Field(default=30, description="Default purge horizon for stored events")
    events_path: Path = Field(
        default=Path("storage") / "blocking_events.jsonl",
        description="Durable JSON-lines event log",
    )
    jitter_ratio: float = Field(default=0.5, description="Upper bound of delay jitter as a share of base")


class AdstatsConfig(BaseSettings):
    """Main configuration aggregating all sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="ADSTATS_",
        env_nested_delimiter="__",
    )

    # Sub-configurations
    cache: CacheConfig = Field(default_factory=CacheConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    def ensure_directories(self) -> None:
        """Create the directory holding the durable event log."""
        self.monitor.events_path.parent.mkdir(parents=True, exist_ok=True)


# Global config instance (can be overridden)
config = AdstatsConfig()
