"""
Configuration management for gov-ai.

Loads settings from environment variables (and a local .env file) with
sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # LLM Providers
    # ==========================================================================
    ambient_api_key: str = Field(default="", description="Ambient API key")
    ambient_api_url: str = "https://api.ambient.xyz/v1/chat/completions"
    ambient_model: str = Field(
        default="", description="Model name; omitted from requests when empty"
    )
    ambient_max_tokens: int = 100000
    ambient_tier: Literal["standard", "mini"] = "standard"

    nous_api_key: str = Field(default="", description="Nous Research API key")
    nous_api_url: str = "https://inference-api.nousresearch.com/v1/chat/completions"
    nous_model: str = "Hermes-4-70B"
    nous_max_tokens: int = 100000

    llm_stream: bool = True
    llm_timeout: int = 600
    llm_max_retries: int = 3

    # ==========================================================================
    # Proposal Sources
    # ==========================================================================
    tally_api_key: str = Field(default="", description="Tally API key (Api-Key header)")
    snapshot_graphql_url: str = "https://hub.snapshot.org/graphql"
    tally_graphql_url: str = "https://api.tally.xyz/query"
    user_agent: str = "gov-ai-demo/1.0"
    http_timeout: int = 30
    proposal_url: str | None = None

    # ==========================================================================
    # Servers
    # ==========================================================================
    api_host: str = "0.0.0.0"
    port: int = 3000
    page_port: int = 3100
    max_concurrent_jobs: int = 1

    # ==========================================================================
    # Benchmark
    # ==========================================================================
    bench_runs: int = 3
    bench_retries: int = 2
    bench_timeout_ms: int = 3000000
    bench_base_delay_ms: int = 800

    # Pricing, USD per 1M tokens
    ambient_standard_in_per_m: float = 0.35
    ambient_standard_out_per_m: float = 1.71
    ambient_mini_in_per_m: float = 0.05
    ambient_mini_out_per_m: float = 0.5
    nous_in_per_m: float = 0.05
    nous_out_per_m: float = 0.2

    # ==========================================================================
    # Storage Paths
    # ==========================================================================
    principles_path: Path = Path("principles.json")
    report_schema_path: Path | None = None
    reports_dir: Path = Path("reports")
    api_reports_dir: Path = Path("prod-reports")
    bench_results_dir: Path = Path("bench-results")

    @field_validator(
        "principles_path", "reports_dir", "api_reports_dir", "bench_results_dir", mode="before"
    )
    @classmethod
    def convert_to_path(cls, v: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(v) if isinstance(v, str) else v

    def ensure_directories(self) -> None:
        """Create output directories if they don't exist."""
        for dir_path in [self.reports_dir, self.api_reports_dir, self.bench_results_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
