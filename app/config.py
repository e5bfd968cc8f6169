from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "GTM Map Prospecting"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str | None = None
    database_auto_create: bool = True

    # Providers
    openai_api_key: str | None = None
    tavily_api_key: str | None = None
    tavily_base_url: str = "https://api.tavily.com"

    # Discovery runtime
    discovery_mode: str = "fixture"
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.3

    # Website fetch
    fetch_timeout_seconds: float = 15.0
    fetch_max_bytes: int = 1024 * 1024
    fetch_max_chars: int = 8000
    fetch_user_agent: str = "Mozilla/5.0 (compatible; GTM-Map/1.0)"

    # Search
    search_max_results: int = 6
    search_retry_attempts: int = 3

    # Scoring policy
    expansion_min_icp_score: int = 50
    competitor_min_icp_score: int = 40
    cluster_min_size: int = 2
    evidence_url_limit: int = 3

    # Run caps
    default_batch_size: int = 10
    max_total_prospects: int = 100

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "prospecting"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    # Security
    cors_origins: list[str] = []  # Empty by default for security

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_online(self) -> bool:
        """True when live collaborators are configured."""
        return self.discovery_mode.strip().lower() == "online"

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
