"""
Configuration management for Cheelo.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. The database URL and any
deployment-specific endpoints should be set via environment variables
or a .env file.

Usage:
    from cheelo.config import settings
    print(settings.database_url)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///cheelo.db",
        description="SQLAlchemy URL for the document store",
    )
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # External Sources
    # ==========================================================================

    fide_base_url: str = Field(
        default="https://ratings.fide.com",
        description="Base URL of the FIDE ratings site",
    )
    chess_results_base_url: str = Field(
        default="https://chess-results.com",
        description="Base URL used to resolve relative chess-results links",
    )
    chess_results_search_url: str = Field(
        default="https://s1.chess-results.com/SpielerSuche.aspx?lan=2",
        description="Player search form (lan=2 is English)",
    )
    chess_results_tournament_search_url: str = Field(
        default="https://s2.chess-results.com/TurnierSuche.aspx?lan=2",
        description="Tournament search form used by the background area sync",
    )

    # ==========================================================================
    # Scraping Configuration
    # ==========================================================================

    scrape_headless: bool = Field(
        default=True,
        description="Run browser in headless mode for scraping",
    )
    scrape_timeout: int = Field(
        default=10000,
        description="Timeout for a single external fetch in milliseconds",
    )
    scrape_delay_min: float = Field(
        default=0.2,
        description="Minimum delay between requests (seconds)",
    )
    scrape_delay_max: float = Field(
        default=0.6,
        description="Maximum delay between requests (seconds)",
    )
    scrape_max_retries: int = Field(
        default=2,
        description="Maximum attempts for a single failed fetch",
    )
    source_operation_timeout: float = Field(
        default=60.0,
        description="Upper bound for one data-source operation spanning several fetches (seconds)",
    )

    # ==========================================================================
    # Live Rating Configuration
    # ==========================================================================

    live_max_tournaments: int = Field(
        default=10,
        description="Maximum number of tournaments scraped per aggregation",
    )
    live_scrape_concurrency: int = Field(
        default=4,
        description="Tournaments scraped in parallel during one aggregation",
    )
    live_cache_freshness_seconds: int = Field(
        default=3600,
        description="Cached player views younger than this are served without refresh",
    )
    rated_tournaments_cache_ttl_seconds: int = Field(
        default=900,
        description="TTL for officially-rated tournament lists (per player and period)",
    )
    rated_tournaments_fetch_delay: float = Field(
        default=1.0,
        description="Pause between the standard/rapid/blitz calculation requests (seconds)",
    )
    roster_match_threshold: float = Field(
        default=0.92,
        description="Minimum similarity to resolve an opponent name against the roster",
    )

    # ==========================================================================
    # Background Sync Configuration
    # ==========================================================================

    sync_min_update_interval_hours: int = Field(
        default=12,
        description="Skip tournaments refreshed more recently than this",
    )
    sync_fetch_delay: float = Field(
        default=0.5,
        description="Delay between tournament detail fetches during a sync (seconds)",
    )
    sync_max_update_age_days: int = Field(
        default=60,
        description="Stop reading area search results last updated longer ago than this",
    )
    sync_retention_days: int = Field(
        default=30,
        description="Stored tournaments that ended longer ago than this are pruned",
    )
    sync_area_terms_file: Optional[str] = Field(
        default=None,
        description="Optional JSON file mapping a place to its search terms",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )
    api_reload: bool = Field(
        default=False,
        description="Enable auto-reload for development",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="console",
        description="Log format: 'json' for production, 'console' for dev",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower_v = v.lower()
        if lower_v not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return lower_v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
