"""
Application configuration using Pydantic settings.
"""
import logging

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Trefle API Configuration
    trefle_api_token: str = Field(
        default="",
        description="Trefle API token (TREFLE_API_TOKEN)"
    )
    trefle_api_base_url: str = Field(
        default="https://trefle.io/api/v1",
        description="Base URL for the Trefle API"
    )
    request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single HTTP request"
    )

    # Rate Limiting (Trefle allows 120 requests per minute)
    rate_limit_min_delay: int = Field(
        default=2,
        description="Minimum pause in seconds between outbound requests"
    )
    rate_limit_max_delay: int = Field(
        default=5,
        description="Maximum pause in seconds between outbound requests"
    )

    # Batching
    plants_batch_size: int = Field(
        default=10,
        description="Pages per output file when fetching plain plant pages"
    )
    enriched_batch_size: int = Field(
        default=5,
        description="Pages per output file when enrichment is enabled"
    )
    max_synonyms: int = Field(
        default=5,
        description="Synonyms kept per plant record"
    )
    dry_run_page_preview: int = Field(
        default=15,
        description="Pages simulated by a dry run without a page limit"
    )

    # Output
    data_dir: str = Field(
        default="datasets",
        description="Root directory for fetched data"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Application Settings
    app_name: str = Field(
        default="Trefle API Data Fetcher",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = None) -> int:
    """
    Configure root logging once at process start.

    Args:
        level: Level name; falls back to settings.log_level, then INFO

    Returns:
        The numeric level that was applied
    """
    level_name = (level or settings.log_level or "INFO").upper()
    if level_name == "WARN":
        level_name = "WARNING"
    numeric_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )

    # Keep httpx request lines out of the narrative unless debugging
    if numeric_level > logging.DEBUG:
        for noisy in ("httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return numeric_level


def get_trefle_token() -> str:
    """
    Retrieve the Trefle API token from settings.

    Returns:
        The configured token

    Raises:
        ValueError: If TREFLE_API_TOKEN is not set
    """
    token = settings.trefle_api_token
    if not token:
        raise ValueError(
            "TREFLE_API_TOKEN not found in environment variables. "
            "Please add it to your .env file. "
            "Get your token at https://trefle.io/"
        )
    return token


def validate_token_format(token: str) -> bool:
    """Return True if the token looks like a Trefle token (non-empty, 10+ chars)."""
    if not token:
        return False
    return len(token) >= 10
