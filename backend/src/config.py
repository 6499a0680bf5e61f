"""
Configuration management for the Transfermarkt refresh pipeline.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Application configuration."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Transfermarkt Configuration
    tm_base_url: str = os.getenv("TM_BASE_URL", "https://www.transfermarkt.com")

    # Rate Limiting
    max_requests_per_minute: int = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "120"))
    min_request_interval: float = float(os.getenv("MIN_REQUEST_INTERVAL", "0.1"))

    # Page fetch retry: rate-limited responses come back as tiny bodies (~146 bytes)
    fetch_max_retries: int = int(os.getenv("FETCH_MAX_RETRIES", "3"))
    fetch_retry_delay: float = float(os.getenv("FETCH_RETRY_DELAY", "1.0"))
    min_payload_bytes: int = int(os.getenv("MIN_PAYLOAD_BYTES", "500"))
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30.0"))

    # Listings merged into the canonical dataset
    value_listing_pages: int = int(os.getenv("VALUE_LISTING_PAGES", "20"))
    minutes_listing_pages: int = int(os.getenv("MINUTES_LISTING_PAGES", "20"))

    # Adaptive concurrency for per-player stats fetches
    initial_concurrency: int = int(os.getenv("INITIAL_CONCURRENCY", "20"))
    min_concurrency: int = int(os.getenv("MIN_CONCURRENCY", "2"))
    initial_delay: float = float(os.getenv("INITIAL_DELAY", "1.0"))
    min_delay: float = float(os.getenv("MIN_DELAY", "0.25"))
    max_delay: float = float(os.getenv("MAX_DELAY", "60.0"))
    failure_rate_threshold: float = float(os.getenv("FAILURE_RATE_THRESHOLD", "0.3"))
    clean_streak_threshold: int = int(os.getenv("CLEAN_STREAK_THRESHOLD", "3"))
    max_retry_rounds: int = int(os.getenv("MAX_RETRY_ROUNDS", "5"))

    # Pre-publish integrity guards
    zero_stats_max_ratio: float = float(os.getenv("ZERO_STATS_MAX_RATIO", "0.8"))
    regression_min_ratio: float = float(os.getenv("REGRESSION_MIN_RATIO", "0.5"))

    # Partial stats cache younger than this is resumed instead of refetched
    stats_cache_ttl_hours: float = float(os.getenv("STATS_CACHE_TTL_HOURS", "12"))

    # Market value movers scan
    mover_period_count: int = int(os.getenv("MOVER_PERIOD_COUNT", "24"))
    mover_period_step_months: int = int(os.getenv("MOVER_PERIOD_STEP_MONTHS", "6"))
    mover_batch_size: int = int(os.getenv("MOVER_BATCH_SIZE", "6"))

    # Snapshot storage
    data_dir: str = os.getenv("DATA_DIR", "data")

    # Markup parser implementation, "module:attribute"
    page_parser: Optional[str] = os.getenv("PAGE_PARSER", None)

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")  # json or text

    def validate(self):
        """Validate configuration."""
        errors = []

        if not self.tm_base_url:
            errors.append("TM_BASE_URL is required")
        if self.min_concurrency < 1:
            errors.append("MIN_CONCURRENCY must be at least 1")
        if self.initial_concurrency < self.min_concurrency:
            errors.append("INITIAL_CONCURRENCY must be >= MIN_CONCURRENCY")
        if self.min_delay < 0 or self.initial_delay < self.min_delay:
            errors.append("INITIAL_DELAY must be >= MIN_DELAY >= 0")
        if self.max_delay < self.initial_delay:
            errors.append("MAX_DELAY must be >= INITIAL_DELAY")
        if not 0 <= self.failure_rate_threshold <= 1:
            errors.append("FAILURE_RATE_THRESHOLD must be between 0 and 1")
        if self.clean_streak_threshold < 1:
            errors.append("CLEAN_STREAK_THRESHOLD must be at least 1")
        if self.max_retry_rounds < 0:
            errors.append("MAX_RETRY_ROUNDS must be >= 0")
        if self.fetch_max_retries < 0:
            errors.append("FETCH_MAX_RETRIES must be >= 0")
        if not 0 < self.zero_stats_max_ratio <= 1:
            errors.append("ZERO_STATS_MAX_RATIO must be in (0, 1]")
        if not 0 <= self.regression_min_ratio <= 1:
            errors.append("REGRESSION_MIN_RATIO must be between 0 and 1")
        if self.mover_batch_size < 1 or self.mover_period_count < 1:
            errors.append("MOVER_BATCH_SIZE and MOVER_PERIOD_COUNT must be positive")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self):
        """Validate after initialization."""
        if self.page_parser is not None:
            self.page_parser = self.page_parser.strip() or None
        self.validate()
