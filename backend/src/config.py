"""
Configuration management for the Score Refresh Service.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    supabase_service_key: Optional[str] = os.getenv("SUPABASE_SERVICE_KEY", None)

    # Ranking service endpoints
    beat_savior_api_url: str = os.getenv("BEAT_SAVIOR_API_URL", "https://www.beatsavior.io/api")
    scoresaber_api_url: str = os.getenv("SCORESABER_API_URL", "https://scoresaber.com/api")
    accsaber_api_url: str = os.getenv("ACCSABER_API_URL", "https://api.accsaber.com")

    # Rate Limiting (shared by every ranking client instance)
    max_requests_per_minute: int = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "60"))
    # Minimum spacing between background-priority requests
    min_request_interval: float = float(os.getenv("MIN_REQUEST_INTERVAL", "1.0"))
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30.0"))

    # Retry Configuration
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_backoff_base: float = float(os.getenv("RETRY_BACKOFF_BASE", "1.0"))
    max_retry_delay: int = int(os.getenv("MAX_RETRY_DELAY", "60"))

    # The player this installation belongs to (shortest staleness tier)
    main_player_id: Optional[str] = os.getenv("MAIN_PLAYER_ID") or None

    # Background refresh_all loop period (seconds)
    refresh_all_interval: int = int(os.getenv("REFRESH_ALL_INTERVAL", "900"))
    # Re-fetch a cached player inside its window when they played after the last refresh
    honor_recent_play: bool = _env_bool("HONOR_RECENT_PLAY")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")  # json or text

    def validate(self):
        """Validate configuration."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_KEY is required")
        if self.max_requests_per_minute <= 0:
            errors.append("MAX_REQUESTS_PER_MINUTE must be positive")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self):
        """Validate after initialization."""
        if self.main_player_id is not None:
            self.main_player_id = str(self.main_player_id).strip() or None
        self.validate()
