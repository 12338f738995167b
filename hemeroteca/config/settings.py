"""
Hemeroteca Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class SimilarityAlgorithm(str, Enum):
    """Available text similarity scorers."""
    EDIT_DISTANCE = "edit_distance"
    TOKEN_SET = "token_set"
    TOKEN_SORT = "token_sort"


class OptInOperator(str, Enum):
    """How opt-in terms combine when filtering feed entries."""
    AND = "and"
    OR = "or"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """Network fetch configuration."""
    parallel_feeds: int = Field(default=4, ge=1, le=64, description="Concurrent feed sources per pass")
    parallel_links_per_feed: int = Field(default=8, ge=1, le=64, description="Concurrent article pages per feed")
    request_timeout: float = Field(default=20.0, gt=0, le=300, description="Per-request timeout in seconds")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per request before giving up")
    backoff_base: float = Field(default=1.0, ge=0.0, le=60.0, description="First retry delay in seconds")
    backoff_max: float = Field(default=30.0, ge=0.0, le=600.0, description="Upper bound for retry delays")
    jitter: bool = Field(default=True, description="Randomize retry delays")
    retry_status_codes: List[int] = Field(
        default_factory=lambda: [408, 429, 500, 502, 503, 504],
        description="HTTP statuses that are retried",
    )
    user_agent: str = Field(
        default="Hemeroteca/0.3 (feed archiver)",
        description="User-Agent header sent with every request",
    )

    @model_validator(mode="after")
    def validate_backoff(self):
        """Ensure the backoff ceiling is not below the base delay."""
        if self.backoff_max < self.backoff_base:
            raise ValueError("backoff_max must be >= backoff_base")
        return self


class DedupSettings(BaseModel):
    """Similarity deduplication policy."""
    duplicate_threshold: float = Field(
        default=0.9, ge=0.0, le=1.0,
        description="Similarity at or above which a candidate is a duplicate",
    )
    algorithm: SimilarityAlgorithm = Field(
        default=SimilarityAlgorithm.EDIT_DISTANCE, description="Similarity scorer"
    )
    fingerprint_length: int = Field(
        default=2000, ge=50, le=100000,
        description="Characters of normalized text kept in a fingerprint",
    )
    tie_epsilon: float = Field(default=1e-9, ge=0.0, le=0.01, description="Score tolerance for ties")


class IngestionSettings(BaseModel):
    """Feed source and extraction configuration."""
    feeds_file: str = Field(default="feeds.txt", description="File listing feed URLs")
    default_fetch_interval_minutes: int = Field(
        default=60, ge=1, le=7 * 24 * 60, description="Interval used when a feed line has none"
    )
    opt_in: List[str] = Field(default_factory=list, description="Categories or keywords to keep")
    operator: OptInOperator = Field(default=OptInOperator.OR, description="Opt-in combination")
    max_content_length: int = Field(
        default=50000, ge=500, le=1_000_000, description="Max normalized text length"
    )

    @field_validator("opt_in")
    @classmethod
    def normalize_opt_in(cls, v):
        """Lowercase and drop blank opt-in terms."""
        return [term.strip().lower() for term in v if term and term.strip()]


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/hemeroteca.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/hemeroteca.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class HemerotecaSettings(BaseSettings):
    """Main application settings."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    dedup: DedupSettings = Field(default_factory=DedupSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="Hemeroteca", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "HEMEROTECA_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> HemerotecaSettings:
    """Load settings from environment variables and defaults.

    Environment variables override Pydantic Field defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = HemerotecaSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[HemerotecaSettings] = None


def get_settings(reload: bool = False) -> HemerotecaSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
