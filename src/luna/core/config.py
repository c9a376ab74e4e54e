"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: LUNA_
"""

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LUNA_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # LLM
    anthropic_api_key: str = Field(default="", description="Claude API key")
    model: str = Field(default="claude-3-5-haiku-latest", description="Responder model")
    max_tokens: int = Field(default=85, description="Max tokens per chat reply")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    archive_db_name: str = Field(default="threads.db", description="Thread archive database")

    # Memory tiers (seconds)
    short_term_seconds: int = Field(default=5 * 60, description="SHORT tier max age")
    medium_term_seconds: int = Field(default=30 * 60, description="MEDIUM tier max age")
    long_term_seconds: int = Field(default=2 * 60 * 60, description="LONG tier max age")

    # Memory tiers (max entries, oldest evicted first)
    short_term_limit: int = Field(default=100, gt=0, description="SHORT tier capacity")
    medium_term_limit: int = Field(default=500, gt=0, description="MEDIUM tier capacity")
    long_term_limit: int = Field(default=1000, gt=0, description="LONG tier capacity")
    unscoped_limit: int = Field(default=100, gt=0, description="Queued (unscoped) capacity")

    # Threads
    thread_idle_seconds: int = Field(default=5 * 60, description="Idle time before thread eviction")
    thread_history_limit: int = Field(default=25, description="Messages kept per thread")

    # Context assembly
    context_window_size: int = Field(default=15, description="Thread messages per snapshot")
    top_memories: int = Field(default=5, description="Memories per snapshot")

    # Promotion
    promotion_interval_seconds: int = Field(default=60, description="Promotion cycle interval")
    promotion_probability: float = Field(
        default=0.1, description="Chance of a promotion cycle per context build"
    )
    promotion_long_threshold: float = Field(default=0.7)
    promotion_medium_threshold: float = Field(default=0.4)
    relationship_weight: float = Field(default=0.4)
    marker_weight: float = Field(default=0.35)
    interaction_weight: float = Field(default=0.25)

    # Maintenance
    cleanup_interval_seconds: int = Field(default=60, description="Expired entry sweep interval")
    sweep_interval_seconds: int = Field(default=60, description="Idle thread sweep interval")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.archive_db_name

    @property
    def thread_idle_timeout(self) -> timedelta:
        return timedelta(seconds=self.thread_idle_seconds)

    def tier_max_ages(self) -> dict[str, timedelta]:
        """Max age per tier name, UNSCOPED sharing the SHORT lifetime."""
        short = timedelta(seconds=self.short_term_seconds)
        return {
            "short": short,
            "medium": timedelta(seconds=self.medium_term_seconds),
            "long": timedelta(seconds=self.long_term_seconds),
            "unscoped": short,
        }

    def tier_limits(self) -> dict[str, int]:
        """Max entries per tier name."""
        return {
            "short": self.short_term_limit,
            "medium": self.medium_term_limit,
            "long": self.long_term_limit,
            "unscoped": self.unscoped_limit,
        }


def get_settings() -> Settings:
    """Load settings from environment and .env."""
    return Settings()
