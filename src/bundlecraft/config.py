"""Configuration settings for Bundlecraft.

Values are read from ``BUNDLECRAFT_*`` environment variables or a ``.env``
file in the working directory.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BUNDLECRAFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Collection matching
    similarity_threshold: float = Field(default=0.5, gt=0.0, le=1.0)
    min_containment_length: int = Field(default=3, ge=1)
    scorer: str = "default"

    # JSONL event logs are only written when this is set
    log_dir: Path | None = None
    verbosity: int = Field(default=0, ge=0, le=2)

    def ensure_log_dir(self) -> None:
        """Create the log directory if one is configured."""
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None
