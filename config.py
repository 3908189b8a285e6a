"""
Configuration settings for the adaptive playlist engine.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are read with the PLAYLIST_ prefix, e.g. PLAYLIST_SKIP_MASTERY_THRESHOLD=0.75.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLAYLIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Strategy Thresholds
    # ========================================
    skip_mastery_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Mastery every taught node needs before a skippable unit is skipped",
    )
    practice_question_count: int = Field(
        default=5,
        ge=1,
        description="Minimum question count for injected practice entries",
    )
    review_mastery_floor: float = Field(
        default=0.40,
        ge=0.0,
        le=1.0,
        description="Below this mastery the full strategy prescribes a review before a gate",
    )
    proactive_injection_enabled: bool = Field(
        default=True,
        description="Let the full strategy inject preparation entries ahead of gates",
    )

    # ========================================
    # Gate Defaults (for gates without a config)
    # ========================================
    default_mastery_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    default_min_questions: int = Field(default=3, ge=1)
    default_max_retries: int = Field(
        default=2,
        ge=-1,
        description="Max retries after a failed gate (-1 = unlimited)",
    )
    default_fail_strategy: Literal[
        "allow-continue", "hold", "inject-practice", "prescribe-review"
    ] = "hold"

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Loguru level for the CLI sink",
    )

    def get_gate_defaults(self) -> dict[str, float | int | str]:
        """Get the fallback gate configuration as a dictionary."""
        return {
            "mastery_threshold": self.default_mastery_threshold,
            "min_questions": self.default_min_questions,
            "max_retries": self.default_max_retries,
            "fail_strategy": self.default_fail_strategy,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
