"""finassist configuration via environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FINASSIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Skill engine ---
    SKILL_TIMEOUT_MS: float = 30_000
    SKILL_MAX_RETRIES: int = 2
    SKILL_MIN_USEFULNESS: float = 3.0
    ENABLE_METRICS: bool = True
    ENABLE_CACHING: bool = True
    ENABLE_CIRCUIT_BREAKER: bool = True

    # --- Execution cache ---
    SKILL_CACHE_TTL_MS: float = 300_000
    SKILL_CACHE_MAX_SIZE: int = 1000

    # --- Circuit breaker ---
    CIRCUIT_FAILURE_THRESHOLD: int = 5
    CIRCUIT_COOLDOWN_MS: float = 60_000

    # --- Metrics ---
    METRICS_RETENTION_DAYS: int = 30

    # --- Research agent ---
    RESEARCH_SEARCH_URL: str = ""
    RESEARCH_API_KEY: str = ""
    RESEARCH_HTTP_TIMEOUT_S: float = 10.0
    RESEARCH_RECENCY_DAYS: int = 30

    # --- Logging ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # --- CORS (admin API) ---
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8081"]

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_positive(self) -> "Settings":
        if self.SKILL_TIMEOUT_MS <= 0:
            raise ValueError("SKILL_TIMEOUT_MS must be positive")
        if self.SKILL_CACHE_MAX_SIZE < 1:
            raise ValueError("SKILL_CACHE_MAX_SIZE must be at least 1")
        if self.CIRCUIT_FAILURE_THRESHOLD < 1:
            raise ValueError("CIRCUIT_FAILURE_THRESHOLD must be at least 1")
        return self


settings = Settings()
