"""Application configuration."""

from decimal import Decimal
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Demand Forecast Backend"
    app_env: str = "development"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Hourly rate applied when the fee-rate collaborator has no rate for a skill.
    default_fee_rate: Decimal = Field(default=Decimal("75.00"), ge=0)
    skill_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    placeholder_id_length: int = Field(default=8, ge=1)
    result_cache_size: int = Field(default=32, ge=1)
    # JSON objects, e.g. SKILL_FEE_RATES='{"CPA": "250.00"}'. Empty means built-in defaults.
    skill_fee_rates: dict[str, Decimal] = Field(default_factory=dict)
    skill_catalog: dict[str, str] = Field(default_factory=dict)
    # Keep .env support for comma-separated values (non-JSON).
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""

    return Settings()
