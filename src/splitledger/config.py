from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    database_url: str = Field("postgresql://localhost/splitledger", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # per group member, so a 4-person group tolerates 4 cents of drift
    balance_tolerance_cents: int = Field(1, alias="BALANCE_TOLERANCE_CENTS")
    overpayment_buffer: float = Field(0.10, alias="OVERPAYMENT_BUFFER")
    currency_symbol: str = Field("$", alias="CURRENCY_SYMBOL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
