from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
    )

    bot_token: str = Field(..., alias="BOT_TOKEN")
    database_url: str = Field(..., alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")

    # Ledger currency given to newly seen groups. Amounts in other currencies
    # must be converted before they reach the ledger.
    default_currency: str = Field("USD", alias="DEFAULT_CURRENCY")

    # Bot replies are removed after this many seconds; 0 keeps them.
    reply_ttl_seconds: float = Field(120.0, alias="REPLY_TTL_SECONDS")

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter ISO code")
        return v


settings = Settings()
