import json
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "https://project-crypto-pink.vercel.app",
]


class Settings(BaseSettings):
    app_name: str = "Crypto Proxy Gateway"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 4000
    log_level: str = "INFO"

    upstream_base_url: str = "https://api.coingecko.com/api/v3"
    upstream_api_key_header: str = "X-CG-Demo-API-Key"
    upstream_timeout_seconds: float = 10.0
    coingecko_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("coingecko_api_key", "vite_api_key"),
    )

    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    allowed_vs_currencies: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["usd", "eur", "btc", "eth"])

    cache_ttl_seconds: int = 900

    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    rate_limit_per_client: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("cors_allowed_origins", "allowed_vs_currencies", mode="before")
    @classmethod
    def _split_list(cls, value):
        # Accept both a JSON list and a comma separated string from the environment
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @field_validator("allowed_vs_currencies")
    @classmethod
    def _lowercase_currencies(cls, value: list[str]) -> list[str]:
        return [item.lower() for item in value]


settings = Settings()
