from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db: str = Field(default="market_aggregator", alias="MONGODB_DB")
    loop_interval_seconds: int = Field(default=300, alias="LOOP_INTERVAL_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    http_timeout_seconds: int = Field(default=15, alias="HTTP_TIMEOUT_SECONDS")
    fetch_concurrency: int = Field(default=5, alias="FETCH_CONCURRENCY")

    predict_enabled: bool = Field(default=True, alias="PREDICT_ENABLED")
    predict_base_url: str = Field(default="https://api-testnet.predict.fun", alias="PREDICT_BASE_URL")
    predict_limit: int = Field(default=50, alias="PREDICT_LIMIT")

    probable_enabled: bool = Field(default=True, alias="PROBABLE_ENABLED")
    probable_market_api_url: str = Field(
        default="https://market-api.probable.markets/public/api/v1", alias="PROBABLE_MARKET_API_URL"
    )
    probable_clob_api_url: str = Field(
        default="https://api.probable.markets/public/api/v1", alias="PROBABLE_CLOB_API_URL"
    )
    probable_event_limit: int = Field(default=20, alias="PROBABLE_EVENT_LIMIT")

    xo_enabled: bool = Field(default=True, alias="XO_ENABLED")
    xo_api_url: str = Field(default="https://api-mainnet.xo.market/api", alias="XO_API_URL")
    xo_page_size: int = Field(default=50, alias="XO_PAGE_SIZE")

    polymarket_enabled: bool = Field(default=True, alias="POLYMARKET_ENABLED")
    polymarket_api_url: str = Field(default="https://gamma-api.polymarket.com", alias="POLYMARKET_API_URL")
    polymarket_page_size: int = Field(default=100, alias="POLYMARKET_PAGE_SIZE")
    polymarket_max_events: int = Field(default=500, alias="POLYMARKET_MAX_EVENTS")

    min_liquidity_usd: float = Field(default=500.0, alias="MIN_LIQUIDITY_USD")
    expiry_tolerance_hours: float = Field(default=24.0, alias="EXPIRY_TOLERANCE_HOURS")
    similarity_threshold: float = Field(default=0.88, alias="SIMILARITY_THRESHOLD")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
