"""
EA Builder Configuration

Environment-driven settings (pydantic-settings). Each section reads its own
prefixed variables, e.g. DB_URL, LOG_LEVEL, CACHE_TTL_SECONDS,
RANKING_TOP_N, MARKETPLACE_COMMISSION_RATE; top-level options such as
PORT and CORS_ORIGINS have no prefix. A .env file in the working directory
is read as well.
"""

import json
from functools import lru_cache
from typing import Annotated, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store connection."""
    model_config = SettingsConfigDict(env_prefix="DB_")

    url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy async URL; when set, host/port/name/user/password are ignored",
    )
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="ea_builder")
    user: str = Field(default="postgres")
    password: str = Field(default="")

    # PostgreSQL pool, unused for SQLite
    pool_size: int = Field(default=10, description="Persistent connections kept open")
    max_overflow: int = Field(default=10, description="Extra connections allowed under load")
    pool_timeout: int = Field(default=30, description="Seconds to wait for a free connection")
    pool_recycle: int = Field(default=1800, description="Seconds before a connection is replaced")
    echo: bool = Field(default=False, description="Log every SQL statement")

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith("sqlite")


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    json_format: bool = Field(default=True, description="Render structlog events as JSON instead of console text")


class CacheSettings(BaseSettings):
    """Per-owner model list cache."""
    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="redis shares snapshots across workers; memory is per process, for tests",
    )
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="ea_models", description="Namespace of the cache keys in Redis")
    enabled: bool = Field(default=True)
    ttl_seconds: float = Field(default=30.0, gt=0, description="How long a cached owner list stays fresh")
    max_entries: int = Field(default=10_000, ge=1, description="Memory backend: owners kept before the oldest is evicted")


class RankingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RANKING_")

    top_n: int = Field(default=20, ge=1, description="How many models carry the top flag")


class MarketplaceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MARKETPLACE_")

    commission_rate: float = Field(default=0.20, ge=0.0, le=1.0, description="Platform cut of every sale")
    exclusive_sales: bool = Field(default=True, description="A model can be bought once, then it is sold")
    order_id_prefix: str = Field(default="order_")


class ApplicationSettings(BaseSettings):
    """All settings, one section per concern."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="EA Builder")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(default="development", description="Reported by /health and in startup logs")
    debug: bool = Field(default=False, description="Auto-reload and error details in 500 responses")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    workers: int = Field(default=1, description="uvicorn workers, forced to 1 in debug")
    api_prefix: str = Field(default="", description="Mount point of the API routers, e.g. /api")

    cors_origins: Annotated[List[str], NoDecode] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default=["*"])
    cors_allow_headers: List[str] = Field(default=["*"])

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    marketplace: MarketplaceSettings = Field(default_factory=MarketplaceSettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value):
        """Accept a JSON list or a comma separated string from the environment."""
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache()
def get_settings() -> ApplicationSettings:
    return ApplicationSettings()


settings = get_settings()
