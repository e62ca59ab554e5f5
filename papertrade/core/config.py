"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here. No scattered magic strings.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        rate_limit_default: Default rate limit for all endpoints.
        rate_limit_heavy: Rate limit for endpoints that call paid upstreams.
        starting_balance: Virtual cash credited to every new account.
        supabase_url: Base URL of the identity provider.
        supabase_anon_key: Public API key sent alongside user tokens.
        polygon_api_key: Market data provider key. Refresh is disabled without it.
        openai_api_key: Recommendation model key.

    Ledger storage defaults to a local SQLite file. Set DATABASE_URL, or the
    postgres_* values, to use PostgreSQL.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    project_name: str = "PaperTrade"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_default: str = "60/minute"
    rate_limit_heavy: str = "10/minute"

    # Ledger storage
    database_url: Optional[str] = None
    postgres_user: Optional[str] = None
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "papertrade"
    sqlite_path: str = "papertrade.db"

    starting_balance: Decimal = Decimal("100000.00")

    # Identity provider
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    # Market data
    polygon_api_key: Optional[str] = None
    polygon_base_url: str = "https://api.polygon.io"
    market_refresh_enabled: bool = False
    market_refresh_interval_seconds: int = 60
    market_request_delay_seconds: float = 0.1
    seed_symbols: list[str] = [
        "AAPL", "GOOGL", "MSFT", "AMZN", "META", "TSLA", "NVDA", "JPM", "V", "WMT",
    ]

    # Recommendations
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    openai_base_url: str = "https://api.openai.com/v1"
    recommendation_count: int = 3
    recommendation_max_items: int = 10

    http_timeout_seconds: float = 30.0

    def get_database_url(self) -> str:
        """Return the effective SQLAlchemy URL for ledger storage.

        Priority:
        1. Explicit `DATABASE_URL`
        2. Built from postgres_* values when `POSTGRES_USER` is set
        3. Local SQLite file at `sqlite_path`
        """
        if self.database_url:
            return self.database_url
        if self.postgres_user:
            return (
                f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}@"
                f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        return f"sqlite:///{self.sqlite_path}"


settings = Settings()
