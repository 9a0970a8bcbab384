from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase / Postgres settings
    SUPABASE_DB_URL: str = ""

    # Optional shared cache tier; in-process caches are used when unset
    REDIS_URL: str | None = None

    # External API credentials (checked at discovery time, not at startup)
    OPENAI_API_KEY: str | None = None
    BRAVE_API_KEY: str | None = None

    # =================================================================
    # COMPLETION API SETTINGS
    # =================================================================
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 45.0
    OPENAI_MIN_INTERVAL_MS: int = 2000
    OPENAI_COOLDOWN_SECONDS: float = 300.0
    OPENAI_MAX_RETRIES: int = 1
    OPENAI_BACKOFF_BASE_SECONDS: float = 1.0
    OPENAI_BACKOFF_CAP_SECONDS: float = 8.0
    VALIDATION_TEMPERATURE: float = 0.4
    RANKING_TEMPERATURE: float = 0.3
    SUGGESTION_TEMPERATURE: float = 0.5

    # =================================================================
    # CACHE SETTINGS
    # =================================================================
    DISCOVERY_CACHE_TTL_SECONDS: int = 600  # 10 minutes
    COMPLETION_CACHE_TTL_SECONDS: int = 600
    SITE_SUGGESTION_TTL_DAYS: int = 3
    VISITED_URL_RETENTION_HOURS: int = 24
    SITE_SUGGESTIONS_ENABLED: bool = True

    # =================================================================
    # PIPELINE SETTINGS
    # =================================================================
    BRAVE_SEARCH_URL: str = "https://api.search.brave.com/res/v1/web/search"
    SEARCH_TIMEOUT_SECONDS: float = 10.0
    SEARCH_DELAY_SECONDS: float = 1.1
    QUERIES_PER_INTEREST: int = 2
    LISTING_FETCH_TIMEOUT_SECONDS: float = 10.0
    PAGE_FETCH_TIMEOUT_SECONDS: float = 8.0
    PAGE_FETCH_CONCURRENCY: int = 4
    MAX_EVENT_LINKS: int = 60
    MAX_VALIDATION_BATCH: int = 30
    RANKING_SKIP_THRESHOLD: int = 100
    MAX_RESULTS: int = 50
    EARLY_PERSIST_COUNT: int = 6
    RANKING_BUDGET_SECONDS: float = 20.0
    RANKING_MIN_BUDGET_SECONDS: float = 6.0
    RANKING_MIN_REMAINING_SECONDS: float = 4.0
    BACKGROUND_BUDGET_SECONDS: float = 120.0
    RAW_FALLBACK_ENABLED: bool = True
    SENSITIVE_CATEGORIES: list[str] = ["Comedy Shows"]
    DEFAULT_INTERESTS: list[str] = ["Live Music", "Food Festivals", "Visual Arts"]
    EVENT_RETENTION_DAYS: int = 1

    # Request clamps (server-side bounds for caller-supplied limits)
    REQUEST_LIMIT_BOUNDS: tuple[int, int] = (6, 100)
    REQUEST_SITES_LIMIT_BOUNDS: tuple[int, int] = (3, 30)
    REQUEST_RESULTS_PER_QUERY_BOUNDS: tuple[int, int] = (1, 10)
    REQUEST_INTERESTS_LIMIT_BOUNDS: tuple[int, int] = (1, 6)
    REQUEST_TIMEOUT_MS_BOUNDS: tuple[int, int] = (15_000, 180_000)

    # Worker job inputs
    DISCOVERY_CITY: str = "San Francisco"
    DISCOVERY_INTERESTS: list[str] = []

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def missing_credentials(self) -> list[str]:
        """Names of the API credentials a discovery run cannot start without."""
        missing = []
        if not self.OPENAI_API_KEY:
            missing.append("OPENAI_API_KEY")
        if not self.BRAVE_API_KEY:
            missing.append("BRAVE_API_KEY")
        return missing

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
