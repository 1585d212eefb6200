from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_POOL_TIMEOUT_SECONDS: float = 5.0  # wait for a free pooled connection

    # =================================================================
    # QUERY ANALYTICS - retention and aggregation
    # =================================================================
    EVENT_TTL_SECONDS: int = 86400
    COUNTER_TTL_SECONDS: int = 86400
    STATS_CACHE_TTL_SECONDS: int = 600  # 10 minutes, two recompute cycles
    STATS_WINDOW_SECONDS: int = 86400
    STATS_SCHEDULE: str = "*/5 * * * *"

    # =================================================================
    # JOB QUEUE LANES
    # =================================================================
    EVENT_LANE_CONCURRENCY: int = 10
    EVENT_LANE_RETRIES: int = 2
    EVENT_LANE_KEEP_COMPLETED: int = 100
    EVENT_LANE_KEEP_FAILED: int = 50
    STATS_LANE_RETRIES: int = 1
    STATS_LANE_KEEP_COMPLETED: int = 10
    STATS_LANE_KEEP_FAILED: int = 5
    JOB_LOCK_TTL_SECONDS: int = 30
    JOB_POLL_INTERVAL_SECONDS: float = 1.0
    JOB_BLOCKING_CLAIMS: bool = True  # BLMOVE on the event lane instead of polling
    ANALYTICS_WORKERS_ENABLED: bool = True

    # SWAPI settings
    SWAPI_BASE_URL: str = "https://swapi.dev/api"
    SWAPI_TIMEOUT_SECONDS: float = 5.0
    RESOURCE_COUNT_CACHE_SECONDS: int = 300

    CORS_ALLOWED_ORIGINS: list[str] = ["http://localhost:8080"]

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_event_lane_config(self) -> dict:
        """Keyword arguments for the event-persistence lane."""
        return {
            "name": "query-events",
            "concurrency": self.EVENT_LANE_CONCURRENCY,
            "retries": self.EVENT_LANE_RETRIES,
            "keep_completed": self.EVENT_LANE_KEEP_COMPLETED,
            "keep_failed": self.EVENT_LANE_KEEP_FAILED,
            "default_priority": 1,
            "lock_ttl_s": self.JOB_LOCK_TTL_SECONDS,
            "exclusive": False,
        }

    def get_stats_lane_config(self) -> dict:
        """Keyword arguments for the recurring stats lane."""
        return {
            "name": "query-stats",
            "concurrency": 1,
            "retries": self.STATS_LANE_RETRIES,
            "keep_completed": self.STATS_LANE_KEEP_COMPLETED,
            "keep_failed": self.STATS_LANE_KEEP_FAILED,
            "default_priority": 10,
            "lock_ttl_s": self.JOB_LOCK_TTL_SECONDS,
            "exclusive": True,
        }


settings = Settings()
