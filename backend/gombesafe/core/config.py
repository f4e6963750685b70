from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    environment: str = "development"
    api_prefix: str = "/api"

    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Durable append-only event log (SQLAlchemy URL). Unset keeps everything in memory.
    event_log_url: Optional[str] = None
    seed_demo_data: bool = True

    # Optional Redis cache for window statistics
    redis_url: str = "redis://localhost:6379/0"
    stats_cache_enabled: bool = False
    stats_cache_ttl_seconds: int = 15

    # Spatial index grid cell size in degrees (~1.1 km at the equator)
    spatial_cell_size_deg: float = 0.01

    # Aggregation windows
    default_stats_hours: int = 24
    max_hours_back: int = 24 * 365

    # Real-time incident broadcasts
    realtime_enabled: bool = True
    websocket_heartbeat_interval: int = 30  # Heartbeat interval in seconds

    # Offline sync replay
    sync_max_attempts: int = 5
    sync_backoff_base_seconds: float = 2.0
    sync_backoff_max_seconds: float = 300.0
    sync_queue_url: str = "sqlite:///./data/sync_queue.db"
    sync_request_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
