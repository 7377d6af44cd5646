# backend/barbershop/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./barbershop.db"
    redis_url: str = "redis://localhost:6379/0"

    # Business hours (single timezone, same every day)
    open_time: str = "09:00"
    close_time: str = "17:00"
    slot_step_minutes: int = 30

    # memory / redis / off
    cache_backend: str = "memory"
    cache_ttl_ms: int = 3000

    default_service_duration: int = 30

    cleanup_interval_seconds: int = 3600
    cleanup_retention_days: int = 1

    change_bridge_enabled: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite+aiosqlite:///./"):
            # Relative sqlite paths are resolved against the repository root
            relative_path = url.replace("sqlite+aiosqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite+aiosqlite:///{absolute_path}"
        return url


settings = Settings()
