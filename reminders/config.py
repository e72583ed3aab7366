from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./reminders.db"

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    log_level: str = "INFO"

    # Calendar day used for "today" and the once-per-day dispatch window
    reference_timezone: str = "UTC"

    # Rolling window evaluated on every run: [today - back, today + ahead]
    window_days_back: int = 7
    window_days_ahead: int = 3

    check_reminders_interval: int = 3600
    upcoming_days_ahead: int = 7

    # Role that receives cross-level escalations together with the unit manager
    escalation_role: str = "superadmin"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "REMINDERS_"


@lru_cache
def get_settings() -> Settings:
    return Settings()
