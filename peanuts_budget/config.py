"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    service_name: str = "peanuts-budget"
    log_level: str = "INFO"

    # Calendar
    timezone: str = "UTC"  # IANA zone used to turn stored instants into calendar days

    # Ledger defaults
    default_rrule: str = "FREQ=MONTHLY;BYMONTHDAY=1"
    inflow_budget_name: str = "Inflow"

    # Recurring scheduler
    scheduler_poll_seconds: float = 60.0
    scheduler_lookahead_days: int = 0
    scheduler_max_catch_up_passes: int = 1000


settings = Settings()
