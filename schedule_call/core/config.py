from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    CALENDAR_PROVIDER: str = "memory"  # "memory" | "google"
    GOOGLE_CALENDAR_ACCESS_TOKEN: str | None = None
    GOOGLE_CALENDAR_ID: str = "primary"
    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    CALENDAR_TIMEOUT_SECONDS: float = 10.0

    BUSINESS_TIMEZONE: str = "America/Los_Angeles"
    WORK_START_HOUR: int = 9
    WORK_END_HOUR: int = 17
    SLOT_DURATION_MINUTES: int = 60


settings = Settings()
