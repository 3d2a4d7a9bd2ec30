from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    SQL_ECHO: bool = False

    # Supabase Auth
    SUPABASE_URL: str
    SUPABASE_JWT_SECRET: Optional[str] = None

    # Notification service (fire-and-forget HTTP publish)
    NOTIFICATION_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_WORKERS: int = 4

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"  # standard | json

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
