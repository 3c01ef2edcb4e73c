import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Pinme - Toy Reminders"
    API_V1_STR: str = "/api/v1"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Database
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "postgres")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "pinme_db")
    DATABASE_URL: str | None = None

    FIREBASE_CREDENTIALS: str = "firebase-service-account.json"
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = None
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev_secret_key_change_me_in_prod")

    # Reminder engine
    LOCAL_CACHE_PATH: str = os.path.join(os.path.expanduser("~"), ".pinme", "local_cache.json")
    HISTORY_LIMIT: int = 200
    HUB_USER_ID: Optional[str] = None  # account the background runtime acts as
    IDLE_SCAN_INTERVAL_HOURS: int = 6  # 0 disables the periodic scan
    TIMEZONE: str = "UTC"  # wall clock used for tidy-up times

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=os.path.join(os.path.dirname(__file__), "..", "..", ".env"), case_sensitive=True, extra="ignore")

    def __init__(self, **data):
        super().__init__(**data)
        if not self.DATABASE_URL:
             self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
