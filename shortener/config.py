from typing import List, Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./urlshortener.db"
    REDIS_URL: Optional[str] = None
    ENVIRONMENT: str = "development"
    CLEANUP_INTERVAL_MINUTES: int = 1
    BASE_URL: Optional[str] = None
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"

settings = Settings()
