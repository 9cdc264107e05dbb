from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    DATABASE_URL: str
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 5 * 60
    DB_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"

    RECOMMENDATION_CACHE_HOURS: int = 24
    MAX_CANDIDATE_JOBS: int = 50
    MIN_MATCH_SCORE: float = 50
    CLEANUP_AFTER_DAYS: int = 30
    ADMIN_BATCH_CONCURRENCY: int = 10

    model_config = SettingsConfigDict(
        env_file=".env", validate_assignment=True, extra="allow"
    )

@lru_cache
def get_settings():
    return Settings()
