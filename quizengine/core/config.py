"""
Application configuration management with environment-based settings.
"""
from typing import List, Optional
from functools import lru_cache
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import Field, validator

load_dotenv()

class Settings(BaseSettings):
    """Main application settings."""

    # ============= Application Settings =============
    APP_NAME: str = "Quiz Assessment Engine"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Timed quiz attempts, automatic grading and reporting"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    API_V1_PREFIX: str = "/v1"

    # ============= Security Settings =============
    APP_SECRET: str = Field(default="dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120
    CORS_ORIGINS: List[str] = ["*"]

    # ============= Persistence Settings =============
    STORE_BACKEND: str = Field(default="memory")  # memory, sql or redis
    DATABASE_URL: str = Field(default="sqlite:///./quizengine.db")
    DATABASE_ECHO: bool = False
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_KEY_PREFIX: str = "quizengine"

    # ============= Queue Settings =============
    RQ_QUEUE: str = "regrade"
    RQ_JOB_TIMEOUT: int = 600

    # ============= Assessment Settings =============
    CANONICAL_LANGUAGE: str = "english"
    TICK_SECONDS: float = 1.0
    PASS_THRESHOLD_PCT: float = 40.0
    CERTIFICATE_THRESHOLD_PCT: float = 50.0
    LEADERBOARD_SIZE: int = 10

    # ============= Logging Settings =============
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @validator("CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    @validator("STORE_BACKEND")
    def check_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sql", "redis"):
            raise ValueError(f"unsupported store backend: {v}")
        return v

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT.lower() == "production"

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

# Export settings instance
settings = get_settings()
