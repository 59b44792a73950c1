"""
Application configuration settings
FILE: quizcore/core/config.py
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "quiz_app"
    attempts_collection: str = "quiz_attempts"
    quizzes_collection: str = "quizzes"

    # Dashboard / leaderboard defaults
    default_leaderboard_limit: int = 10
    max_leaderboard_limit: int = 100
    recent_activity_limit: int = 10
    weekly_progress_weeks: int = 8

    # LLM Configuration (API keys are read by the LLM client)
    default_llm_provider: str = "openai"
    llm_timeout_seconds: float = 60.0

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"


settings = Settings()
