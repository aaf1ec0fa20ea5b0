# app/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Panchtatva"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # AWS Configuration
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-haiku-20240307-v1:0"

    # Case priority scoring
    PRIORITY_BEDROCK_MODEL_ID: str = ""  # falls back to BEDROCK_MODEL_ID
    PRIORITY_MAX_TOKENS: int = 1000
    PRIORITY_TEMPERATURE: float = 0.2
    PRIORITY_READ_TIMEOUT: int = 60  # seconds

    @field_validator("BEDROCK_MODEL_ID", "PRIORITY_BEDROCK_MODEL_ID", mode="before")
    @classmethod
    def strip_model_id(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    # Case priority scheduler
    # Exactly one process may run the scheduler; the run lock is in-memory.
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "Asia/Kolkata"
    SCHEDULER_HOURLY_MINUTE: int = 0
    SCHEDULER_DAILY_HOUR: int = 2
    SCHEDULER_DAILY_MINUTE: int = 0
    SCHEDULER_SELECTION_LIMIT: int = 20
    SCHEDULER_REANALYZE_AFTER_HOURS: int = 24
    SCHEDULER_BATCH_SIZE: int = 5
    SCHEDULER_BATCH_DELAY_SECONDS: float = 2.0
    SCHEDULER_HEALTHY_WITHIN_HOURS: int = 2

    # Urgent case query
    URGENT_PRIORITY_THRESHOLD: int = 80
    URGENT_DELAY_DAYS: int = 30
    URGENT_HEARING_WINDOW_DAYS: int = 7

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def priority_model_id(self) -> str:
        return self.PRIORITY_BEDROCK_MODEL_ID or self.BEDROCK_MODEL_ID

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return ["http://localhost:3000"]


# Create settings instance
settings = Settings()
