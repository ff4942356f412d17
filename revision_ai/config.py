from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    # Generative model
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = 'gpt-4o-mini'
    OPENAI_TIMEOUT: float = Field(60.0, gt=0)
    FLASHCARD_MAX_TOKENS: int = Field(1500, gt=0)
    FLASHCARD_TEMPERATURE: float = Field(0.5, ge=0, le=2)
    FLASHCARD_DEFAULT_COUNT: int = Field(10, ge=1)
    FLASHCARD_MAX_COUNT: int = Field(50, ge=1)

    # Retry policy owned by the ingestion pipeline, not the adapter
    GENERATION_RETRY_ATTEMPTS: int = Field(2, ge=1)
    GENERATION_RETRY_MULTIPLIER: float = Field(1.0, ge=0)
    GENERATION_RETRY_MAX_WAIT: float = Field(10.0, ge=0)

    # Extractor
    EXTRACTOR_MAX_CHARS: int = Field(50000, ge=1)
    EXTRACTOR_MAX_PDF_PAGES: int = Field(200, ge=1)

    # Scheduler
    SCHEDULER_INITIAL_EASE: float = 2.5
    SCHEDULER_MIN_EASE: float = 1.3
    SCHEDULER_FAIL_PENALTY: float = Field(0.2, ge=0)
    SCHEDULER_FIRST_INTERVAL_DAYS: int = Field(1, ge=1)
    SCHEDULER_SECOND_INTERVAL_DAYS: int = Field(6, ge=1)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
