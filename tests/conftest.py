import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('LOG_TO_FILE', 'false')
os.environ.setdefault('LOG_LEVEL', 'WARNING')
os.environ.setdefault('OPENAI_API_KEY', 'sk-test')

from revision_ai.config import Settings
from revision_ai.flashcards import FlashcardGenerator
from revision_ai.scheduling import ReviewScheduler
from revision_ai.session import InMemoryStudyStore, IngestionPipeline, StudySessionCoordinator
from fixtures.mock_model import ScriptedModel


@pytest.fixture
def settings():
    return Settings(
        OPENAI_API_KEY='sk-test',
        OPENAI_TIMEOUT=2,
        EXTRACTOR_MAX_CHARS=1000,
        FLASHCARD_DEFAULT_COUNT=5,
        FLASHCARD_MAX_COUNT=10,
        GENERATION_RETRY_ATTEMPTS=2,
        GENERATION_RETRY_MULTIPLIER=0,
        GENERATION_RETRY_MAX_WAIT=0,
    )


@pytest.fixture
def now():
    return datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def scheduler():
    return ReviewScheduler()


@pytest.fixture
def store():
    return InMemoryStudyStore()


@pytest.fixture
def scripted_model():
    return ScriptedModel()


@pytest.fixture
def generator(scripted_model, settings):
    return FlashcardGenerator(model=scripted_model, settings=settings)


@pytest.fixture
def coordinator(store, scheduler):
    return StudySessionCoordinator(store, scheduler=scheduler)


@pytest.fixture
def pipeline(store, generator, settings):
    return IngestionPipeline(store, generator=generator, settings=settings)


@pytest.fixture
def subject(pipeline, now):
    return pipeline.create_subject('user-1', 'Biology', now).subject
