"""Upload-to-flashcards pipeline.

Subjects are created with an optional uploaded file; its extracted text
becomes the first Topic. Flashcards are generated per topic and committed as
one batch once the whole batch has validated.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from revision_ai.config import Settings, get_settings
from revision_ai.extraction import Extractor, NormalizedText
from revision_ai.flashcards import FlashcardGenerator, GenerationCancelled, GenerationError, ModelUnavailable
from revision_ai.models import Difficulty, Flashcard, FlashcardDraft, Subject, Topic, UploadedFile, new_id
from revision_ai.scheduling import ReviewScheduler
from revision_ai.streaks import StreakTracker
from revision_ai.utils import ensure_utc, get_logger, log_error, set_request_context

LOG = get_logger()


class Upload(BaseModel):
    filename: str = 'uploaded'
    mime_type: str = 'application/octet-stream'
    data: bytes


@dataclass
class SubjectCreation:
    subject: Subject
    topic: Optional[Topic] = None
    extraction: Optional[NormalizedText] = None


class IngestionPipeline:
    def __init__(
        self,
        store,
        extractor: Optional[Extractor] = None,
        generator: Optional[FlashcardGenerator] = None,
        scheduler: Optional[ReviewScheduler] = None,
        streaks: Optional[StreakTracker] = None,
        settings: Optional[Settings] = None,
    ):
        s = settings or get_settings()
        self.store = store
        self.extractor = extractor or Extractor(settings=s)
        self._generator = generator
        self.scheduler = scheduler or ReviewScheduler.from_settings(s)
        self.streaks = streaks or StreakTracker(store)
        self.retry_attempts = s.GENERATION_RETRY_ATTEMPTS
        self.retry_multiplier = s.GENERATION_RETRY_MULTIPLIER
        self.retry_max_wait = s.GENERATION_RETRY_MAX_WAIT

    @property
    def generator(self) -> FlashcardGenerator:
        if self._generator is None:
            self._generator = FlashcardGenerator.get_instance()
        return self._generator

    def list_subjects(self, user_id: str) -> List[Subject]:
        return self.store.list_subjects(user_id)

    def create_subject(
        self,
        user_id: str,
        name: str,
        now: datetime,
        description: str = '',
        difficulty=None,
        upload: Optional[Upload] = None,
    ) -> SubjectCreation:
        now = ensure_utc(now)
        subject = Subject(
            user_id=user_id,
            name=name or '',
            description=description or '',
            difficulty=Difficulty.parse(difficulty),
            created_at=now,
        )
        extraction = None
        if upload is not None:
            # extraction errors surface before anything is stored
            extraction = self.extractor.extract(upload.data, upload.mime_type)
            subject.files.append(UploadedFile(name=upload.filename, mime_type=upload.mime_type, uploaded_at=now))

        subject = self.store.create_subject(subject)
        topic = None
        if extraction is not None and extraction.text:
            topic = self._store_topic(subject, upload.filename, extraction, subject.difficulty, now)
        LOG.info('subject_created', extra={'subject_id': subject.id, 'user_id': user_id, 'has_topic': topic is not None})
        return SubjectCreation(subject=subject, topic=topic, extraction=extraction)

    def add_upload(self, subject_id: str, upload: Upload, now: datetime, difficulty=None) -> SubjectCreation:
        """Attach another file to a subject. Each upload yields a new Topic."""
        now = ensure_utc(now)
        subject = self.store.get_subject(subject_id)
        extraction = self.extractor.extract(upload.data, upload.mime_type)
        subject.files.append(UploadedFile(name=upload.filename, mime_type=upload.mime_type, uploaded_at=now))
        subject = self.store.update_subject(subject)
        topic = None
        if extraction.text:
            topic = self._store_topic(subject, upload.filename, extraction, Difficulty.parse(difficulty, subject.difficulty), now)
        return SubjectCreation(subject=subject, topic=topic, extraction=extraction)

    def add_topic_text(self, subject_id: str, title: str, content: str, now: datetime, difficulty=None) -> Topic:
        now = ensure_utc(now)
        subject = self.store.get_subject(subject_id)
        extraction = self.extractor.extract((content or '').encode('utf-8'), 'text/plain')
        if not extraction.text:
            raise ValueError('Topic content is empty')
        return self._store_topic(subject, title or 'Untitled', extraction, Difficulty.parse(difficulty, subject.difficulty), now)

    def _store_topic(self, subject: Subject, title: str, extraction: NormalizedText, difficulty: Difficulty, now: datetime) -> Topic:
        topic = Topic(
            user_id=subject.user_id,
            subject_id=subject.id,
            title=title,
            content=extraction.text,
            difficulty=difficulty,
            truncated=extraction.truncated,
            created_at=now,
        )
        topic = self.store.add_topic(topic)
        self.streaks.record_activity(subject.user_id, now)
        return topic

    def _generate_with_retry(self, topic: Topic, count: Optional[int], cancel: Optional[threading.Event], request_id: str) -> List[FlashcardDraft]:
        retryer = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=self.retry_max_wait),
            retry=retry_if_exception_type(ModelUnavailable),
            before_sleep=before_sleep_log(LOG, logging.WARNING),
            reraise=True,
        )
        return retryer(
            self.generator.generate,
            topic.content,
            count=count,
            cancel=cancel,
            default_difficulty=topic.difficulty,
            request_id=request_id,
        )

    def generate_flashcards(
        self,
        topic_id: str,
        now: datetime,
        count: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[Flashcard]:
        now = ensure_utc(now)
        topic = self.store.get_topic(topic_id)
        request_id = new_id()
        set_request_context(request_id, user_id=topic.user_id)
        try:
            drafts = self._generate_with_retry(topic, count, cancel, request_id)
        except GenerationError as e:
            LOG.warning('topic_generation_failed', extra={'topic_id': topic_id, 'error_type': type(e).__name__, 'error': str(e)})
            raise
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled('Generation cancelled before commit')

        cards = [
            Flashcard(
                user_id=topic.user_id,
                subject_id=topic.subject_id,
                topic_id=topic.id,
                question=d.question,
                answer=d.answer,
                difficulty=d.difficulty,
                state=self.scheduler.initial_state(now),
                created_at=now,
            )
            for d in drafts
        ]
        try:
            stored = self.store.add_flashcards(cards)
        except Exception as e:
            log_error(e, {'topic_id': topic_id, 'count': len(cards)})
            raise
        LOG.info('flashcards_committed', extra={'topic_id': topic_id, 'count': len(stored)})
        return stored

    def answer_question(self, topic_id: str, question: str, cancel: Optional[threading.Event] = None) -> str:
        topic = self.store.get_topic(topic_id)
        return self.generator.answer_question(question, context=topic.content, cancel=cancel)
