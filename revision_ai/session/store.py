"""Persistence contract for the engine and its in-memory reference implementation.

Flashcards live in an arena keyed by id; each carries a `version` that a
review commit must match. The review ledger is append-only.
"""
from __future__ import annotations

import threading
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol

from revision_ai.models import DailyActivity, Flashcard, ReviewEvent, Subject, Topic
from revision_ai.scheduling import SchedulingState
from revision_ai.utils import ensure_utc, get_logger

LOG = get_logger()


class ConcurrencyError(Exception):
    pass


class StaleUpdate(ConcurrencyError):
    def __init__(self, flashcard_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f'Flashcard {flashcard_id} changed concurrently (expected version {expected_version}, found {actual_version})'
        )
        self.flashcard_id = flashcard_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class NotFound(LookupError):
    pass


class StudyStore(Protocol):
    def create_subject(self, subject: Subject) -> Subject: ...
    def get_subject(self, subject_id: str) -> Subject: ...
    def list_subjects(self, user_id: str) -> List[Subject]: ...
    def add_topic(self, topic: Topic) -> Topic: ...
    def get_topic(self, topic_id: str) -> Topic: ...
    def list_topics(self, subject_id: str) -> List[Topic]: ...
    def add_flashcards(self, flashcards: Iterable[Flashcard]) -> List[Flashcard]: ...
    def get_flashcard(self, flashcard_id: str) -> Flashcard: ...
    def list_flashcards(self, user_id: str, subject_id: Optional[str] = None) -> List[Flashcard]: ...
    def find_due(self, user_id: str, now: datetime, subject_id: Optional[str] = None) -> List[Flashcard]: ...
    def delete_flashcard(self, flashcard_id: str) -> None: ...
    def commit_review(self, flashcard_id: str, expected_version: int, new_state: SchedulingState, event: ReviewEvent, activity_day: Optional[date] = None) -> Flashcard: ...
    def list_review_events(self, flashcard_id: str) -> List[ReviewEvent]: ...
    def record_daily_activity(self, user_id: str, day: date) -> DailyActivity: ...
    def list_active_days(self, user_id: str) -> List[date]: ...


class InMemoryStudyStore:
    _instance = None

    def __init__(self):
        self._lock = threading.RLock()
        self._subjects: Dict[str, Subject] = {}
        self._topics: Dict[str, Topic] = {}
        self._flashcards: Dict[str, Flashcard] = {}
        self._ledger: Dict[str, List[ReviewEvent]] = defaultdict(list)
        self._activity: Dict[str, Dict[date, DailyActivity]] = defaultdict(dict)

    @classmethod
    def get_instance(cls) -> 'InMemoryStudyStore':
        if cls._instance is None:
            cls._instance = InMemoryStudyStore()
        return cls._instance

    # Subjects and topics

    def create_subject(self, subject: Subject) -> Subject:
        with self._lock:
            self._subjects[subject.id] = subject.model_copy(deep=True)
            return subject.model_copy(deep=True)

    def update_subject(self, subject: Subject) -> Subject:
        with self._lock:
            if subject.id not in self._subjects:
                raise NotFound(f'Subject {subject.id} not found')
            self._subjects[subject.id] = subject.model_copy(deep=True)
            return subject.model_copy(deep=True)

    def get_subject(self, subject_id: str) -> Subject:
        with self._lock:
            subject = self._subjects.get(subject_id)
            if subject is None:
                raise NotFound(f'Subject {subject_id} not found')
            return subject.model_copy(deep=True)

    def list_subjects(self, user_id: str) -> List[Subject]:
        with self._lock:
            subjects = [s.model_copy(deep=True) for s in self._subjects.values() if s.user_id == user_id]
        return sorted(subjects, key=lambda s: s.created_at, reverse=True)

    def add_topic(self, topic: Topic) -> Topic:
        with self._lock:
            if topic.subject_id not in self._subjects:
                raise NotFound(f'Subject {topic.subject_id} not found')
            # topics are frozen, so no copy is needed
            self._topics[topic.id] = topic
            return topic

    def get_topic(self, topic_id: str) -> Topic:
        with self._lock:
            topic = self._topics.get(topic_id)
            if topic is None:
                raise NotFound(f'Topic {topic_id} not found')
            return topic

    def list_topics(self, subject_id: str) -> List[Topic]:
        with self._lock:
            topics = [t for t in self._topics.values() if t.subject_id == subject_id]
        return sorted(topics, key=lambda t: t.created_at)

    # Flashcards

    def add_flashcards(self, flashcards: Iterable[Flashcard]) -> List[Flashcard]:
        """Insert a batch; either every card is stored or none is."""
        batch = [c.model_copy(deep=True) for c in flashcards]
        with self._lock:
            ids = set()
            for card in batch:
                if card.id in self._flashcards or card.id in ids:
                    raise ValueError(f'Duplicate flashcard id {card.id}')
                if card.subject_id not in self._subjects:
                    raise NotFound(f'Subject {card.subject_id} not found')
                ids.add(card.id)
            for card in batch:
                self._flashcards[card.id] = card
        return [c.model_copy(deep=True) for c in batch]

    def get_flashcard(self, flashcard_id: str) -> Flashcard:
        with self._lock:
            card = self._flashcards.get(flashcard_id)
            if card is None:
                raise NotFound(f'Flashcard {flashcard_id} not found')
            return card.model_copy(deep=True)

    def list_flashcards(self, user_id: str, subject_id: Optional[str] = None) -> List[Flashcard]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._flashcards.values()
                if c.user_id == user_id and (subject_id is None or c.subject_id == subject_id)
            ]

    def find_due(self, user_id: str, now: datetime, subject_id: Optional[str] = None) -> List[Flashcard]:
        now = ensure_utc(now)
        return [c for c in self.list_flashcards(user_id, subject_id) if ensure_utc(c.state.due_at) <= now]

    def delete_flashcard(self, flashcard_id: str) -> None:
        # the review ledger is kept as audit trail
        with self._lock:
            if self._flashcards.pop(flashcard_id, None) is None:
                raise NotFound(f'Flashcard {flashcard_id} not found')

    def commit_review(
        self,
        flashcard_id: str,
        expected_version: int,
        new_state: SchedulingState,
        event: ReviewEvent,
        activity_day: Optional[date] = None,
    ) -> Flashcard:
        """Compare-and-update the card, append the event and mark the day active.

        All three happen under one lock; the card is written last so a
        failure earlier leaves it untouched.
        """
        with self._lock:
            current = self._flashcards.get(flashcard_id)
            if current is None:
                raise NotFound(f'Flashcard {flashcard_id} not found')
            if current.version != expected_version:
                raise StaleUpdate(flashcard_id, expected_version, current.version)
            if event.flashcard_id != flashcard_id:
                raise ValueError('Review event does not belong to this flashcard')
            updated = current.model_copy(update={'state': new_state, 'version': current.version + 1}, deep=True)
            self._append_event(event)
            if activity_day is not None:
                try:
                    self.record_daily_activity(event.user_id, activity_day)
                except Exception:
                    self._ledger[flashcard_id].pop()
                    LOG.exception('commit_review_rolled_back', extra={'flashcard_id': flashcard_id})
                    raise
            self._flashcards[flashcard_id] = updated
            return updated.model_copy(deep=True)

    def _append_event(self, event: ReviewEvent) -> None:
        self._ledger[event.flashcard_id].append(event)

    def list_review_events(self, flashcard_id: str) -> List[ReviewEvent]:
        with self._lock:
            return list(self._ledger.get(flashcard_id, []))

    # Daily activity

    def record_daily_activity(self, user_id: str, day: date) -> DailyActivity:
        with self._lock:
            days = self._activity[user_id]
            existing = days.get(day)
            if existing is None:
                existing = DailyActivity(user_id=user_id, day=day, activity_count=1)
            else:
                existing = existing.model_copy(update={'activity_count': existing.activity_count + 1})
            days[day] = existing
            return existing

    def list_active_days(self, user_id: str) -> List[date]:
        with self._lock:
            return sorted(self._activity.get(user_id, {}).keys())
