from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from revision_ai.models import Difficulty, Flashcard, ReviewEvent
from revision_ai.scheduling import ReviewScheduler, SchedulingError, SchedulingState
from revision_ai.streaks import StreakState, StreakTracker
from revision_ai.utils import ensure_utc, get_logger, log_review, utc_day
from .store import ConcurrencyError, NotFound

LOG = get_logger()


@dataclass
class ReviewFailure:
    flashcard_id: str
    grade: Any
    error: Exception


@dataclass
class ReviewBatchResult:
    applied: List[Flashcard] = field(default_factory=list)
    failed: List[ReviewFailure] = field(default_factory=list)


def due_order(card: Flashcard) -> Tuple[datetime, int, str]:
    # least-learned cards first among equally due ones
    return ensure_utc(card.state.due_at), card.state.repetitions, card.id


class StudySessionCoordinator:
    def __init__(self, store, scheduler: Optional[ReviewScheduler] = None, streaks: Optional[StreakTracker] = None):
        self.store = store
        self.scheduler = scheduler or ReviewScheduler.from_settings()
        self.streaks = streaks or StreakTracker(store)

    def due_cards(self, user_id: str, now: datetime, subject_id: Optional[str] = None, limit: Optional[int] = None) -> List[Flashcard]:
        cards = sorted(self.store.find_due(user_id, now, subject_id=subject_id), key=due_order)
        if limit is not None:
            cards = cards[:max(0, limit)]
        return cards

    def add_flashcard(
        self,
        user_id: str,
        subject_id: str,
        question: str,
        answer: str,
        now: datetime,
        difficulty: Difficulty = Difficulty.MEDIUM,
        topic_id: Optional[str] = None,
    ) -> Flashcard:
        question = (question or '').strip()
        answer = (answer or '').strip()
        if not question or not answer:
            raise ValueError('Flashcard question and answer are required')
        now = ensure_utc(now)
        card = Flashcard(
            user_id=user_id,
            subject_id=subject_id,
            topic_id=topic_id,
            question=question,
            answer=answer,
            difficulty=Difficulty.parse(difficulty),
            state=self.scheduler.initial_state(now),
            created_at=now,
        )
        return self.store.add_flashcards([card])[0]

    def delete_flashcard(self, flashcard_id: str) -> None:
        self.store.delete_flashcard(flashcard_id)
        LOG.info('flashcard_deleted', extra={'flashcard_id': flashcard_id})

    def submit_review(self, flashcard_id: str, grade: int, now: datetime) -> Flashcard:
        """Grade one card.

        The scheduling update, the ledger entry and the day's activity are
        committed together against the version read here. StaleUpdate means
        another review won the race; refetch and resubmit.
        """
        now = ensure_utc(now)
        card = self.store.get_flashcard(flashcard_id)
        try:
            new_state = self.scheduler.review(card.state, grade, now)
        except SchedulingError:
            LOG.warning('review_rejected', extra={'flashcard_id': flashcard_id, 'grade': repr(grade)})
            raise
        event = ReviewEvent(flashcard_id=card.id, user_id=card.user_id, grade=grade, reviewed_at=now)
        try:
            updated = self.store.commit_review(card.id, card.version, new_state, event, activity_day=utc_day(now))
        except ConcurrencyError:
            LOG.warning('review_stale_update', extra={'flashcard_id': flashcard_id, 'expected_version': card.version})
            raise
        log_review(updated.id, updated.user_id, grade, updated.state.interval_days, updated.state.ease_factor, updated.version)
        return updated

    def submit_reviews(self, reviews: Iterable[Tuple[str, int]], now: datetime) -> ReviewBatchResult:
        """Apply a batch of (flashcard_id, grade) pairs independently."""
        result = ReviewBatchResult()
        for flashcard_id, grade in reviews:
            try:
                result.applied.append(self.submit_review(flashcard_id, grade, now))
            except (SchedulingError, ConcurrencyError, NotFound) as e:
                result.failed.append(ReviewFailure(flashcard_id=flashcard_id, grade=grade, error=e))
        return result

    def review_history(self, flashcard_id: str) -> List[ReviewEvent]:
        return sorted(self.store.list_review_events(flashcard_id), key=lambda e: ensure_utc(e.reviewed_at))

    def replay_state(self, flashcard_id: str) -> SchedulingState:
        card = self.store.get_flashcard(flashcard_id)
        return self.scheduler.replay(card.created_at, self.store.list_review_events(flashcard_id))

    def verify_history(self, flashcard_id: str) -> bool:
        card = self.store.get_flashcard(flashcard_id)
        if self.replay_state(flashcard_id) != card.state:
            LOG.error('review_history_mismatch', extra={'flashcard_id': flashcard_id})
            return False
        return True

    def streak(self, user_id: str, now: datetime) -> StreakState:
        return self.streaks.streak_for(user_id, now)
