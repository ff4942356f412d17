"""SM-2 style review scheduler.

Scheduling state is a pure fold over review grades:

    state_n = review(state_{n-1}, grade_n, reviewed_at_n)

Grades follow the SuperMemo quality scale:
    0 - complete blackout
    1 - incorrect, but the answer was recognised
    2 - incorrect, but the answer seemed easy once shown
    3 - correct with serious difficulty
    4 - correct after hesitation
    5 - perfect recall
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from revision_ai.config import Settings, get_settings
from revision_ai.utils import ensure_utc

MIN_GRADE = 0
MAX_GRADE = 5
PASSING_GRADE = 3
EASE_PRECISION = 4


class SchedulingError(Exception):
    pass


class InvalidGrade(SchedulingError):
    pass


class OutOfOrderReview(SchedulingError):
    pass


class SchedulingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    repetitions: int = Field(0, ge=0)
    ease_factor: float
    interval_days: int = Field(0, ge=0)
    due_at: datetime
    last_reviewed_at: Optional[datetime] = None


def validate_grade(grade) -> int:
    # bool is an int subclass but True/False are not quality ratings
    if isinstance(grade, bool) or not isinstance(grade, int):
        raise InvalidGrade(f'grade must be an integer between {MIN_GRADE} and {MAX_GRADE}, got {grade!r}')
    if grade < MIN_GRADE or grade > MAX_GRADE:
        raise InvalidGrade(f'grade must be between {MIN_GRADE} and {MAX_GRADE}, got {grade}')
    return grade


def grade_from_pass_fail(passed: bool) -> int:
    return 4 if passed else 1


def ease_delta(grade: int) -> float:
    miss = MAX_GRADE - grade
    return 0.1 - miss * (0.08 + miss * 0.02)


class ReviewScheduler:
    def __init__(
        self,
        initial_ease: float = 2.5,
        min_ease: float = 1.3,
        fail_penalty: float = 0.2,
        first_interval_days: int = 1,
        second_interval_days: int = 6,
    ):
        if initial_ease < min_ease:
            raise ValueError('initial_ease cannot be below min_ease')
        self.initial_ease = initial_ease
        self.min_ease = min_ease
        self.fail_penalty = fail_penalty
        self.first_interval_days = first_interval_days
        self.second_interval_days = second_interval_days

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'ReviewScheduler':
        s = settings or get_settings()
        return cls(
            initial_ease=s.SCHEDULER_INITIAL_EASE,
            min_ease=s.SCHEDULER_MIN_EASE,
            fail_penalty=s.SCHEDULER_FAIL_PENALTY,
            first_interval_days=s.SCHEDULER_FIRST_INTERVAL_DAYS,
            second_interval_days=s.SCHEDULER_SECOND_INTERVAL_DAYS,
        )

    def initial_state(self, now: datetime) -> SchedulingState:
        return SchedulingState(
            repetitions=0,
            ease_factor=self.initial_ease,
            interval_days=0,
            due_at=ensure_utc(now),
            last_reviewed_at=None,
        )

    def _floor(self, ease: float) -> float:
        return round(max(self.min_ease, ease), EASE_PRECISION)

    def _next_interval(self, state: SchedulingState) -> int:
        if state.repetitions == 0:
            return self.first_interval_days
        if state.repetitions == 1:
            return self.second_interval_days
        return max(1, int(round(state.interval_days * state.ease_factor)))

    def review(self, state: SchedulingState, grade: int, reviewed_at: datetime) -> SchedulingState:
        grade = validate_grade(grade)
        reviewed_at = ensure_utc(reviewed_at)
        if state.last_reviewed_at is not None and reviewed_at < ensure_utc(state.last_reviewed_at):
            raise OutOfOrderReview(
                f'review at {reviewed_at.isoformat()} precedes last review at {state.last_reviewed_at.isoformat()}'
            )

        if grade < PASSING_GRADE:
            repetitions = 0
            interval = self.first_interval_days
            ease = self._floor(state.ease_factor - self.fail_penalty)
        else:
            # interval grows with the ease in force before this review
            interval = self._next_interval(state)
            repetitions = state.repetitions + 1
            ease = self._floor(state.ease_factor + ease_delta(grade))

        return SchedulingState(
            repetitions=repetitions,
            ease_factor=ease,
            interval_days=interval,
            due_at=reviewed_at + timedelta(days=interval),
            last_reviewed_at=reviewed_at,
        )

    def replay(self, created_at: datetime, events: Iterable) -> SchedulingState:
        """Rebuild scheduling state from review events ordered by `reviewed_at`.

        Events only need `grade` and `reviewed_at` attributes.
        """
        state = self.initial_state(created_at)
        # sorted() is stable, so same-instant reviews keep ledger order
        for event in sorted(events, key=lambda e: ensure_utc(e.reviewed_at)):
            state = self.review(state, event.grade, event.reviewed_at)
        return state
