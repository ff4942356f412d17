"""Daily learning streaks.

Calendar days are UTC. A streak is derived from the set of active days and is
never stored or edited on its own.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from revision_ai.utils import get_logger, log_streak_update, utc_day

LOG = get_logger()

ONE_DAY = timedelta(days=1)


class StreakState(BaseModel):
    current_streak: int = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    last_active_date: Optional[date] = None


def compute_streak(days: Iterable[date], today: Optional[date] = None) -> StreakState:
    """Fold active days into a StreakState.

    Without `today` the current streak is the run ending at the last active
    day. With `today` it drops to 0 once that day is older than yesterday.
    """
    ordered = sorted(set(days))
    if not ordered:
        return StreakState()

    longest = 1
    run = 1
    for prev, cur in zip(ordered, ordered[1:]):
        if cur - prev == ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    last = ordered[-1]
    current = run
    if today is not None and today - last > ONE_DAY:
        current = 0
    return StreakState(current_streak=current, longest_streak=longest, last_active_date=last)


class StreakTracker:
    def __init__(self, store):
        self.store = store

    def record_activity(self, user_id: str, when: Union[datetime, date]) -> StreakState:
        day = utc_day(when)
        self.store.record_daily_activity(user_id, day)
        state = compute_streak(self.store.list_active_days(user_id))
        log_streak_update(user_id, day.isoformat(), state.current_streak, state.longest_streak)
        return state

    def streak_for(self, user_id: str, today: Union[datetime, date]) -> StreakState:
        return compute_streak(self.store.list_active_days(user_id), today=utc_day(today))
