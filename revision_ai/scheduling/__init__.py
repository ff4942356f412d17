"""
Spaced-repetition scheduling (SM-2 family).
Computes the next interval, due date and ease factor after each review.
"""

from .scheduler import (
	ReviewScheduler,
	SchedulingState,
	SchedulingError,
	InvalidGrade,
	OutOfOrderReview,
	PASSING_GRADE,
	ease_delta,
	grade_from_pass_fail,
	validate_grade,
)

__all__ = [
	'ReviewScheduler',
	'SchedulingState',
	'SchedulingError',
	'InvalidGrade',
	'OutOfOrderReview',
	'PASSING_GRADE',
	'ease_delta',
	'grade_from_pass_fail',
	'validate_grade',
]
