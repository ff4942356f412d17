"""Utility subpackage for the revision engine"""

from .logger import (
	get_logger,
	log_error,
	log_llm_call,
	log_extraction,
	log_flashcard_generation,
	log_review,
	log_streak_update,
	set_request_context,
	get_request_context,
)
from .clock import ensure_utc, utc_day

__all__ = [
	'get_logger',
	'log_error',
	'log_llm_call',
	'log_extraction',
	'log_flashcard_generation',
	'log_review',
	'log_streak_update',
	'set_request_context',
	'get_request_context',
	'ensure_utc',
	'utc_day',
]
