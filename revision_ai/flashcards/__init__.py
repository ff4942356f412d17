"""
Flashcard generation adapter.
Turns normalized topic text into validated flashcard drafts via a generative model.
"""

from .errors import (
	GenerationError,
	ModelUnavailable,
	ModelRefused,
	MalformedResponse,
	EmptyGeneration,
	GenerationCancelled,
)
from .response_parser import DraftParseResult, parse_drafts
from .generator import FlashcardGenerator, generate_flashcards
from .llm_client import OpenAICompletionModel

__all__ = [
	'GenerationError',
	'ModelUnavailable',
	'ModelRefused',
	'MalformedResponse',
	'EmptyGeneration',
	'GenerationCancelled',
	'DraftParseResult',
	'parse_drafts',
	'FlashcardGenerator',
	'generate_flashcards',
	'OpenAICompletionModel',
]
