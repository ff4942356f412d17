"""Revision AI study engine: ingestion, flashcard generation and spaced repetition."""

__version__ = '1.0.0'
