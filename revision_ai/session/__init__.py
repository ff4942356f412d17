"""
Study sessions: what is due, review submission and the upload pipeline.
"""

from .store import (
	StudyStore,
	InMemoryStudyStore,
	ConcurrencyError,
	StaleUpdate,
	NotFound,
)
from .coordinator import StudySessionCoordinator, ReviewBatchResult, ReviewFailure
from .ingestion import IngestionPipeline, Upload, SubjectCreation

__all__ = [
	'StudyStore',
	'InMemoryStudyStore',
	'ConcurrencyError',
	'StaleUpdate',
	'NotFound',
	'StudySessionCoordinator',
	'ReviewBatchResult',
	'ReviewFailure',
	'IngestionPipeline',
	'Upload',
	'SubjectCreation',
]
