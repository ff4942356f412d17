"""
Document extraction for uploaded study material (PDF and plain text).
"""

from .extractor import (
	Extractor,
	NormalizedText,
	extract,
	normalize_text,
	ExtractionError,
	UnsupportedFormat,
	ExtractionFailed,
	SUPPORTED_MIME_TYPES,
)

__all__ = [
	'Extractor',
	'NormalizedText',
	'extract',
	'normalize_text',
	'ExtractionError',
	'UnsupportedFormat',
	'ExtractionFailed',
	'SUPPORTED_MIME_TYPES',
]
