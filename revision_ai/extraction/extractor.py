"""Turn uploaded documents into normalized topic text.

Only `application/pdf` and `text/plain` are accepted. Output is whitespace
collapsed and capped at EXTRACTOR_MAX_CHARS; truncation is reported on the
result rather than raised.
"""
from __future__ import annotations

import io
import re
import time
import codecs
from typing import Optional, Tuple

from pydantic import BaseModel, Field
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from revision_ai.config import Settings, get_settings
from revision_ai.utils import get_logger, log_extraction

LOG = get_logger()

PDF_MIME = 'application/pdf'
TEXT_MIME = 'text/plain'
SUPPORTED_MIME_TYPES = (PDF_MIME, TEXT_MIME)

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_WHITESPACE = re.compile(r'\s+')


class ExtractionError(Exception):
    pass


class UnsupportedFormat(ExtractionError):
    pass


class ExtractionFailed(ExtractionError):
    pass


class NormalizedText(BaseModel):
    text: str
    truncated: bool = False
    original_length: int = Field(0, ge=0)
    mime_type: str
    page_count: Optional[int] = None


def parse_mime_type(mime_type: str) -> Tuple[str, Optional[str]]:
    """Split 'text/plain; charset=latin-1' into ('text/plain', 'latin-1')."""
    if not mime_type:
        return '', None
    parts = [p.strip() for p in mime_type.split(';')]
    base = parts[0].lower()
    charset = None
    for p in parts[1:]:
        key, _, value = p.partition('=')
        if key.strip().lower() == 'charset' and value.strip():
            charset = value.strip().strip('"\'')
    return base, charset


def normalize_text(text: str) -> str:
    text = _CONTROL_CHARS.sub(' ', text or '')
    return _WHITESPACE.sub(' ', text).strip()


class Extractor:
    """Decode, normalise and cap uploaded study material.

    `max_chars` counts characters of the normalised text, not input bytes:
    trailing whitespace and multi-byte UTF-8 sequences shrink before the cap
    is applied, so `truncated` is set only when normalised text was cut or
    PDF pages were skipped.
    """

    def __init__(self, max_chars: int = None, max_pdf_pages: int = None, settings: Settings = None):
        s = settings or get_settings()
        self.max_chars = max_chars or s.EXTRACTOR_MAX_CHARS
        self.max_pdf_pages = max_pdf_pages or s.EXTRACTOR_MAX_PDF_PAGES

    def extract(self, raw_bytes: bytes, mime_type: str) -> NormalizedText:
        base, charset = parse_mime_type(mime_type)
        if base not in SUPPORTED_MIME_TYPES:
            LOG.warning('extraction_unsupported_format', extra={'mime_type': mime_type})
            raise UnsupportedFormat(f'Unsupported format: {mime_type or "<none>"}')
        if raw_bytes is None:
            raise ExtractionFailed('No content provided')

        start = time.time()
        page_count = None
        pages_skipped = False
        if base == PDF_MIME:
            text, page_count, pages_skipped = self._extract_pdf(raw_bytes)
        else:
            text = self._decode_text(raw_bytes, charset)

        normalized = normalize_text(text)
        original_length = len(normalized)
        truncated = pages_skipped or original_length > self.max_chars
        if truncated:
            normalized = normalized[:self.max_chars].rstrip()

        duration_ms = int((time.time() - start) * 1000)
        log_extraction(base, len(raw_bytes), len(normalized), truncated, duration_ms, page_count=page_count)
        return NormalizedText(
            text=normalized,
            truncated=truncated,
            original_length=original_length,
            mime_type=base,
            page_count=page_count,
        )

    def _decode_text(self, raw_bytes: bytes, charset: Optional[str]) -> str:
        encoding = charset or 'utf-8'
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise ExtractionFailed(f'Unknown charset: {encoding}')
        text = raw_bytes.decode(encoding, errors='replace')
        # drop a leading BOM left by some editors
        return text.lstrip('\ufeff')

    def _extract_pdf(self, raw_bytes: bytes) -> Tuple[str, int, bool]:
        try:
            reader = PdfReader(io.BytesIO(raw_bytes))
            if reader.is_encrypted:
                # many "protected" PDFs only carry an owner password
                if not reader.decrypt(''):
                    raise ExtractionFailed('PDF is encrypted')
            pages = reader.pages
            page_count = len(pages)
            parts = []
            collected = 0
            skipped = False
            for idx, page in enumerate(pages):
                if idx >= self.max_pdf_pages:
                    LOG.warning('extraction_pdf_page_limit', extra={'limit': self.max_pdf_pages, 'skipped_from': idx})
                    skipped = True
                    break
                txt = page.extract_text() or ''
                parts.append(txt)
                collected += len(txt)
                # enough raw text to fill the cap even after whitespace collapsing
                if collected > self.max_chars * 2:
                    skipped = idx + 1 < page_count
                    break
            return '\n'.join(parts), page_count, skipped
        except ExtractionFailed:
            raise
        except PdfReadError as e:
            LOG.warning('extraction_pdf_unreadable', extra={'error': str(e)})
            raise ExtractionFailed(f'Could not read PDF: {e}') from e
        except Exception as e:
            LOG.exception('extraction_pdf_failed', exc_info=True)
            raise ExtractionFailed(f'PDF extraction failed: {e}') from e


def extract(raw_bytes: bytes, mime_type: str) -> NormalizedText:
    return Extractor().extract(raw_bytes, mime_type)
