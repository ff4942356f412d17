"""Parse-and-validate boundary for untrusted model output.

`parse_drafts` either returns a non-empty DraftParseResult or raises one of
MalformedResponse / EmptyGeneration. Nothing downstream sees raw model text.
"""
from __future__ import annotations

import re
import json
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from revision_ai.models import Difficulty, FlashcardDraft
from revision_ai.utils import get_logger
from .errors import EmptyGeneration, MalformedResponse

LOG = get_logger()

QUESTION_KEYS = ('question', 'q', 'front', 'prompt')
ANSWER_KEYS = ('answer', 'a', 'back', 'response')
LIST_KEYS = ('flashcards', 'cards', 'items', 'questions')

_FENCE = re.compile(r'^```[a-zA-Z]*\s*|\s*```$')
_TRAILING_COMMA = re.compile(r',\s*([\]}])')
_SMART_QUOTES = {
    '\u201c': '"',
    '\u201d': '"',
    '\u2018': "'",
    '\u2019': "'",
}


class DraftParseResult(BaseModel):
    drafts: List[FlashcardDraft]
    dropped: int = Field(0, ge=0)
    repaired: bool = False


def _strip_fences(text: str) -> str:
    return _FENCE.sub('', text.strip()).strip()


def _outermost_json(text: str) -> Optional[str]:
    starts = [i for i in (text.find('['), text.find('{')) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = ']' if text[start] == '[' else '}'
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start:end + 1]


def repair_json_text(text: str) -> Optional[str]:
    candidate = _outermost_json(text)
    if candidate is None:
        return None
    for smart, plain in _SMART_QUOTES.items():
        candidate = candidate.replace(smart, plain)
    return _TRAILING_COMMA.sub(r'\1', candidate)


def load_payload(raw: str):
    """Return (payload, repaired). Exactly one repair attempt is made."""
    if raw is None or not str(raw).strip():
        raise MalformedResponse('Model returned no content')
    text = _strip_fences(str(raw))
    try:
        return json.loads(text), False
    except ValueError:
        pass
    repaired = repair_json_text(text)
    if repaired is None:
        raise MalformedResponse('Model output contains no JSON value')
    try:
        return json.loads(repaired), True
    except ValueError as e:
        LOG.warning('flashcard_response_unparseable', extra={'error': str(e), 'preview': text[:200]})
        raise MalformedResponse(f'Could not parse model output: {e}') from e


def _candidates(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        if any(k in payload for k in QUESTION_KEYS):
            return [payload]
    raise MalformedResponse(f'Expected a list of flashcards, got {type(payload).__name__}')


def _text_field(item: dict, keys) -> str:
    for k in keys:
        value = item.get(k)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, (str, int, float)):
            value = str(value).strip()
            if value:
                return value
    return ''


def to_draft(item: Any, default_difficulty: Difficulty = Difficulty.MEDIUM) -> Optional[FlashcardDraft]:
    if not isinstance(item, dict):
        return None
    question = _text_field(item, QUESTION_KEYS)
    answer = _text_field(item, ANSWER_KEYS)
    if not question or not answer:
        return None
    difficulty = Difficulty.parse(item.get('difficulty'), default=default_difficulty)
    return FlashcardDraft(question=question, answer=answer, difficulty=difficulty)


def parse_drafts(raw: str, limit: Optional[int] = None, default_difficulty: Difficulty = Difficulty.MEDIUM) -> DraftParseResult:
    payload, repaired = load_payload(raw)
    items = _candidates(payload)
    drafts: List[FlashcardDraft] = []
    dropped = 0
    for item in items:
        draft = to_draft(item, default_difficulty)
        if draft is None:
            dropped += 1
            continue
        drafts.append(draft)
    if not drafts:
        raise EmptyGeneration(f'No usable flashcards in model output ({dropped} candidates dropped)')
    if limit is not None and len(drafts) > limit:
        drafts = drafts[:limit]
    return DraftParseResult(drafts=drafts, dropped=dropped, repaired=repaired)
