from __future__ import annotations

import json
import time
import threading
import contextvars
from concurrent.futures import Future, wait
from typing import List, Optional

from revision_ai.config import Settings, get_settings
from revision_ai.models import Difficulty, FlashcardDraft
from revision_ai.utils import get_logger, log_flashcard_generation
from .errors import (
    GenerationCancelled,
    GenerationError,
    EmptyGeneration,
    ModelRefused,
    ModelUnavailable,
)
from .response_parser import parse_drafts

LOG = get_logger()

# how often a pending model call checks for cancellation
POLL_INTERVAL_SECONDS = 0.05


class FlashcardGenerator:
    """Wraps the external model behind a strict draft-producing contract.

    `model` is anything with `complete(prompt, timeout) -> str`. The adapter
    enforces its own deadline, honours a caller supplied cancel event and never
    retries; ModelUnavailable is the caller's cue to try again.
    """

    _instance = None

    def __init__(self, model=None, settings: Optional[Settings] = None):
        s = settings or get_settings()
        self._model = model
        self.timeout = s.OPENAI_TIMEOUT
        self.default_count = s.FLASHCARD_DEFAULT_COUNT
        self.max_count = s.FLASHCARD_MAX_COUNT

    @classmethod
    def get_instance(cls) -> 'FlashcardGenerator':
        if cls._instance is None:
            cls._instance = FlashcardGenerator()
        return cls._instance

    @property
    def model(self):
        if self._model is None:
            from .llm_client import OpenAICompletionModel
            self._model = OpenAICompletionModel.get_instance()
        return self._model

    def _clamp_count(self, count: Optional[int]) -> int:
        if count is None:
            count = self.default_count
        return max(1, min(int(count), self.max_count))

    def _build_generation_prompt(self, content: str, target_count: int) -> str:
        instruction = ' '.join([
            'You are an academic assistant. From the study material below,',
            f'write up to {target_count} question-answer flashcards.',
            'Return only a JSON array where each item has "question", "answer" and "difficulty" (easy|medium|hard).',
            'Each question must be answerable from the material alone. Do not invent unrelated facts.',
        ])
        return json.dumps({
            'instruction': instruction,
            'content': content,
            'constraints': {'max_flashcards': target_count, 'output_format': 'JSON'},
        })

    def _build_answer_prompt(self, question: str, context: str) -> str:
        return json.dumps({
            'instruction': (
                'Answer the learner\'s question using the study material as context. '
                'Be concise and accurate; say so if the material does not cover it. '
                'Reply with the answer text only.'
            ),
            'context': context or '',
            'question': question,
        })

    def _start_call(self, prompt: str) -> Future:
        """Run one model call on its own daemon thread.

        An abandoned call keeps only its own thread busy, so later calls never
        queue behind a hung one. The caller's contextvars (request id) are
        carried into the worker.
        """
        future = Future()
        ctx = contextvars.copy_context()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = ctx.run(self.model.complete, prompt, self.timeout)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        threading.Thread(target=run, name='llm-call', daemon=True).start()
        return future

    def _call_model(self, prompt: str, cancel: Optional[threading.Event] = None) -> str:
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled('Generation cancelled before the model call')
        future = self._start_call(prompt)
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                LOG.warning('llm_call_timeout', extra={'timeout_s': self.timeout})
                raise ModelUnavailable(f'Model did not respond within {self.timeout}s')
            done, _ = wait([future], timeout=min(POLL_INTERVAL_SECONDS, remaining))
            if done:
                break
            if cancel is not None and cancel.is_set():
                # the worker thread is abandoned; its result is discarded
                future.cancel()
                LOG.info('llm_call_cancelled')
                raise GenerationCancelled('Generation cancelled by caller')

        try:
            return future.result()
        except GenerationError:
            raise
        except (TimeoutError, ConnectionError) as e:
            raise ModelUnavailable(str(e)) from e
        except Exception:
            LOG.exception('llm_call_failed', exc_info=True)
            raise

    def generate(
        self,
        content: str,
        count: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
        default_difficulty: Difficulty = Difficulty.MEDIUM,
        request_id: Optional[str] = None,
    ) -> List[FlashcardDraft]:
        if not content or not content.strip():
            raise ModelRefused('Cannot generate flashcards from empty content')
        target = self._clamp_count(count)
        start = time.time()
        raw = self._call_model(self._build_generation_prompt(content.strip(), target), cancel=cancel)
        result = parse_drafts(raw, limit=target, default_difficulty=default_difficulty)
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled('Generation cancelled by caller')
        duration_ms = int((time.time() - start) * 1000)
        log_flashcard_generation(request_id or '', len(result.drafts), result.dropped, duration_ms, repaired=result.repaired)
        return result.drafts

    def answer_question(self, question: str, context: str = '', cancel: Optional[threading.Event] = None) -> str:
        if not question or not question.strip():
            raise ModelRefused('Question is empty')
        answer = self._call_model(self._build_answer_prompt(question.strip(), context), cancel=cancel)
        answer = (answer or '').strip()
        if not answer:
            raise EmptyGeneration('Model returned an empty answer')
        return answer


def generate_flashcards(content: str, count: Optional[int] = None, request_id: Optional[str] = None) -> List[dict]:
    gen = FlashcardGenerator.get_instance()
    drafts = gen.generate(content, count=count, request_id=request_id)
    return [d.model_dump(mode='json') for d in drafts]
