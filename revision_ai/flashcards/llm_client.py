"""OpenAI-backed implementation of the `complete(prompt, timeout) -> text` model contract."""
from __future__ import annotations

import time
from typing import Optional

import openai

from revision_ai.config import Settings, get_settings
from revision_ai.utils import get_logger, get_request_context, log_llm_call
from .errors import GenerationError, ModelRefused, ModelUnavailable

LOG = get_logger()

SYSTEM_PROMPT = 'You generate study flashcards and answer study questions. Reply with exactly what is asked for.'


class OpenAICompletionModel:
    _instance = None

    def __init__(self, settings: Optional[Settings] = None, client=None):
        s = settings or get_settings()
        self.model = s.OPENAI_MODEL
        self.max_tokens = s.FLASHCARD_MAX_TOKENS
        self.temperature = s.FLASHCARD_TEMPERATURE
        if client is None:
            if not s.OPENAI_API_KEY:
                raise GenerationError('OPENAI_API_KEY not set')
            # retries belong to the ingestion pipeline, never the SDK
            client = openai.OpenAI(api_key=s.OPENAI_API_KEY, max_retries=0, timeout=s.OPENAI_TIMEOUT)
        self.client = client
        LOG.info('OpenAICompletionModel initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'OpenAICompletionModel':
        if cls._instance is None:
            cls._instance = OpenAICompletionModel()
        return cls._instance

    def _estimate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        # rough per-1k token pricing; only used for log lines
        if 'gpt-4o-mini' in self.model:
            return (prompt_tokens / 1000.0) * 0.00015 + (completion_tokens / 1000.0) * 0.0006
        if 'gpt-4' in self.model:
            return (prompt_tokens / 1000.0) * 0.03 + (completion_tokens / 1000.0) * 0.06
        return (prompt_tokens / 1000.0) * 0.0015 + (completion_tokens / 1000.0) * 0.002

    def complete(self, prompt: str, timeout: float = None) -> str:
        start = time.time()
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {'role': 'system', 'content': SYSTEM_PROMPT},
                    {'role': 'user', 'content': prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=timeout,
            )
        except (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as e:
            LOG.warning('llm_unavailable', extra={'error': str(e), 'error_type': type(e).__name__})
            raise ModelUnavailable(str(e)) from e
        except (openai.BadRequestError, openai.PermissionDeniedError) as e:
            LOG.warning('llm_refused', extra={'error': str(e)})
            raise ModelRefused(str(e)) from e
        except openai.OpenAIError as e:
            LOG.exception('llm_api_error', exc_info=True)
            raise ModelUnavailable(str(e)) from e

        duration_ms = int((time.time() - start) * 1000)
        usage = getattr(resp, 'usage', None)
        prompt_tokens = getattr(usage, 'prompt_tokens', 0) or 0
        completion_tokens = getattr(usage, 'completion_tokens', 0) or 0
        request_id = get_request_context().get('request_id') or ''
        log_llm_call(request_id, self.model, prompt_tokens, completion_tokens, duration_ms, cost=self._estimate_cost(prompt_tokens, completion_tokens))

        if not resp.choices:
            raise ModelUnavailable('No choices returned')
        choice = resp.choices[0]
        if choice.finish_reason == 'content_filter':
            raise ModelRefused('Response blocked by content filter')
        refusal = getattr(choice.message, 'refusal', None)
        if refusal:
            raise ModelRefused(refusal)
        return choice.message.content or ''
