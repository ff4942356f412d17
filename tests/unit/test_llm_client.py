from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from revision_ai.config import Settings
from revision_ai.flashcards import GenerationError, ModelRefused, ModelUnavailable, OpenAICompletionModel

REQUEST = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')


def _completion(content, finish_reason='stop', refusal=None):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=34),
    )


def _model(side_effect=None, return_value=None):
    client = MagicMock()
    client.chat.completions.create.side_effect = side_effect
    if return_value is not None:
        client.chat.completions.create.return_value = return_value
    return OpenAICompletionModel(settings=Settings(OPENAI_MODEL='gpt-4o-mini'), client=client), client


@pytest.mark.unit
def test_complete_returns_message_content():
    model, client = _model(return_value=_completion('[{"question": "Q", "answer": "A"}]'))
    assert model.complete('prompt', timeout=5) == '[{"question": "Q", "answer": "A"}]'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs['model'] == 'gpt-4o-mini'
    assert kwargs['timeout'] == 5
    assert kwargs['messages'][-1] == {'role': 'user', 'content': 'prompt'}


@pytest.mark.unit
@pytest.mark.parametrize('exc', [
    openai.APITimeoutError(request=REQUEST),
    openai.APIConnectionError(request=REQUEST),
    openai.RateLimitError('slow down', response=httpx.Response(429, request=REQUEST), body=None),
    openai.InternalServerError('oops', response=httpx.Response(500, request=REQUEST), body=None),
])
def test_transient_sdk_errors_are_unavailable(exc):
    model, _ = _model(side_effect=exc)
    with pytest.raises(ModelUnavailable):
        model.complete('prompt')


@pytest.mark.unit
def test_bad_request_is_refused():
    exc = openai.BadRequestError('content policy', response=httpx.Response(400, request=REQUEST), body=None)
    model, _ = _model(side_effect=exc)
    with pytest.raises(ModelRefused):
        model.complete('prompt')


@pytest.mark.unit
def test_content_filter_and_refusal_are_refused():
    model, _ = _model(return_value=_completion(None, finish_reason='content_filter'))
    with pytest.raises(ModelRefused):
        model.complete('prompt')
    model, _ = _model(return_value=_completion(None, refusal='I cannot help with that'))
    with pytest.raises(ModelRefused):
        model.complete('prompt')


@pytest.mark.unit
def test_missing_api_key():
    with pytest.raises(GenerationError):
        OpenAICompletionModel(settings=Settings(OPENAI_API_KEY=''))
