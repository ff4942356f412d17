import json
import threading

import pytest

from revision_ai.config import Settings
from revision_ai.flashcards import (
    EmptyGeneration,
    FlashcardGenerator,
    GenerationCancelled,
    MalformedResponse,
    ModelRefused,
    ModelUnavailable,
)
from revision_ai.models import Difficulty, FlashcardDraft
from revision_ai.utils import set_request_context
from fixtures.mock_model import (
    BlockingModel,
    ContextRecordingModel,
    MOCK_PARTIAL_RESPONSE,
    ScriptedModel,
    StallingModel,
)


@pytest.mark.unit
def test_generate_returns_drafts(generator, scripted_model):
    drafts = generator.generate('Photosynthesis notes', count=3)
    assert len(drafts) == 3
    assert all(isinstance(d, FlashcardDraft) for d in drafts)
    assert scripted_model.calls == 1
    prompt = json.loads(scripted_model.prompts[0])
    assert prompt['content'] == 'Photosynthesis notes'
    assert prompt['constraints']['max_flashcards'] == 3


@pytest.mark.unit
def test_one_valid_one_empty_question_yields_one_draft(settings):
    gen = FlashcardGenerator(model=ScriptedModel(MOCK_PARTIAL_RESPONSE), settings=settings)
    drafts = gen.generate('notes', count=5)
    assert len(drafts) == 1


@pytest.mark.unit
def test_count_is_clamped(generator, scripted_model, settings):
    generator.generate('notes', count=999)
    assert json.loads(scripted_model.prompts[-1])['constraints']['max_flashcards'] == settings.FLASHCARD_MAX_COUNT
    generator.generate('notes', count=0)
    assert json.loads(scripted_model.prompts[-1])['constraints']['max_flashcards'] == 1
    generator.generate('notes')
    assert json.loads(scripted_model.prompts[-1])['constraints']['max_flashcards'] == settings.FLASHCARD_DEFAULT_COUNT


@pytest.mark.unit
def test_results_capped_at_count(generator):
    assert len(generator.generate('notes', count=2)) == 2


@pytest.mark.unit
@pytest.mark.parametrize('content', ['', '   ', None])
def test_empty_content_is_refused_without_model_call(generator, scripted_model, content):
    with pytest.raises(ModelRefused):
        generator.generate(content)
    assert scripted_model.calls == 0


@pytest.mark.unit
@pytest.mark.parametrize('exc', [ConnectionError('reset'), TimeoutError('slow')])
def test_transport_failures_become_model_unavailable(settings, exc):
    model = ScriptedModel(exc)
    gen = FlashcardGenerator(model=model, settings=settings)
    with pytest.raises(ModelUnavailable) as info:
        gen.generate('notes')
    assert info.value.retryable is True
    # the adapter itself never retries
    assert model.calls == 1


@pytest.mark.unit
def test_model_refusal_passes_through(settings):
    gen = FlashcardGenerator(model=ScriptedModel(ModelRefused('policy')), settings=settings)
    with pytest.raises(ModelRefused) as info:
        gen.generate('notes')
    assert info.value.retryable is False


@pytest.mark.unit
def test_malformed_and_empty_outputs(settings):
    gen = FlashcardGenerator(model=ScriptedModel('not json', '[{"question": "", "answer": ""}]'), settings=settings)
    with pytest.raises(MalformedResponse):
        gen.generate('notes')
    with pytest.raises(EmptyGeneration):
        gen.generate('notes')


@pytest.mark.unit
def test_default_difficulty_passed_through(settings):
    gen = FlashcardGenerator(model=ScriptedModel('[{"question": "Q", "answer": "A"}]'), settings=settings)
    drafts = gen.generate('notes', default_difficulty=Difficulty.EASY)
    assert drafts[0].difficulty == Difficulty.EASY


@pytest.mark.unit
def test_hung_model_times_out():
    model = BlockingModel()
    gen = FlashcardGenerator(model=model, settings=Settings(OPENAI_TIMEOUT=0.2))
    try:
        with pytest.raises(ModelUnavailable):
            gen.generate('notes')
    finally:
        model.release.set()


@pytest.mark.unit
def test_cancellation_abandons_pending_call(settings):
    model = BlockingModel()
    gen = FlashcardGenerator(model=model, settings=settings)
    cancel = threading.Event()

    def cancel_when_started():
        model.started.wait(2)
        cancel.set()

    t = threading.Thread(target=cancel_when_started)
    t.start()
    try:
        with pytest.raises(GenerationCancelled):
            gen.generate('notes', cancel=cancel)
    finally:
        model.release.set()
        t.join()


@pytest.mark.unit
def test_already_cancelled_never_calls_model(generator, scripted_model):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(GenerationCancelled):
        generator.generate('notes', cancel=cancel)
    assert scripted_model.calls == 0


@pytest.mark.unit
def test_answer_question(settings):
    model = ScriptedModel('  Chlorophyll absorbs red and blue light.  ')
    gen = FlashcardGenerator(model=model, settings=settings)
    answer = gen.answer_question('What does chlorophyll absorb?', context='Chlorophyll is a pigment...')
    assert answer == 'Chlorophyll absorbs red and blue light.'
    prompt = json.loads(model.prompts[0])
    assert prompt['question'] == 'What does chlorophyll absorb?'
    assert prompt['context'].startswith('Chlorophyll')


@pytest.mark.unit
def test_answer_question_validation(settings):
    gen = FlashcardGenerator(model=ScriptedModel('   '), settings=settings)
    with pytest.raises(ModelRefused):
        gen.answer_question('  ')
    with pytest.raises(EmptyGeneration):
        gen.answer_question('Why?')


@pytest.mark.unit
def test_module_helper_uses_shared_instance(settings, monkeypatch):
    from revision_ai.flashcards import generate_flashcards
    monkeypatch.setattr(FlashcardGenerator, '_instance', FlashcardGenerator(model=ScriptedModel(), settings=settings))
    cards = generate_flashcards('notes', count=2, request_id='req-1')
    assert cards == [
        {'question': 'What does chlorophyll absorb?', 'answer': 'Mostly red and blue light', 'difficulty': 'Easy'},
        {'question': 'Where do the light reactions happen?', 'answer': 'In the thylakoid membranes', 'difficulty': 'Medium'},
    ]


@pytest.mark.unit
@pytest.mark.parametrize('exc', [RuntimeError('boom'), AttributeError('no such attribute')])
def test_programming_errors_are_not_masked_as_unavailable(settings, exc):
    model = ScriptedModel(exc)
    gen = FlashcardGenerator(model=model, settings=settings)
    with pytest.raises(type(exc)):
        gen.generate('notes')
    assert model.calls == 1


@pytest.mark.unit
def test_abandoned_calls_do_not_starve_later_calls():
    model = StallingModel(stalls=4)
    gen = FlashcardGenerator(model=model, settings=Settings(OPENAI_TIMEOUT=1.0))
    try:
        for _ in range(4):
            cancel = threading.Event()
            timer = threading.Timer(0.1, cancel.set)
            timer.start()
            with pytest.raises(GenerationCancelled):
                gen.generate('notes', cancel=cancel)
            timer.join()
        drafts = gen.generate('notes')
        assert len(drafts) == 3
        assert model.calls == 5
    finally:
        model.release.set()


@pytest.mark.unit
def test_request_context_reaches_model_call(settings):
    model = ContextRecordingModel()
    gen = FlashcardGenerator(model=model, settings=settings)
    set_request_context('req-ctx-1', user_id='user-7')
    try:
        gen.generate('notes')
    finally:
        set_request_context(None)
    assert model.seen == [{'request_id': 'req-ctx-1', 'user_id': 'user-7'}]
