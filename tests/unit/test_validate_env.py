import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / 'scripts' / 'validate_env.py'


@pytest.fixture(scope='module')
def validate_env():
    spec = importlib.util.spec_from_file_location('validate_env', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


GOOD_ENV = {'OPENAI_API_KEY': 'sk-abc', 'OPENAI_MODEL': 'gpt-4o-mini'}


@pytest.mark.unit
def test_valid_env_has_no_issues(validate_env):
    errors, warnings = validate_env.collect_issues(dict(GOOD_ENV))
    assert errors == []
    assert warnings == []


@pytest.mark.unit
def test_missing_required_keys(validate_env):
    errors, _ = validate_env.collect_issues({})
    assert 'openai: Missing OPENAI_API_KEY' in errors
    assert 'openai: Missing OPENAI_MODEL' in errors


@pytest.mark.unit
def test_out_of_range_and_non_numeric(validate_env):
    env = dict(GOOD_ENV, OPENAI_TIMEOUT='0', FLASHCARD_MAX_COUNT='lots')
    errors, _ = validate_env.collect_issues(env)
    assert any(e.startswith('OPENAI_TIMEOUT must be between') for e in errors)
    assert 'FLASHCARD_MAX_COUNT must be an integer' in errors


@pytest.mark.unit
def test_ease_floor_above_initial_is_error(validate_env):
    env = dict(GOOD_ENV, SCHEDULER_INITIAL_EASE='1.5', SCHEDULER_MIN_EASE='2.0')
    errors, _ = validate_env.collect_issues(env)
    assert 'SCHEDULER_INITIAL_EASE must not be below SCHEDULER_MIN_EASE' in errors


@pytest.mark.unit
def test_warnings(validate_env):
    env = dict(GOOD_ENV, OPENAI_API_KEY='key-123', FLASHCARD_DEFAULT_COUNT='40', FLASHCARD_MAX_COUNT='20', LOG_FORMAT='xml')
    errors, warnings = validate_env.collect_issues(env)
    assert errors == []
    assert len(warnings) == 3


@pytest.mark.unit
def test_main_strict_mode(validate_env, monkeypatch, tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text('OPENAI_API_KEY=key-123\nOPENAI_MODEL=gpt-4o-mini\n')
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.delenv('OPENAI_MODEL', raising=False)
    monkeypatch.delenv('LOG_FORMAT', raising=False)
    monkeypatch.delenv('FLASHCARD_DEFAULT_COUNT', raising=False)
    monkeypatch.delenv('FLASHCARD_MAX_COUNT', raising=False)
    assert validate_env.main(['--env-file', str(env_file)]) == 0
    assert validate_env.main(['--env-file', str(env_file), '--strict']) == 1
