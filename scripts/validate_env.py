import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv

required = {
    'openai': ['OPENAI_API_KEY', 'OPENAI_MODEL'],
}

# name -> (type, min, max)
ranges = {
    'OPENAI_TIMEOUT': (float, 1, 600),
    'FLASHCARD_MAX_TOKENS': (int, 100, 16000),
    'FLASHCARD_TEMPERATURE': (float, 0.0, 2.0),
    'FLASHCARD_DEFAULT_COUNT': (int, 1, 500),
    'FLASHCARD_MAX_COUNT': (int, 1, 500),
    'GENERATION_RETRY_ATTEMPTS': (int, 1, 10),
    'EXTRACTOR_MAX_CHARS': (int, 1000, 1000000),
    'EXTRACTOR_MAX_PDF_PAGES': (int, 1, 5000),
    'SCHEDULER_INITIAL_EASE': (float, 1.3, 5.0),
    'SCHEDULER_MIN_EASE': (float, 1.0, 2.5),
    'SCHEDULER_FAIL_PENALTY': (float, 0.0, 1.0),
}


def collect_issues(env=None):
    """Return (errors, warnings) for the given environment mapping."""
    env = os.environ if env is None else env
    errors = []
    warnings = []

    for cat, keys in required.items():
        for k in keys:
            if not env.get(k):
                errors.append(f'{cat}: Missing {k}')

    for name, (kind, low, high) in ranges.items():
        raw = env.get(name)
        if raw is None or raw == '':
            continue
        try:
            value = kind(raw)
        except ValueError:
            errors.append(f'{name} must be {"an integer" if kind is int else "a number"}')
            continue
        if value < low or value > high:
            errors.append(f'{name} must be between {low} and {high}')

    openai_key = env.get('OPENAI_API_KEY', '')
    if openai_key and not openai_key.startswith('sk-'):
        warnings.append('OPENAI_API_KEY does not start with sk-; verify provider')

    try:
        default_count = int(env.get('FLASHCARD_DEFAULT_COUNT', '10'))
        max_count = int(env.get('FLASHCARD_MAX_COUNT', '50'))
        if default_count > max_count:
            warnings.append('FLASHCARD_DEFAULT_COUNT exceeds FLASHCARD_MAX_COUNT; requests will be clamped')
    except ValueError:
        pass

    try:
        if float(env.get('SCHEDULER_INITIAL_EASE', '2.5')) < float(env.get('SCHEDULER_MIN_EASE', '1.3')):
            errors.append('SCHEDULER_INITIAL_EASE must not be below SCHEDULER_MIN_EASE')
    except ValueError:
        pass

    log_format = env.get('LOG_FORMAT', 'json')
    if log_format not in ('json', 'text'):
        warnings.append("LOG_FORMAT should be 'json' or 'text'")

    return errors, warnings


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument('--strict', '-s', action='store_true', help='Convert warnings to failures')
    parser.add_argument('--env-file', default=str(Path(__file__).parent.parent / '.env'), help='dotenv file to load first')
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)
    errors, warnings = collect_issues()

    if errors:
        print('\nENV validation failed:')
        for e in errors:
            print(' -', e)
        return 1

    if warnings:
        print('\nWarnings:')
        for w in warnings:
            print(' -', w)
        if args.strict:
            print('\nStrict mode enabled: treating warnings as errors')
            return 1

    print('\nAll critical validations passed')
    return 0


if __name__ == '__main__':
    sys.exit(main())
