import json
import logging
import os

import pytest

from json_translator.app_config import AppConfig
from json_translator.languages import ISO_639_1_LANGUAGES


class FakeClock:
    """Monotonic clock for tests; ``sleep`` advances it instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_backend():
    """
    Build a backend that answers each batch by transforming every quoted line.

    ``fail_on`` lists 1-based batch numbers that return the failure signal.
    The returned coroutine function records every call in ``.calls``.
    """
    def _factory(transform=None, fail_on=()):
        transform = transform or (lambda value: value)
        calls = []

        async def _generate(session, input_language, output_language, input_lines, keys, prefix, suffix):
            calls.append({
                "session": session,
                "input_language": input_language,
                "output_language": output_language,
                "input_lines": list(input_lines),
                "keys": list(keys),
            })
            if len(calls) in fail_on:
                return None
            return "\n".join(f'"{transform(line[1:-1])}"' for line in input_lines)

        _generate.calls = calls
        return _generate
    return _factory


@pytest.fixture
def app_config_factory(tmp_path):
    """Build an AppConfig rooted in a temporary directory without touching config.yaml or .env."""
    def _factory(**overrides):
        json_folder = tmp_path / "jsons"
        json_folder.mkdir(exist_ok=True)
        values = dict(
            project_root=str(tmp_path),
            json_folder=str(json_folder),
            missing_keys_report_path=str(tmp_path / "logs" / "missing_keys_report.log"),
            model_name="gpt-4o-mini",
            request_timeout=30.0,
            max_retries=3,
            requests_per_minute=600,
            verify_translations=True,
            batch_size=32,
            min_batch_duration_ms=0,
            templated_string_prefix="{{",
            templated_string_suffix="}}",
            language_codes=dict(ISO_639_1_LANGUAGES),
            name_to_code={name.lower(): code for code, name in ISO_639_1_LANGUAGES.items()},
            dry_run=True,
            api_key=None,
            openai_client=None
        )
        values.update(overrides)
        return AppConfig(**values)
    return _factory


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document into the temporary JSON folder and return its path."""
    def _write(filename, content):
        json_folder = tmp_path / "jsons"
        json_folder.mkdir(exist_ok=True)
        path = json_folder / filename
        with open(path, 'w', encoding='utf-8') as f:
            if isinstance(content, str):
                f.write(content)
            else:
                json.dump(content, f, ensure_ascii=False, indent=2)
        return str(path)
    return _write


@pytest.fixture(autouse=True)
def quiet_package_logger():
    """Keep the package logger from writing files or console output set up by other tests."""
    logger = logging.getLogger("json_translator")
    saved_handlers = list(logger.handlers)
    saved_propagate = logger.propagate
    logger.handlers.clear()
    logger.propagate = True
    yield
    logger.handlers[:] = saved_handlers
    logger.propagate = saved_propagate


@pytest.fixture
def isolated_env(monkeypatch):
    """Remove credentials and config overrides from the environment."""
    for name in ("API_KEY", "OPENAI_API_KEY", "TRANSLATOR_CONFIG_FILE", "MODEL_NAME", "TRANSLATION_BATCH_SIZE"):
        monkeypatch.delenv(name, raising=False)
    return os.environ
