"""
Unit tests for the chat backend.

The OpenAI client is replaced by an AsyncMock whose ``chat.completions.create``
returns scripted replies, so no network access is needed.
"""
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
from aiolimiter import AsyncLimiter
from openai import RateLimitError

from json_translator.app_config import AppConfig
from json_translator.generate import echo_translation, generate_translation
from json_translator.session import TranslationSession


def _response(text):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    return response


def _rate_limit_error(retry_after):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, headers={"Retry-After": retry_after}, request=request)
    return RateLimitError("Rate limit reached", response=response, body=None)


def _app_config(client, **overrides):
    values = dict(
        project_root="/tmp/project",
        json_folder="/tmp/project/jsons",
        missing_keys_report_path="/tmp/project/logs/missing_keys_report.log",
        model_name="gpt-4o-mini",
        request_timeout=30.0,
        max_retries=3,
        requests_per_minute=600,
        verify_translations=True,
        batch_size=32,
        min_batch_duration_ms=0,
        templated_string_prefix="{{",
        templated_string_suffix="}}",
        language_codes={"en": "English", "fr": "French"},
        name_to_code={"english": "en", "french": "fr"},
        dry_run=False,
        api_key="test-key",
        openai_client=client
    )
    values.update(overrides)
    return AppConfig(**values)


INPUT_LINES = ['"Hello{{NEWLINE}}World"', '"Goodbye"']
KEYS = ["greeting.hello", "greeting.bye"]
GOOD_REPLY = '"Bonjour{{NEWLINE}}Monde"\n"Au revoir"'


class TestGenerateTranslation(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.chat.completions.create = AsyncMock()
        self.rate_limiter = AsyncLimiter(max_rate=1000, time_period=1)
        self.session = TranslationSession()
        sleep_patcher = patch("json_translator.generate.asyncio.sleep", new_callable=AsyncMock)
        self.mock_sleep = sleep_patcher.start()
        self.addCleanup(sleep_patcher.stop)

    async def _generate(self, app_config, input_lines=INPUT_LINES, keys=KEYS):
        return await generate_translation(
            app_config, self.rate_limiter, self.session, "[English]", "[French]",
            input_lines, keys, "{{", "}}"
        )

    async def test_successful_batch_is_verified_and_recorded(self):
        self.client.chat.completions.create.side_effect = [
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)
        self.assertEqual(self.client.chat.completions.create.await_count, 3)
        self.assertEqual(len(self.session.generate_translation_chat), 2)
        self.assertEqual(len(self.session.verify_translation_chat), 2)
        self.assertEqual(len(self.session.verify_styling_chat), 2)
        self.assertEqual(self.session.generate_translation_chat[0]["content"], "\n".join(INPUT_LINES))
        self.mock_sleep.assert_not_awaited()

    async def test_request_uses_model_and_system_prompt(self):
        self.client.chat.completions.create.side_effect = [
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        await self._generate(_app_config(self.client, model_name="gpt-4.1"))

        kwargs = self.client.chat.completions.create.await_args_list[0].kwargs
        self.assertEqual(kwargs["model"], "gpt-4.1")
        self.assertEqual(kwargs["messages"][0]["role"], "system")
        self.assertIn("[English]", kwargs["messages"][0]["content"])
        self.assertIn("[French]", kwargs["messages"][0]["content"])
        self.assertIn("{{NEWLINE}}", kwargs["messages"][0]["content"])
        self.assertEqual(kwargs["messages"][-1], {"role": "user", "content": "\n".join(INPUT_LINES)})

    async def test_code_fences_are_stripped(self):
        self.client.chat.completions.create.side_effect = [
            _response(f"```\n{GOOD_REPLY}\n```"), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)

    async def test_wrong_line_count_is_retried(self):
        self.client.chat.completions.create.side_effect = [
            _response('"Bonjour Monde"'),
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)
        self.assertEqual(self.mock_sleep.await_count, 1)
        # The rejected reply is not part of the history
        self.assertEqual(len(self.session.generate_translation_chat), 2)

    async def test_dropped_placeholder_is_retried(self):
        self.client.chat.completions.create.side_effect = [
            _response('"Bonjour Monde"\n"Au revoir"'),
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)

    async def test_translation_nak_skips_styling_and_retries(self):
        self.client.chat.completions.create.side_effect = [
            _response(GOOD_REPLY), _response("NAK"),
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)
        self.assertEqual(self.client.chat.completions.create.await_count, 5)
        self.assertEqual(len(self.session.verify_translation_chat), 4)
        self.assertEqual(len(self.session.verify_styling_chat), 2)

    async def test_returns_none_after_max_retries(self):
        self.client.chat.completions.create.side_effect = [
            _response('"only one"'), _response('"only one"'), _response('"only one"')
        ]

        result = await self._generate(_app_config(self.client, max_retries=3))

        self.assertIsNone(result)
        self.assertEqual(self.client.chat.completions.create.await_count, 3)
        self.assertEqual(self.session.generate_translation_chat, [])

    async def test_rate_limit_error_honours_retry_after(self):
        self.client.chat.completions.create.side_effect = [
            _rate_limit_error("2"),
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        result = await self._generate(_app_config(self.client))

        self.assertEqual(result, GOOD_REPLY)
        self.mock_sleep.assert_awaited_once_with(2.0)

    async def test_retry_after_in_milliseconds(self):
        self.client.chat.completions.create.side_effect = [
            _rate_limit_error("500ms"),
            _response(GOOD_REPLY), _response("ACK"), _response("ACK")
        ]

        await self._generate(_app_config(self.client))

        self.mock_sleep.assert_awaited_once_with(0.5)

    async def test_persistent_api_errors_return_none(self):
        self.client.chat.completions.create.side_effect = [_rate_limit_error("1")] * 2

        result = await self._generate(_app_config(self.client, max_retries=2))

        self.assertIsNone(result)

    async def test_verification_can_be_disabled(self):
        self.client.chat.completions.create.side_effect = [_response(GOOD_REPLY)]

        result = await self._generate(_app_config(self.client, verify_translations=False))

        self.assertEqual(result, GOOD_REPLY)
        self.assertEqual(self.client.chat.completions.create.await_count, 1)

    async def test_later_batches_see_earlier_exchanges(self):
        self.client.chat.completions.create.side_effect = [
            _response(GOOD_REPLY), _response('"Oui"')
        ]
        app_config = _app_config(self.client, verify_translations=False)

        await self._generate(app_config)
        await self._generate(app_config, input_lines=['"Yes"'], keys=["answer.yes"])

        messages = self.client.chat.completions.create.await_args_list[1].kwargs["messages"]
        self.assertEqual(messages[1], {"role": "user", "content": "\n".join(INPUT_LINES)})
        self.assertEqual(messages[2], {"role": "assistant", "content": GOOD_REPLY})
        self.assertEqual(messages[3], {"role": "user", "content": '"Yes"'})


class TestEchoTranslation(unittest.IsolatedAsyncioTestCase):
    async def test_returns_source_lines(self):
        session = TranslationSession()

        result = await echo_translation(session, "[English]", "[French]", INPUT_LINES, KEYS, "{{", "}}")

        self.assertEqual(result, "\n".join(INPUT_LINES))
        self.assertEqual(len(session.generate_translation_chat), 2)


if __name__ == '__main__':
    unittest.main()
