import asyncio
import logging
import random
from typing import List, Optional

from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    OpenAIError
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from json_translator.app_config import AppConfig
from json_translator.session import ChatMessage, TranslationSession
from json_translator.translation_validator import find_batch_problems, split_generated_lines

logger = logging.getLogger(__name__)

ACKNOWLEDGED = "ACK"
NOT_ACKNOWLEDGED = "NAK"


def _build_generation_system_prompt(input_language: str, output_language: str, prefix: str, suffix: str) -> str:
    return f"""
You are an expert translator specializing in software localization. You translate the user interface strings of an application from {input_language} to {output_language}.

**Instructions**:
- Every message contains one string per line, each wrapped in double quotes.
- Reply with exactly one translated line per input line, in the same order, each wrapped in double quotes.
- **Do not translate or modify templated strings**: Any text enclosed within `{prefix}` and `{suffix}` (e.g., `{prefix}NEWLINE{suffix}`) must remain exactly as is.
- Keep the translations brief and consistent with the translations you produced earlier in this conversation.
- **Do not add** any explanations, numbering, Markdown or text before or after the lines.
"""


def _build_verify_translation_prompt(input_language: str, output_language: str,
                                     keys: List[str], input_lines: List[str], translated_lines: List[str]) -> str:
    pairs = "\n".join(
        f"{key}:\n{source}\n=>\n{translation}"
        for key, source, translation in zip(keys, input_lines, translated_lines)
    )
    return f"""
Review the following translations from {input_language} to {output_language}. Each entry shows the key, the original text and the translation.
Reply with `{ACKNOWLEDGED}` if every translation is accurate and complete, or `{NOT_ACKNOWLEDGED}` if any translation is wrong, missing or left untranslated. Reply with one word only.

{pairs}
"""


def _build_verify_styling_prompt(input_language: str, output_language: str,
                                 input_lines: List[str], translated_lines: List[str]) -> str:
    pairs = "\n".join(f"{source} => {translation}" for source, translation in zip(input_lines, translated_lines))
    return f"""
Check that each {output_language} translation keeps the styling of its {input_language} original: capitalization, punctuation, surrounding whitespace and templated strings.
Reply with `{ACKNOWLEDGED}` if the styling of every line matches, or `{NOT_ACKNOWLEDGED}` otherwise. Reply with one word only.

{pairs}
"""


async def _handle_retry(attempt: int, max_retries: int, base_delay: float, label: str,
                        api_exc: Optional[Exception] = None) -> bool:
    """
    Handle the retry mechanism with exponential backoff and jitter.

    Args:
        attempt (int): The current attempt number.
        max_retries (int): The maximum number of retry attempts.
        base_delay (float): The base delay in seconds.
        label (str): What is being retried, for the log.
        api_exc (Optional[Exception]): The exception object from the API, if available.

    Returns:
        bool: True if the operation should retry, False otherwise.
    """
    if attempt < max_retries:
        retry_after = None
        if api_exc is not None and isinstance(api_exc, APIStatusError):
            retry_after_header = api_exc.response.headers.get("Retry-After")
            if retry_after_header:
                try:
                    if retry_after_header.endswith("ms"):
                        retry_after = float(retry_after_header[:-2]) / 1000
                    else:
                        retry_after = float(retry_after_header)
                except ValueError:
                    logger.warning(f"Failed to parse Retry-After header '{retry_after_header}'. Falling back to exponential backoff.")
        if retry_after is None:
            retry_after = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)
        logger.info(f"Retrying {label} in {retry_after:.2f} seconds (Attempt {attempt}/{max_retries})")
        await asyncio.sleep(retry_after)
        return True
    else:
        logger.error(f"{label} failed after {max_retries} attempts.")
        return False


async def _chat(
        app_config: AppConfig,
        rate_limiter: AsyncLimiter,
        system_prompt: Optional[str],
        history: List[ChatMessage],
        prompt: str,
        temperature: float
) -> str:
    """Send one chat request built from a channel's history plus a new user message."""
    messages = []
    if system_prompt:
        messages.append(ChatCompletionSystemMessageParam(role="system", content=system_prompt))
    messages.extend(history)
    messages.append(ChatCompletionUserMessageParam(role="user", content=prompt))

    async with rate_limiter:
        response = await app_config.openai_client.chat.completions.create(
            model=app_config.model_name,
            messages=messages,
            temperature=temperature,
            timeout=app_config.request_timeout,
        )
    return (response.choices[0].message.content or "").strip()


async def _verify(
        app_config: AppConfig,
        rate_limiter: AsyncLimiter,
        session: TranslationSession,
        channel: List[ChatMessage],
        prompt: str
) -> bool:
    reply = await _chat(app_config, rate_limiter, None, channel, prompt, temperature=0.0)
    session.record_exchange(channel, prompt, reply)
    return reply.upper().startswith(ACKNOWLEDGED)


async def generate_translation(
        app_config: AppConfig,
        rate_limiter: AsyncLimiter,
        session: TranslationSession,
        input_language: str,
        output_language: str,
        input_lines: List[str],
        keys: List[str],
        templated_string_prefix: str,
        templated_string_suffix: str
) -> Optional[str]:
    """
    Translate one batch of quoted lines through the session's chat channels.

    The generation channel produces the translation; the translation and styling
    verification channels then have to acknowledge it. Only exchanges that pass
    every check are added to the generation history, so later batches build on
    accepted translations only.

    Args:
        app_config: Application configuration holding the OpenAI client.
        rate_limiter: Limits the request rate across every channel.
        session: The conversation state of the current file translation.
        input_language: Source language tag, e.g. "[English]".
        output_language: Target language tag, e.g. "[French]".
        input_lines: The quoted source strings.
        keys: The flat keys of ``input_lines``, in the same order.
        templated_string_prefix: Prefix of strings the model must not touch.
        templated_string_suffix: Suffix of strings the model must not touch.

    Returns:
        Optional[str]: The newline-joined quoted translations, or None when every attempt failed.
    """
    system_prompt = _build_generation_system_prompt(
        input_language, output_language, templated_string_prefix, templated_string_suffix
    )
    prompt = "\n".join(input_lines)
    max_retries = app_config.max_retries
    base_delay = 1

    for attempt in range(1, max_retries + 1):
        try:
            reply = await _chat(
                app_config, rate_limiter, system_prompt, session.generate_translation_chat, prompt, temperature=0.3
            )
            translated_lines = split_generated_lines(reply)

            problems = find_batch_problems(
                input_lines, translated_lines, keys, templated_string_prefix, templated_string_suffix
            )
            if problems:
                for problem in problems:
                    logger.warning(f"Rejected translation to {output_language}: {problem}")
                if await _handle_retry(attempt, max_retries, base_delay, "batch translation"):
                    continue
                return None

            if app_config.verify_translations:
                translation_ok = await _verify(
                    app_config, rate_limiter, session, session.verify_translation_chat,
                    _build_verify_translation_prompt(input_language, output_language, keys, input_lines, translated_lines)
                )
                styling_ok = translation_ok and await _verify(
                    app_config, rate_limiter, session, session.verify_styling_chat,
                    _build_verify_styling_prompt(input_language, output_language, input_lines, translated_lines)
                )
                if not styling_ok:
                    logger.warning(f"Verification rejected the translation to {output_language} (Attempt {attempt}/{max_retries})")
                    if await _handle_retry(attempt, max_retries, base_delay, "batch translation"):
                        continue
                    return None

            generated = "\n".join(translated_lines)
            session.record_exchange(session.generate_translation_chat, prompt, generated)
            return generated

        except (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError, OpenAIError) as api_exc:
            logger.error(f"API error occurred: {api_exc.__class__.__name__} - {api_exc}")
            if await _handle_retry(attempt, max_retries, base_delay, "batch translation", api_exc):
                continue
            return None

    return None


async def echo_translation(
        session: TranslationSession,
        input_language: str,
        output_language: str,
        input_lines: List[str],
        keys: List[str],
        templated_string_prefix: str,
        templated_string_suffix: str
) -> str:
    """Dry-run backend: returns the source lines unchanged."""
    logger.debug(f"[Dry Run] Would translate {len(keys)} keys from {input_language} to {output_language}.")
    generated = "\n".join(input_lines)
    session.record_exchange(session.generate_translation_chat, generated, generated)
    return generated
