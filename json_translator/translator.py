import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from json_translator.batching import BATCH_SIZE, MIN_BATCH_DURATION_MS, BatchProgress, pace_batch, schedule_batches
from json_translator.placeholders import (
    DEFAULT_TEMPLATED_STRING_PREFIX,
    DEFAULT_TEMPLATED_STRING_SUFFIX,
    guard_newlines,
    restore_newlines
)
from json_translator.session import TranslationSession
from json_translator.translation_validator import split_generated_lines, unquote_line
from json_translator.tree_utils import LocalizationTree, flatten, unflatten

logger = logging.getLogger(__name__)

# (session, input_language, output_language, input_lines, keys, prefix, suffix) -> quoted lines or None
GenerateFn = Callable[
    [TranslationSession, str, str, List[str], List[str], str, str],
    Awaitable[Optional[str]]
]


@dataclass
class TranslationResult:
    """The serialized output of one file translation and what, if anything, is missing from it."""
    output_text: str
    total_keys: int
    missing_keys: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing_keys


def parse_generated_translation(generated: Optional[str], expected_count: int) -> Optional[List[str]]:
    """
    Turn a backend reply into unquoted translations.

    Returns:
        The translations in input order, or None when the reply signals failure
        or does not hold exactly ``expected_count`` lines.
    """
    if not generated:
        return None
    lines = split_generated_lines(generated)
    if len(lines) != expected_count:
        logger.error(f"Backend returned {len(lines)} lines for a batch of {expected_count}.")
        return None
    return [unquote_line(line) for line in lines]


def assemble_output(
        keys: Iterable[str],
        translations: Dict[str, str],
        templated_string_prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
        templated_string_suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX
) -> Tuple[str, List[str]]:
    """
    Build the output JSON text from the translations collected so far.

    Keys are visited in sorted order, so the text does not depend on the order
    batches were sent in. Keys without a translation are left out.

    Args:
        keys: Every flat key of the input tree.
        translations: Flat key to translated (still guarded) string.
        templated_string_prefix: Prefix of the newline sentinel.
        templated_string_suffix: Suffix of the newline sentinel.

    Returns:
        Tuple[str, List[str]]: The serialized tree and the sorted list of missing keys.
    """
    sorted_output: Dict[str, str] = {}
    missing_keys: List[str] = []
    for key in sorted(keys):
        if key in translations:
            sorted_output[key] = translations[key]
        else:
            missing_keys.append(key)

    output_text = json.dumps(unflatten(sorted_output), indent=4, ensure_ascii=False)
    return restore_newlines(output_text, templated_string_prefix, templated_string_suffix), missing_keys


async def translate(
        input_tree: LocalizationTree,
        input_language: str,
        output_language: str,
        generate: GenerateFn,
        templated_string_prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
        templated_string_suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX,
        batch_size: int = BATCH_SIZE,
        min_batch_duration_ms: int = MIN_BATCH_DURATION_MS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> TranslationResult:
    """
    Translate a localization tree batch by batch and return the serialized result.

    Batches run one at a time against a single ``TranslationSession``. The first
    failed batch stops the loop; everything translated until then is still
    assembled, and the untranslated keys are reported in the result.

    Args:
        input_tree: The parsed source file.
        input_language: Source language name, e.g. "English".
        output_language: Target language name, e.g. "French".
        generate: The backend call, awaited once per batch.
        templated_string_prefix: Prefix of strings the backend must leave alone.
        templated_string_suffix: Suffix of strings the backend must leave alone.
        batch_size: Maximum number of keys per backend call.
        min_batch_duration_ms: Minimum wall-clock time per batch.
        rng: Random generator used for the batch order.
        clock: Monotonic clock in seconds.
        sleep: Coroutine function used for pacing.

    Returns:
        TranslationResult: The output JSON text and the keys missing from it.
    """
    logger.info(f"Translating from {input_language} to {output_language}...")

    session = TranslationSession()
    guarded_tree = guard_newlines(input_tree, templated_string_prefix, templated_string_suffix)
    flat_input = flatten(guarded_tree)
    batches = schedule_batches(flat_input.keys(), batch_size, rng)

    progress = BatchProgress(len(flat_input), clock)
    output: Dict[str, str] = {}
    processed_keys = 0

    with tqdm(total=len(flat_input), desc=f"Translating to {output_language}", unit="key") as progress_bar:
        for batch_index, keys in enumerate(batches):
            if batch_index > 0:
                progress.report(processed_keys)

            batch_start = clock()
            input_lines = [f'"{flat_input[key]}"' for key in keys]
            generated = await generate(
                session,
                f"[{input_language}]",
                f"[{output_language}]",
                input_lines,
                keys,
                templated_string_prefix,
                templated_string_suffix
            )
            translated = parse_generated_translation(generated, len(keys))

            if translated is not None:
                for key, value in zip(keys, translated):
                    output[key] = value
                    logger.debug(f"{key}:\n{flat_input[key]}\n=>\n{value}\n")
                processed_keys += len(keys)
                progress_bar.update(len(keys))

            await pace_batch(batch_start, min_batch_duration_ms, clock, sleep)

            if translated is None:
                logger.error(
                    f"Failed to generate translation for {output_language} "
                    f"(batch {batch_index + 1}/{len(batches)}); remaining batches are skipped."
                )
                break

    output_text, missing_keys = assemble_output(
        flat_input.keys(), output, templated_string_prefix, templated_string_suffix
    )
    logger.debug(output_text)

    elapsed_minutes = (clock() - progress.start_time) / 60
    logger.info(f"Actual execution time: {elapsed_minutes:.2f} minutes")

    return TranslationResult(output_text=output_text, total_keys=len(flat_input), missing_keys=missing_keys)
