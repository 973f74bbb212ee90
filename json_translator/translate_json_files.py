import argparse
import asyncio
import functools
import json
import logging
import os
import sys
from typing import Dict, List, Optional, Sequence

# --- Python Version Check ---
if sys.version_info < (3, 11):
    sys.stderr.write("Error: This script requires Python 3.11 or newer.\n")
    sys.stderr.write(f"You are running Python {sys.version.split()[0]}.\n")
    sys.exit(1)
# --- End Version Check ---

import jsonschema
from aiolimiter import AsyncLimiter

from json_translator.app_config import AppConfig, load_app_config
from json_translator.generate import echo_translation, generate_translation
from json_translator.languages import (
    get_all_language_codes,
    get_language_code_from_filename,
    get_language_from_code,
    get_language_from_filename,
    language_name_to_code,
    replace_language_code_in_filename
)
from json_translator.placeholders import DEFAULT_TEMPLATED_STRING_PREFIX, DEFAULT_TEMPLATED_STRING_SUFFIX
from json_translator.translator import GenerateFn, TranslationResult, translate
from json_translator.tree_utils import validate_localization_tree

logger = logging.getLogger(__name__)


def resolve_json_path(file_or_path: str, json_folder: str) -> str:
    """Resolve a relative file name against the JSON folder; absolute paths are kept."""
    if os.path.isabs(file_or_path):
        return os.path.abspath(file_or_path)
    return os.path.abspath(os.path.join(json_folder, file_or_path))


def load_localization_file(input_path: str) -> Optional[Dict]:
    """
    Read and validate a JSON localization file.

    Returns:
        The parsed tree, or None if the file cannot be read, is not JSON,
        or is not a nested mapping of strings.
    """
    try:
        with open(input_path, 'r', encoding='utf-8') as f:
            input_json = json.load(f)
        validate_localization_tree(input_json)
        return input_json
    except (OSError, UnicodeDecodeError) as read_exc:
        logger.error(f"Could not read '{input_path}': {read_exc}")
    except json.JSONDecodeError as json_exc:
        logger.error(f"Invalid JSON in '{input_path}': {json_exc}")
    except jsonschema.ValidationError as schema_exc:
        logger.error(f"Invalid localization file '{input_path}': {schema_exc.message}")
    return None


def build_generator(app_config: AppConfig, rate_limiter: AsyncLimiter) -> GenerateFn:
    """Bind the backend to the configuration; dry runs echo the source lines."""
    if app_config.dry_run:
        return echo_translation
    return functools.partial(generate_translation, app_config, rate_limiter)


async def translate_file(
        app_config: AppConfig,
        generate: GenerateFn,
        input_file_or_path: str,
        output_file_or_path: str,
        force_language_name: Optional[str] = None,
        templated_string_prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
        templated_string_suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX
) -> Optional[TranslationResult]:
    """
    Translate one JSON file into one target language and write the result.

    Args:
        app_config: Application configuration.
        generate: The backend call used for every batch.
        input_file_or_path: Source file; relative paths resolve against the JSON folder.
        output_file_or_path: Output file; relative paths resolve against the JSON folder.
        force_language_name: Target language name to use instead of the output filename's code.
        templated_string_prefix: Prefix of strings the backend must leave alone.
        templated_string_suffix: Suffix of strings the backend must leave alone.

    Returns:
        Optional[TranslationResult]: The result, or None when the input was not valid JSON.

    Raises:
        ValueError: If a language cannot be derived from the input or output filename.
        OSError: If the output file cannot be written.
    """
    input_path = resolve_json_path(input_file_or_path, app_config.json_folder)
    output_path = resolve_json_path(output_file_or_path, app_config.json_folder)

    input_json = load_localization_file(input_path)
    if input_json is None:
        return None

    input_language = get_language_from_filename(input_file_or_path, app_config.language_codes)
    if not input_language:
        raise ValueError(
            "Invalid input file name. Use a valid ISO 639-1 language code as the file name."
        )

    if force_language_name:
        output_language = force_language_name
    else:
        output_language = get_language_from_filename(output_file_or_path, app_config.language_codes)
        if not output_language:
            raise ValueError(
                "Invalid output file name. Use a valid ISO 639-1 language code as the file name. "
                "Consider using the --force-language-name option."
            )

    result = await translate(
        input_json,
        input_language,
        output_language,
        generate,
        templated_string_prefix=templated_string_prefix,
        templated_string_suffix=templated_string_suffix,
        batch_size=app_config.batch_size,
        min_batch_duration_ms=app_config.min_batch_duration_ms
    )

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(result.output_text)

    if result.complete:
        logger.info(f"Translated file saved to '{output_path}'.")
    else:
        logger.warning(
            f"Translated file saved to '{output_path}' with {len(result.missing_keys)} of "
            f"{result.total_keys} keys missing."
        )
    return result


def derive_output_path(input_file_or_path: str, language_code: str, language_codes: Dict[str, str]) -> str:
    """
    Build the output path for a target language by swapping the language code in the input filename.

    Raises:
        ValueError: If the input filename carries no supported language code.
    """
    source_code = get_language_code_from_filename(input_file_or_path, language_codes)
    if not source_code:
        raise ValueError(
            "Invalid input file name. Use a valid ISO 639-1 language code as the file name."
        )
    return replace_language_code_in_filename(input_file_or_path, source_code, language_code)


def resolve_target_code(code_or_name: str, app_config: AppConfig) -> Optional[str]:
    """Accept a supported language code or a language name ("fr", "FR", "French")."""
    if get_language_from_code(code_or_name, app_config.language_codes):
        return code_or_name.lower()
    return language_name_to_code(code_or_name, app_config.name_to_code)


async def translate_to_languages(
        app_config: AppConfig,
        generate: GenerateFn,
        input_file_or_path: str,
        language_codes: Sequence[str],
        templated_string_prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
        templated_string_suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX
) -> Dict[str, Optional[TranslationResult]]:
    """
    Translate the input file into each language in turn.

    A failure for one language is logged and does not stop the others. The
    language of the input filename is skipped, whatever the case of its code.

    Returns:
        Dict[str, Optional[TranslationResult]]: Result per attempted language code;
        None for languages that failed. Skipped languages are absent.
    """
    results: Dict[str, Optional[TranslationResult]] = {}
    for i, requested in enumerate(language_codes, 1):
        language_code = resolve_target_code(requested, app_config) or requested.lower()
        logger.info(f"Translating {i}/{len(language_codes)} languages...")
        try:
            if not get_language_from_code(language_code, app_config.language_codes):
                raise ValueError(f"Unsupported language code '{requested}'.")

            if language_code == get_language_code_from_filename(input_file_or_path, app_config.language_codes):
                logger.info(f"Skipping {language_code}: it is the language of the input file.")
                continue
            output = derive_output_path(input_file_or_path, language_code, app_config.language_codes)

            results[language_code] = await translate_file(
                app_config,
                generate,
                input_file_or_path,
                output,
                templated_string_prefix=templated_string_prefix,
                templated_string_suffix=templated_string_suffix
            )
        except Exception as target_exc:
            logger.error(f"Failed to translate to {language_code}: {target_exc}")
            results[language_code] = None
    return results


def write_missing_keys_report(report_path: str, missing_keys_by_language: Dict[str, List[str]]) -> None:
    """
    Write a Markdown report of the keys left out of incomplete output files.

    The report is removed when every file was translated completely.
    """
    if not missing_keys_by_language:
        if os.path.exists(report_path):
            os.remove(report_path)
        return

    report_dir = os.path.dirname(report_path)
    if report_dir:
        os.makedirs(report_dir, exist_ok=True)
    logger.info(f"Some files are incomplete. Writing report to {report_path}")
    with open(report_path, 'w', encoding='utf-8') as f:
        f.write("## Translation Pipeline Warnings\n\n")
        f.write("The following output files are incomplete because a batch failed. "
                "The listed keys are missing and must be translated again.\n\n")
        for language, missing_keys in missing_keys_by_language.items():
            f.write(f"### `{language}`\n")
            for key in missing_keys:
                f.write(f"- {key}\n")
            f.write("\n")


async def run_translation(args: argparse.Namespace, app_config: AppConfig) -> int:
    """
    Run the translation mode selected on the command line.

    Returns:
        int: Process exit code; 0 when every requested file was written.
    """
    rate_limiter = AsyncLimiter(max_rate=app_config.requests_per_minute, time_period=60)
    generate = build_generator(app_config, rate_limiter)
    templated_string_prefix = args.templated_string_prefix or app_config.templated_string_prefix
    templated_string_suffix = args.templated_string_suffix or app_config.templated_string_suffix

    if args.languages is None and not args.all_languages:
        try:
            result = await translate_file(
                app_config,
                generate,
                args.input,
                args.output,
                force_language_name=args.force_language_name,
                templated_string_prefix=templated_string_prefix,
                templated_string_suffix=templated_string_suffix
            )
        except Exception as file_exc:
            logger.error(f"Failed to translate '{args.input}': {file_exc}")
            return 1
        results = {args.output: result}
    else:
        if args.languages is not None:
            language_codes = list(args.languages)
            language_names = [
                app_config.language_codes[code]
                for code in (resolve_target_code(value, app_config) for value in language_codes)
                if code
            ]
            logger.info(f"Translating to {', '.join(language_names)}...")
        else:
            logger.warning("Some languages may fail to translate due to the model's limitations")
            language_codes = get_all_language_codes(app_config.language_codes)

        results = await translate_to_languages(
            app_config,
            generate,
            args.input,
            language_codes,
            templated_string_prefix=templated_string_prefix,
            templated_string_suffix=templated_string_suffix
        )

    missing_keys_by_language = {
        target: result.missing_keys for target, result in results.items()
        if result is not None and not result.complete
    }
    write_missing_keys_report(app_config.missing_keys_report_path, missing_keys_by_language)

    failed = [target for target, result in results.items() if result is None]
    if failed:
        logger.error(f"Translation failed for: {', '.join(failed)}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="json-translator",
        description="Translate nested JSON localization files with a generative chat model."
    )
    parser.add_argument("-i", "--input", required=True,
                        help="Source i18n file, in the JSON folder if a relative path is given")
    parser.add_argument("-o", "--output",
                        help="Output i18n file, in the JSON folder if a relative path is given")
    parser.add_argument("-f", "--force-language-name", help="Force language name")
    target_group = parser.add_mutually_exclusive_group()
    target_group.add_argument("-A", "--all-languages", action="store_true",
                              help="Translate to all supported languages")
    target_group.add_argument("-l", "--languages", nargs="*", metavar="LANGUAGE_CODE",
                              help="Pass a list of language codes or names to translate to")
    parser.add_argument("-p", "--templated-string-prefix",
                        help="Prefix for templated strings (default: config.yaml, else {{)")
    parser.add_argument("-s", "--templated-string-suffix",
                        help="Suffix for templated strings (default: config.yaml, else }})")
    parser.add_argument("-k", "--api-key", help="API key for the translation model")
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="Copy the source strings instead of calling the model")
    return parser


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject option combinations that select no mode or more than one; exits via ``parser.error``."""
    if args.languages is None and not args.all_languages:
        if not args.output:
            parser.error("Output file not specified")
        return
    if args.force_language_name:
        option = "--languages" if args.languages is not None else "--all-languages"
        parser.error(f"Cannot use both {option} and --force-language-name")
    if args.languages is not None and len(args.languages) == 0:
        parser.error("No languages specified")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main function to orchestrate the translation process.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(parser, args)

    app_config = load_app_config(api_key_override=args.api_key, dry_run_override=args.dry_run)
    try:
        return asyncio.run(run_translation(args, app_config))
    except Exception as main_exc:
        logger.error(f"An unexpected error occurred during execution: {main_exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
