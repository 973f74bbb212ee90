"""Application configuration module for the JSON translator."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from json_translator.batching import BATCH_SIZE, MIN_BATCH_DURATION_MS
from json_translator.languages import ISO_639_1_LANGUAGES
from json_translator.logging_config import setup_logger
from json_translator.placeholders import DEFAULT_TEMPLATED_STRING_PREFIX, DEFAULT_TEMPLATED_STRING_SUFFIX


@dataclass
class AppConfig:
    """Application configuration dataclass, built once at startup and passed down explicitly."""
    # Core paths
    project_root: str
    json_folder: str
    missing_keys_report_path: str

    # Model configuration
    model_name: str
    request_timeout: float
    max_retries: int
    requests_per_minute: int
    verify_translations: bool

    # Batch settings
    batch_size: int
    min_batch_duration_ms: int

    # Templated strings
    templated_string_prefix: str
    templated_string_suffix: str

    # Language configuration
    language_codes: Dict[str, str]
    name_to_code: Dict[str, str]

    # Processing settings
    dry_run: bool

    # OpenAI client
    api_key: Optional[str]
    openai_client: Optional[AsyncOpenAI]


DOTENV_LOCATIONS = ('.env', os.path.join('docker', '.env'))


def _compute_project_root() -> str:
    """The repository root is the parent of the package directory."""
    return os.path.dirname(os.path.dirname(os.path.realpath(__file__)))


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load the first .env file found under the project root; returns its path."""
    for relative_path in DOTENV_LOCATIONS:
        dotenv_path = os.path.join(project_root, relative_path)
        if os.path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            return dotenv_path
    return None


def _config_file_path(project_root: str) -> str:
    return os.path.abspath(os.environ.get('TRANSLATOR_CONFIG_FILE', os.path.join(project_root, 'config.yaml')))


def _load_yaml_config(config_file: str) -> Dict[str, Any]:
    """
    Read the YAML settings file.

    The logger is not configured yet at this point, so problems are reported on
    stderr and the built-in defaults apply.
    """
    if not os.path.exists(config_file):
        print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
              file=sys.stderr)
        print("Tip: Create config.yaml in the project root or set TRANSLATOR_CONFIG_FILE.", file=sys.stderr)
        return {}

    try:
        with open(config_file, 'r', encoding='utf-8') as config_stream:
            loaded_config = yaml.safe_load(config_stream)
    except yaml.YAMLError as yaml_exc:
        print(f"Error: Invalid YAML in '{config_file}': {yaml_exc}. Using default configuration.", file=sys.stderr)
        return {}
    except OSError as os_exc:
        print(f"Error: Could not read '{config_file}': {os_exc}. Using default configuration.", file=sys.stderr)
        return {}

    if loaded_config is None:
        return {}
    if not isinstance(loaded_config, dict):
        print(f"Error: '{config_file}' must contain a YAML mapping. Using default configuration.", file=sys.stderr)
        return {}
    return loaded_config


def _resolve_path(project_root: str, path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(project_root, path)


def _setup_logger_from_config(config: Dict[str, Any], project_root: str) -> logging.Logger:
    log_config = config.get('logging') or {}
    log_file_path = log_config.get('log_file_path', os.path.join('logs', 'translation_log.log'))
    return setup_logger(
        str(log_config.get('log_level', 'INFO')).upper(),
        _resolve_path(project_root, log_file_path) if log_file_path else '',
        log_config.get('log_to_console', True)
    )


def _build_language_mappings(locales_list: Optional[List[Dict[str, str]]]) -> tuple[Dict[str, str], Dict[str, str]]:
    """Build language code mappings from supported locales, defaulting to the full ISO 639-1 table."""
    language_codes: Dict[str, str] = {}

    for locale in locales_list or []:
        code = locale.get('code')
        name = locale.get('name')
        if code and name:
            language_codes[code.lower()] = name

    if not language_codes:
        language_codes = dict(ISO_639_1_LANGUAGES)

    name_to_code = {name.lower(): code for code, name in language_codes.items()}
    return language_codes, name_to_code


def _resolve_api_key(api_key_override: Optional[str]) -> Optional[str]:
    """Pick the credential from the CLI override, then API_KEY, then OPENAI_API_KEY."""
    return api_key_override or os.environ.get('API_KEY') or os.environ.get('OPENAI_API_KEY')


def _create_openai_client(dry_run: bool, api_key: Optional[str], logger: logging.Logger) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client; dry runs need neither a client nor a key."""
    if dry_run:
        logger.info("Dry run: source strings will be copied, no OpenAI client is created")
        return None

    if not api_key:
        logger.critical("No API key found. Pass --api-key, or set API_KEY or OPENAI_API_KEY "
                        "in the environment or the .env file.")
        logger.critical("To try the tool without a key, pass --dry-run or set 'dry_run: true' in config.yaml.")
        sys.exit(1)

    try:
        openai_client = AsyncOpenAI(api_key=api_key)
    except Exception as client_exc:
        logger.critical("Failed to initialize the OpenAI client: %s", client_exc)
        sys.exit(1)
    logger.info("OpenAI client initialized")
    return openai_client


def load_app_config(api_key_override: Optional[str] = None, dry_run_override: Optional[bool] = None) -> AppConfig:
    """
    Build the application configuration.

    Order of precedence: command line overrides, then environment variables
    (``MODEL_NAME``, ``TRANSLATION_BATCH_SIZE``, ``API_KEY``/``OPENAI_API_KEY``,
    also read from ``.env``), then ``config.yaml``, then built-in defaults.
    Exits the process when a real run has no API key.

    Args:
        api_key_override: Credential passed on the command line.
        dry_run_override: Forces dry-run mode on or off regardless of the config file.

    Returns:
        AppConfig: The loaded application configuration.
    """
    project_root = _compute_project_root()
    dotenv_path = _load_dotenv_files(project_root)
    config = _load_yaml_config(_config_file_path(project_root))

    logger = _setup_logger_from_config(config, project_root)
    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)
    else:
        logger.info("No .env file found under '%s'. Relying on system environment variables.", project_root)

    language_codes, name_to_code = _build_language_mappings(config.get('supported_locales'))

    dry_run = bool(config.get('dry_run', False)) if dry_run_override is None else dry_run_override
    api_key = _resolve_api_key(api_key_override)

    return AppConfig(
        project_root=project_root,
        json_folder=_resolve_path(project_root, config.get('json_folder', 'jsons')),
        missing_keys_report_path=_resolve_path(
            project_root, config.get('missing_keys_report_path', os.path.join('logs', 'missing_keys_report.log'))
        ),
        model_name=os.environ.get('MODEL_NAME', config.get('model_name', 'gpt-4o-mini')),
        request_timeout=float(config.get('request_timeout', 120.0)),
        max_retries=int(config.get('max_retries', 5)),
        requests_per_minute=int(config.get('requests_per_minute', 60)),
        verify_translations=bool(config.get('verify_translations', True)),
        batch_size=int(os.environ.get('TRANSLATION_BATCH_SIZE', config.get('batch_size', BATCH_SIZE))),
        min_batch_duration_ms=int(config.get('min_batch_duration_ms', MIN_BATCH_DURATION_MS)),
        templated_string_prefix=config.get('templated_string_prefix', DEFAULT_TEMPLATED_STRING_PREFIX),
        templated_string_suffix=config.get('templated_string_suffix', DEFAULT_TEMPLATED_STRING_SUFFIX),
        language_codes=language_codes,
        name_to_code=name_to_code,
        dry_run=dry_run,
        api_key=api_key,
        openai_client=_create_openai_client(dry_run, api_key, logger)
    )
