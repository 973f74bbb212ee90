import logging
import os
import sys
from typing import Optional

from tqdm import tqdm

LOGGER_NAME = "json_translator"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class TqdmLoggingHandler(logging.Handler):
    """Console handler that writes through ``tqdm.write`` so batch progress bars stay on one line."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
            self.flush()
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


def _file_handler(log_file_path: str) -> Optional[logging.Handler]:
    if not log_file_path:
        return None
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return logging.FileHandler(log_file_path, encoding='utf-8')


def setup_logger(log_level_str: str, log_file_path: str, log_to_console: bool) -> logging.Logger:
    """
    Configure the ``json_translator`` package logger.

    Modules log through ``logging.getLogger(__name__)``, so their records reach
    the handlers installed here. Calling this again replaces the handlers.

    Args:
        log_level_str: Level name such as 'INFO' or 'debug'; unknown names mean INFO.
        log_file_path: Log file to append to. An empty value disables file logging.
        log_to_console: Whether to add the tqdm-aware console handler.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level_str.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    handlers = [_file_handler(log_file_path)]
    if log_to_console:
        handlers.append(TqdmLoggingHandler())

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        if handler is None:
            continue
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
