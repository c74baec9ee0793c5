"""
Logging setup for clifase.

All modules log through the ``clifase`` logger hierarchy, so a single call to
``setup_logging`` controls console and file output for the whole pipeline.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = 'clifase'

_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``get_logger('ase.labs')``."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    run_name: str = 'ase',
) -> logging.Logger:
    """
    Configure console (and optionally file) logging for clifase.

    Parameters
    ----------
    level : int
        Logging level for the package logger. Default INFO.
    log_dir : str, optional
        If given, a timestamped ``<run_name>_<YYYYmmdd_HHMMSS>.log`` file is
        written there in addition to console output.
    run_name : str
        Prefix for the log file name.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = Path(log_dir) / f'{run_name}_{timestamp}.log'

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.info(f"Log file: {log_file}")

    return logger
