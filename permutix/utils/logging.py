"""Console and file logging for permutation runs.

Everything logs through children of the ``permutix`` logger; call
``setup_logging`` once to attach handlers.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

from colorama import Fore, Style, init

init(autoreset=True)

_BANNER_WIDTH = 60


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name on terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy: file handlers format the same record without colour
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        colored.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        return super().format(colored)


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Attach a coloured console handler, and optionally a file, to ``permutix``.

    Previously attached handlers are replaced, so calling this twice does
    not duplicate output. The file handler records thread names since
    permutations run on worker threads.

    Args:
        verbose: Log DEBUG messages, e.g. per-pool start and join.
        log_file: Optional path of a plain-text log.

    Returns:
        The ``permutix`` logger.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logger = logging.getLogger("permutix")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter("%(levelname)s - %(message)s"))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(threadName)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


@contextmanager
def timer(logger: logging.Logger, message: str) -> Iterator[None]:
    """Log the start and duration of a stage.

    A stage that raises is logged as failed, with its duration, and the
    exception propagates.

    Example:
        >>> with timer(logger, "Precomputing voxel adjacency"):
        ...     graph = build_adjacency(mask)
        INFO - Starting: Precomputing voxel adjacency
        INFO - Completed: Precomputing voxel adjacency (0.12s)
    """
    logger.info(f"Starting: {message}")
    start = time.perf_counter()
    try:
        yield
    except Exception:
        logger.error(f"Failed: {message} after {time.perf_counter() - start:.2f}s")
        raise
    logger.info(f"Completed: {message} ({time.perf_counter() - start:.2f}s)")


def _flatten(config: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, value in config.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten(value, prefix=f"{name}.")
        else:
            yield name, value


def log_config(logger: logging.Logger, config: Dict[str, Any], title: str = "Configuration") -> None:
    """Log a configuration under a banner, nested sections as dotted keys.

    ``{"tfce": {"dh": 0.1}}`` is logged as ``tfce.dh: 0.1``.
    """
    log_section(logger, title)
    for name, value in _flatten(config):
        logger.info(f"{name}: {value}")
    logger.info("=" * _BANNER_WIDTH)


def log_section(logger: logging.Logger, title: str) -> None:
    logger.info("=" * _BANNER_WIDTH)
    logger.info(title)
    logger.info("=" * _BANNER_WIDTH)
