"""Logging configuration for rnamaps.

Modules log through ``logging.getLogger(__name__)``; this module attaches
handlers to the package logger and provides small progress and timing
helpers for the batch pipeline.

Example:
    >>> from rnamaps.utils.logging import setup_logging, get_logger
    >>> setup_logging(verbosity=2)
    >>> logger = get_logger(__name__)
    >>> logger.info("Building RNA maps")
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

# =============================================================================
# Constants
# =============================================================================

PACKAGE_LOGGER = "rnamaps"

# Default log format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rich console format (when using rich handler)
RICH_FORMAT = "%(message)s"

# Log levels by verbosity
VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    verbosity: int = 1,
    log_file: Path | str | None = None,
    use_rich: bool = True,
) -> logging.Logger:
    """Configure logging for rnamaps.

    Args:
        verbosity: Verbosity level (0=warning, 1=info, 2=debug).
        log_file: Optional file to log to.
        use_rich: Use rich for console output.

    Returns:
        The configured package logger.
    """
    level = VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.handlers.clear()

    if use_rich:
        console_handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            show_time=False,
            show_path=False,
        )
        console_handler.setFormatter(logging.Formatter(RICH_FORMAT))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module.

    Args:
        name: Module name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


# =============================================================================
# Progress Logging
# =============================================================================


class ProgressLogger:
    """Periodic progress messages for loops over many items.

    Example:
        >>> progress = ProgressLogger(logger, total=8, description="RNA maps")
        >>> for job in jobs:
        ...     run(job)
        ...     progress.update()
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: int,
        interval: int = 1,
        description: str = "Processing",
    ) -> None:
        self.logger = logger
        self.total = total
        self.interval = max(1, interval)
        self.description = description
        self.count = 0

    def update(self, n: int = 1) -> None:
        """Update progress counter.

        Args:
            n: Number of items completed.
        """
        self.count += n
        if self.count % self.interval == 0 or self.count == self.total:
            pct = 100 * self.count / self.total if self.total > 0 else 100
            self.logger.info(f"{self.description}: {self.count}/{self.total} ({pct:.1f}%)")


# =============================================================================
# Timing Utilities
# =============================================================================


class Timer:
    """Context manager that logs the duration of a block.

    Example:
        >>> with Timer("RNA map assembly", logger):
        ...     assembler.assemble(events, controls)
        # Logs: "RNA map assembly completed in 1.23s"
    """

    def __init__(self, description: str, logger: logging.Logger) -> None:
        self.description = description
        self.logger = logger
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> Timer:
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        self.logger.info(f"{self.description} completed in {self.elapsed:.2f}s")
