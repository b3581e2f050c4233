"""Utility functions for Permutix."""

from permutix.utils.exceptions import (
    PermutixError,
    ConfigurationError,
    StatisticalError,
    PipelineError,
)
from permutix.utils.logging import setup_logging, timer, log_config, log_section
from permutix.utils.parallel import WorkerPool, default_n_workers

__all__ = [
    # Exceptions
    "PermutixError",
    "ConfigurationError",
    "StatisticalError",
    "PipelineError",
    # Logging
    "setup_logging",
    "timer",
    "log_config",
    "log_section",
    # Parallel execution
    "WorkerPool",
    "default_n_workers",
]
