"""Validation of permutation test parameters."""

from numbers import Integral, Real
from typing import Any, Iterable, List

from permutix.utils.exceptions import ConfigurationError


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


class ConfigValidator:
    """Collect parameter problems and report them in one exception.

    Every ``validate_*`` method records a message when its check fails and
    returns whether the value passed, so that a configuration with several
    mistakes is reported in full rather than one error at a time.

    Attributes:
        errors: Messages recorded so far.
    """

    def __init__(self):
        self.errors: List[str] = []

    def _fail(self, message: str) -> bool:
        self.errors.append(message)
        return False

    def validate_alpha(self, value: Any, name: str) -> bool:
        """Significance level strictly between 0 and 1."""
        if not _is_number(value):
            return self._fail(f"{name} must be a number, got {type(value).__name__}")
        if not 0 < value < 1:
            return self._fail(f"{name} must be between 0 and 1, got {value}")
        return True

    def validate_positive(self, value: Any, name: str) -> bool:
        """Strictly positive number, e.g. a TFCE step or exponent."""
        if not _is_number(value):
            return self._fail(f"{name} must be a number, got {type(value).__name__}")
        if value <= 0:
            return self._fail(f"{name} must be positive, got {value}")
        return True

    def validate_positive_int(self, value: Any, name: str) -> bool:
        """Integer of at least 1, e.g. a permutation count."""
        if not _is_integer(value):
            return self._fail(f"{name} must be an integer, got {type(value).__name__}")
        if value < 1:
            return self._fail(f"{name} must be at least 1, got {value}")
        return True

    def validate_range(self, value: Any, low: float, high: float, name: str) -> bool:
        """Number in the closed interval ``[low, high]``."""
        if not _is_number(value):
            return self._fail(f"{name} must be a number, got {type(value).__name__}")
        if not low <= value <= high:
            return self._fail(f"{name} must be between {low} and {high}, got {value}")
        return True

    def validate_choice(self, value: Any, choices: Iterable[Any], name: str) -> bool:
        choices = list(choices)
        if value not in choices:
            return self._fail(f"{name} must be one of {choices}, got '{value}'")
        return True

    def validate_seed(self, value: Any, name: str) -> bool:
        """Random seed: None or a non-negative integer."""
        if value is None:
            return True
        if not _is_integer(value):
            return self._fail(f"{name} must be an integer or None, got {type(value).__name__}")
        if value < 0:
            return self._fail(f"{name} must be non-negative, got {value}")
        return True

    def validate_n_jobs(self, value: Any, name: str) -> bool:
        """Worker count: None or -1 for all cores, otherwise at least 1."""
        if value is None or value == -1:
            return True
        return self.validate_positive_int(value, name)

    def raise_if_errors(self) -> None:
        """Raise a single ConfigurationError listing every recorded message.

        Raises:
            ConfigurationError: If any check failed.
        """
        if not self.errors:
            return
        details = "\n".join(f"  - {message}" for message in self.errors)
        raise ConfigurationError(f"Configuration validation failed:\n{details}")
