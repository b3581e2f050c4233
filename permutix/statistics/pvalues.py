"""Family-wise error corrected p-values from a permutation null distribution."""

import logging

import numpy as np

from permutix.utils.exceptions import StatisticalError

logger = logging.getLogger(__name__)


def estimate_pvalues(
    distribution: np.ndarray,
    observed: np.ndarray,
) -> np.ndarray:
    """Rank observed values against a null distribution of maxima.

    ``p = (1 + #{null >= observed}) / (1 + len(null))``. The unpermuted data
    counts as one sample of the null, so p-values lie in (0, 1] and never
    increase as the observed value grows.

    Args:
        distribution: Maximum enhanced statistic of every permutation
            other than the identity.
        observed: Observed enhanced image, one value per node.

    Returns:
        Corrected p-values with the shape of ``observed``.

    Example:
        >>> estimate_pvalues(np.array([1.0, 2.0, 3.0]), np.array([2.5, 0.0]))
        array([0.5, 1. ])
    """
    null = np.sort(np.asarray(distribution, dtype=float).ravel())
    observed = np.asarray(observed, dtype=float)

    n_exceeding = null.size - np.searchsorted(null, observed, side="left")

    return (1.0 + n_exceeding) / (1.0 + null.size)


def compute_fwe_threshold(
    distribution: np.ndarray,
    alpha: float = 0.05,
) -> float:
    """Compute FWE threshold from null distribution.

    Args:
        distribution: Max statistics from permutation test.
        alpha: Significance level (default 0.05).

    Returns:
        Threshold value for FWE correction at given alpha.

    Raises:
        StatisticalError: If the distribution is empty or alpha is not in (0, 1).

    Example:
        >>> threshold = compute_fwe_threshold(null_pos, alpha=0.05)
        >>> # Nodes with enhanced value > threshold are significant at FWE p < 0.05
    """
    distribution = np.asarray(distribution, dtype=float).ravel()

    if distribution.size == 0:
        raise StatisticalError(
            "Cannot compute an FWE threshold from an empty null distribution; "
            "run more than one permutation"
        )
    if not 0 < alpha < 1:
        raise StatisticalError(f"alpha must be between 0 and 1, got {alpha}")

    threshold = float(np.percentile(distribution, 100 * (1 - alpha)))

    logger.debug(f"FWE threshold at alpha={alpha}: {threshold:.3f}")

    return threshold
