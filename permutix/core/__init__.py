"""Analysis entry points for Permutix."""

from permutix.core.analysis import PermutationResults, run_permutation_test

__all__ = [
    "PermutationResults",
    "run_permutation_test",
]
