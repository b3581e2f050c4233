"""Permutix: voxel-based analysis with permutation testing and TFCE.

Computes threshold-free cluster enhanced contrast statistics over a voxel
(and optionally orientation) connectivity graph, and corrects them for
multiple comparisons with a permutation null distribution of maxima.
"""

from permutix.core.version import __version__
from permutix.core.analysis import PermutationResults, run_permutation_test
from permutix.config.defaults import PermutationConfig, TFCEConfig
from permutix.connectivity.adjacency import ConnectivityGraph, build_adjacency
from permutix.utils.exceptions import (
    PermutixError,
    ConfigurationError,
    StatisticalError,
    PipelineError,
)

__all__ = [
    "__version__",
    "PermutationResults",
    "run_permutation_test",
    "PermutationConfig",
    "TFCEConfig",
    "ConnectivityGraph",
    "build_adjacency",
    "PermutixError",
    "ConfigurationError",
    "StatisticalError",
    "PipelineError",
]
