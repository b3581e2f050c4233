"""Statistical analysis for voxel-wise permutation testing.

This module provides tools for:
- GLM fitting and contrast statistics
- Threshold-free cluster enhancement
- Permutation testing for FWE correction
- Corrected p-values from the permutation null distribution
"""

from permutix.statistics.glm import (
    GLMFit,
    fit_glm,
    compute_statistic,
    check_inputs,
    prepare_contrast,
    is_intercept_only,
)
from permutix.statistics.tfce import (
    enhance,
    enhance_both,
    label_clusters,
)
from permutix.statistics.permutation import (
    PermutationDescriptor,
    PermutationGenerator,
    PermutationAccumulator,
    PipelineResult,
    run_pipeline,
)
from permutix.statistics.pvalues import (
    estimate_pvalues,
    compute_fwe_threshold,
)

__all__ = [
    # GLM
    "GLMFit",
    "fit_glm",
    "compute_statistic",
    "check_inputs",
    "prepare_contrast",
    "is_intercept_only",
    # TFCE
    "enhance",
    "enhance_both",
    "label_clusters",
    # Permutation
    "PermutationDescriptor",
    "PermutationGenerator",
    "PermutationAccumulator",
    "PipelineResult",
    "run_pipeline",
    # P-values
    "estimate_pvalues",
    "compute_fwe_threshold",
]
