"""Voxel-based analysis using permutation testing and TFCE.

Ties the pieces together: validate the inputs, precompute the mask
adjacency once, run the permutation pipeline, and turn the observed
enhanced images into FWE-corrected p-values for both effect directions.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from permutix.config.defaults import PermutationConfig
from permutix.config.loader import config_from_dict, merge_configs
from permutix.connectivity.adjacency import ConnectivityGraph, build_adjacency
from permutix.statistics.glm import check_inputs, is_intercept_only
from permutix.statistics.permutation import run_pipeline
from permutix.statistics.pvalues import compute_fwe_threshold, estimate_pvalues
from permutix.utils.exceptions import ConfigurationError
from permutix.utils.logging import log_config, timer

logger = logging.getLogger(__name__)


@dataclass
class PermutationResults:
    """All outputs of a permutation test, in graph node order.

    Attributes:
        graph: Connectivity graph of the mask.
        statistic: Observed contrast t statistic.
        tfce_pos: Observed positive-going enhanced image.
        tfce_neg: Observed negative-going enhanced image.
        pvalue_pos: FWE-corrected p-values for positive effects.
        pvalue_neg: FWE-corrected p-values for negative effects.
        null_pos: Null distribution of positive maxima.
        null_neg: Null distribution of negative maxima.
        sign_flip: Whether sign flipping was used instead of relabelling.
        config: Configuration the test ran with.
    """
    graph: ConnectivityGraph
    statistic: np.ndarray
    tfce_pos: np.ndarray
    tfce_neg: np.ndarray
    pvalue_pos: np.ndarray
    pvalue_neg: np.ndarray
    null_pos: np.ndarray
    null_neg: np.ndarray
    sign_flip: bool
    config: PermutationConfig

    @property
    def n_permutations(self) -> int:
        return self.null_pos.size + 1

    def fwe_thresholds(self, alpha: float = 0.05) -> dict:
        """Enhanced-statistic thresholds at FWE level ``alpha`` for both sides."""
        return {
            "pos": compute_fwe_threshold(self.null_pos, alpha),
            "neg": compute_fwe_threshold(self.null_neg, alpha),
        }

    def n_significant(self, alpha: float = 0.05) -> dict:
        """Number of nodes with corrected p-value below ``alpha`` on each side."""
        return {
            "pos": int(np.sum(self.pvalue_pos < alpha)),
            "neg": int(np.sum(self.pvalue_neg < alpha)),
        }


def _resolve_config(config: Optional[PermutationConfig], overrides: dict) -> PermutationConfig:
    if config is None:
        config = PermutationConfig()
    if overrides:
        config = config_from_dict(merge_configs(asdict(config), overrides), PermutationConfig)
    config.validate()
    return config


def run_permutation_test(
    mask: np.ndarray,
    design: Union[np.ndarray, pd.DataFrame],
    contrast: Union[str, np.ndarray, list],
    data: np.ndarray,
    config: Optional[PermutationConfig] = None,
    directions: Optional[np.ndarray] = None,
    **overrides: Any,
) -> PermutationResults:
    """Run a TFCE permutation test over the active nodes of a mask.

    Args:
        mask: 3D mask, or 4D mask whose fourth axis holds orientations.
        design: Design matrix, one row per subject.
        contrast: Contrast vector (zero-padded to the design width), or a
            column expression when ``design`` is a DataFrame.
        data: Data matrix, one row per mask node in C order and one column
            per subject.
        config: Test configuration. Defaults to ``PermutationConfig()``.
        directions: Direction table of the fourth mask axis.
        **overrides: Configuration values overriding ``config``, e.g.
            ``n_permutations=1000`` or ``tfce={"dh": 0.2}``.

    Returns:
        PermutationResults with enhanced images, p-values and null
        distributions for both effect directions.

    Raises:
        ConfigurationError: If the configuration or the input dimensions
            are invalid. Raised before any computation.

    Example:
        >>> results = run_permutation_test(
        ...     mask, design, [0, 1], data,
        ...     n_permutations=5000, random_state=42
        ... )
        >>> significant = results.pvalue_pos < 0.05
    """
    config = _resolve_config(config, overrides)

    # Cheap dimension checks first
    data, design_array, contrast = check_inputs(data, design, contrast)

    mask = np.asarray(mask)
    if mask.ndim == 4 and directions is None:
        raise ConfigurationError(
            "No mask directions have been specified for the 4D mask"
        )

    sign_flip = config.sign_flip
    if sign_flip is None:
        sign_flip = is_intercept_only(design_array)

    log_config(logger, asdict(config), "Permutation test")
    logger.info(f"Subjects: {design_array.shape[0]}, regressors: {design_array.shape[1]}")
    logger.info(f"Contrast: {contrast.tolist()}")

    with timer(logger, "Precomputing voxel adjacency from mask"):
        graph = build_adjacency(
            mask,
            directions=directions,
            angular_threshold=config.angle,
            use_26_connectivity=config.use_26_connectivity,
        )

    if data.shape[0] != graph.n_nodes:
        raise ConfigurationError(
            f"Data matrix has {data.shape[0]} rows but the mask defines "
            f"{graph.n_nodes} nodes"
        )

    n_workers = None if config.n_jobs in (None, -1) else config.n_jobs

    pipeline_result = run_pipeline(
        data,
        design_array,
        contrast,
        graph,
        n_permutations=config.n_permutations,
        dh=config.tfce.dh,
        E=config.tfce.e,
        H=config.tfce.h,
        n_workers=n_workers,
        sign_flip=sign_flip,
        random_state=config.random_state,
        progress_interval=config.progress_interval,
    )

    pvalue_pos = estimate_pvalues(pipeline_result.null_pos, pipeline_result.tfce_pos)
    pvalue_neg = estimate_pvalues(pipeline_result.null_neg, pipeline_result.tfce_neg)

    results = PermutationResults(
        graph=graph,
        statistic=pipeline_result.statistic,
        tfce_pos=pipeline_result.tfce_pos,
        tfce_neg=pipeline_result.tfce_neg,
        pvalue_pos=pvalue_pos,
        pvalue_neg=pvalue_neg,
        null_pos=pipeline_result.null_pos,
        null_neg=pipeline_result.null_neg,
        sign_flip=sign_flip,
        config=config,
    )

    if results.n_permutations > 1:
        significant = results.n_significant(config.alpha)
        logger.info(
            f"Nodes significant at FWE p < {config.alpha}: {significant['pos']} positive, "
            f"{significant['neg']} negative (of {graph.n_nodes})"
        )

    return results
