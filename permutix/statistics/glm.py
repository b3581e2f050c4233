"""General linear model fitting and contrast statistics.

The model is fitted for every node at once: the data matrix holds one row
per graph node and one column per subject, the design matrix one row per
subject and one column per regressor.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DesignLike = Union[np.ndarray, pd.DataFrame]
ContrastLike = Union[str, List[float], np.ndarray]


@dataclass
class GLMFit:
    """Least-squares fit of a design to every node.

    Attributes:
        betas: Coefficients, shape (n_regressors, n_nodes).
        residual_variance: Residual variance per node, shape (n_nodes,).
        degenerate: True where the residual variance vanishes.
        dof: Residual degrees of freedom.
        xtx_pinv: Pseudo-inverse of X'X, shape (n_regressors, n_regressors).
    """
    betas: np.ndarray
    residual_variance: np.ndarray
    degenerate: np.ndarray
    dof: int
    xtx_pinv: np.ndarray


def design_to_array(design: DesignLike) -> np.ndarray:
    """Return the design matrix as a 2D float array."""
    if isinstance(design, pd.DataFrame):
        design = design.to_numpy(dtype=float)
    design = np.asarray(design, dtype=float)
    if design.ndim == 1:
        design = design[:, None]
    if design.ndim != 2:
        raise ConfigurationError(
            f"Design matrix must be 2D, got shape {design.shape}"
        )
    return design


def contrast_from_string(contrast: str, columns: List[str]) -> np.ndarray:
    """Convert a contrast expression over design columns to a vector.

    Args:
        contrast: A column name (``"group"``) or a difference of two
            column names (``"patients-controls"``).
        columns: Design matrix column names.

    Returns:
        Contrast vector with one entry per column.

    Raises:
        ConfigurationError: If a column name is not in the design.
    """
    parts = [contrast]
    if "-" in contrast and not contrast.startswith("-"):
        parts = [p.strip() for p in contrast.split("-")]
        if len(parts) != 2:
            raise ConfigurationError(
                f"Contrast '{contrast}' must be a column name or 'columnA-columnB'"
            )

    for part in parts:
        if part not in columns:
            raise ConfigurationError(
                f"Contrast column '{part}' not found in design matrix.\n"
                f"Available columns: {list(columns)}"
            )

    vector = np.zeros(len(columns))
    vector[list(columns).index(parts[0])] = 1.0
    if len(parts) == 2:
        vector[list(columns).index(parts[1])] = -1.0
    return vector


def prepare_contrast(
    contrast: ContrastLike,
    n_columns: int,
    columns: Optional[List[str]] = None,
) -> np.ndarray:
    """Check a contrast against the design and pad it with zeros.

    Args:
        contrast: Contrast vector, a single-row contrast matrix, or a
            column expression when ``columns`` is given.
        n_columns: Number of design matrix columns.
        columns: Design column names, needed for string contrasts.

    Returns:
        Contrast vector of length ``n_columns``.

    Raises:
        ConfigurationError: If the contrast has more entries than the design
            has columns, or holds more than one row.
    """
    if isinstance(contrast, str):
        if columns is None:
            raise ConfigurationError(
                "String contrasts require a design matrix with named columns"
            )
        return contrast_from_string(contrast, columns)

    contrast = np.asarray(contrast, dtype=float)
    if contrast.ndim == 2:
        if 1 in contrast.shape:
            contrast = contrast.ravel()
        else:
            raise ConfigurationError(
                f"Only a single contrast row is supported, got shape {contrast.shape}"
            )
    contrast = np.atleast_1d(contrast)

    if contrast.size > n_columns:
        raise ConfigurationError(
            f"Too many contrast entries ({contrast.size}) for design matrix "
            f"with {n_columns} columns"
        )
    if not np.any(contrast):
        raise ConfigurationError("Contrast vector is all zeros")

    padded = np.zeros(n_columns)
    padded[:contrast.size] = contrast
    return padded


def check_inputs(
    data: np.ndarray,
    design: DesignLike,
    contrast: ContrastLike,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Validate the dimensions of data, design and contrast.

    Args:
        data: Data matrix, shape (n_nodes, n_subjects).
        design: Design matrix, shape (n_subjects, n_regressors).
        contrast: Contrast definition, see ``prepare_contrast``.

    Returns:
        Tuple of (data, design, contrast) as float arrays.

    Raises:
        ConfigurationError: If the dimensions disagree.
    """
    columns = list(design.columns) if isinstance(design, pd.DataFrame) else None
    design = design_to_array(design)

    data = np.asarray(data, dtype=float)
    if data.ndim != 2:
        raise ConfigurationError(
            f"Data matrix must be 2D (nodes x subjects), got shape {data.shape}"
        )

    if design.shape[0] != data.shape[1]:
        raise ConfigurationError(
            f"Number of subjects in data matrix ({data.shape[1]} columns) does not "
            f"match number of rows in design matrix ({design.shape[0]})"
        )

    contrast = prepare_contrast(contrast, design.shape[1], columns)
    return data, design, contrast


def is_intercept_only(design: DesignLike) -> bool:
    """Whether the design is a single constant column (one-sample test)."""
    design = design_to_array(design)
    if design.shape[1] != 1:
        return False
    column = design[:, 0]
    return bool(column[0] != 0 and np.all(column == column[0]))


def fit_glm(data: np.ndarray, design: np.ndarray) -> GLMFit:
    """Fit the design to every node by ordinary least squares.

    Args:
        data: Data matrix, shape (n_nodes, n_subjects).
        design: Design matrix, shape (n_subjects, n_regressors).

    Returns:
        GLMFit with coefficients and residual variance per node.
    """
    n_subjects = design.shape[0]
    targets = data.T

    design_pinv = np.linalg.pinv(design)
    betas = design_pinv @ targets
    residuals = targets - design @ betas
    rss = np.einsum("ij,ij->j", residuals, residuals)

    dof = n_subjects - np.linalg.matrix_rank(design)
    if dof > 0:
        residual_variance = rss / dof
    else:
        residual_variance = np.zeros_like(rss)

    # Residuals at rounding level count as an exact fit
    scale = np.einsum("ij,ij->j", targets, targets)
    degenerate = (rss <= np.finfo(float).eps * n_subjects * scale) | (dof <= 0)

    return GLMFit(
        betas=betas,
        residual_variance=residual_variance,
        degenerate=degenerate,
        dof=int(dof),
        xtx_pinv=design_pinv @ design_pinv.T,
    )


def compute_statistic(
    data: np.ndarray,
    design: np.ndarray,
    contrast: np.ndarray,
    permutation=None,
) -> np.ndarray:
    """Contrast t statistic of every node, optionally under a permutation.

    The permutation reorders or sign-flips the rows of the design matrix;
    the identity permutation leaves the design untouched, so its result is
    the observed statistic.

    Args:
        data: Data matrix, shape (n_nodes, n_subjects).
        design: Design matrix, shape (n_subjects, n_regressors).
        contrast: Contrast vector, length n_regressors.
        permutation: PermutationDescriptor or None for the unpermuted data.

    Returns:
        Array of shape (n_nodes,). Nodes without residual variance get 0.
    """
    if permutation is not None:
        design = permutation.apply_to(design)

    fit = fit_glm(data, design)

    effect = contrast @ fit.betas
    contrast_variance = float(contrast @ fit.xtx_pinv @ contrast)

    if contrast_variance <= 0:
        return np.zeros(data.shape[0])

    standard_error = np.sqrt(fit.residual_variance * contrast_variance)

    statistic = np.zeros(data.shape[0])
    valid = ~fit.degenerate & (standard_error > 0)
    statistic[valid] = effect[valid] / standard_error[valid]

    return statistic
