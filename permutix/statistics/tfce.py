"""Threshold-free cluster enhancement (TFCE) over a connectivity graph.

TFCE (Smith & Nichols, 2009) integrates cluster extent and height across
all thresholds instead of relying on a single cluster-forming threshold::

    TFCE(v) = sum_h e(h)^E * h^H

where ``h`` runs over ``dh, 2*dh, ...`` up to the maximum statistic and
``e(h)`` is the number of nodes in the cluster containing ``v`` at
threshold ``h``.
"""

import logging
from typing import Tuple, Union

import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import connected_components

from permutix.connectivity.adjacency import ConnectivityGraph
from permutix.utils.exceptions import StatisticalError

logger = logging.getLogger(__name__)

# Relative slack on threshold comparisons, so that a statistic equal to an
# integration height still counts as reaching it
_HEIGHT_TOLERANCE = 1e-9


def _as_adjacency(graph: Union[ConnectivityGraph, sparse.spmatrix]) -> sparse.csr_matrix:
    if isinstance(graph, ConnectivityGraph):
        return graph.adjacency
    return sparse.csr_matrix(graph)


def label_clusters(above: np.ndarray, adjacency: sparse.csr_matrix) -> Tuple[np.ndarray, np.ndarray]:
    """Connected components among a subset of nodes.

    Args:
        above: Indices of the nodes taking part.
        adjacency: Full node adjacency matrix.

    Returns:
        Tuple of (labels, extents): the component label of every node in
        ``above`` and the number of nodes in each component.
    """
    subgraph = adjacency[above][:, above]
    _, labels = connected_components(subgraph, directed=False)
    return labels, np.bincount(labels)


def enhance(
    statistic: np.ndarray,
    graph: Union[ConnectivityGraph, sparse.spmatrix],
    dh: float = 0.1,
    E: float = 0.5,
    H: float = 2.0,
) -> np.ndarray:
    """Positive-going TFCE of a statistic image.

    Only positive values are enhanced; call it on the negated statistic for
    the negative side (see ``enhance_both``).

    Args:
        statistic: One value per graph node.
        graph: ConnectivityGraph or its adjacency matrix.
        dh: Height step of the integration. Smaller steps are more accurate
            and slower.
        E: Extent exponent.
        H: Height exponent.

    Returns:
        Enhanced image, one non-negative value per node.

    Raises:
        StatisticalError: If dh, E or H is not positive, or the statistic
            does not match the graph or contains non-finite values.
    """
    for name, value in (("dh", dh), ("E", E), ("H", H)):
        if not value > 0:
            raise StatisticalError(f"TFCE parameter {name} must be positive, got {value}")

    adjacency = _as_adjacency(graph)
    statistic = np.asarray(statistic, dtype=float).ravel()

    if statistic.shape[0] != adjacency.shape[0]:
        raise StatisticalError(
            f"Statistic image has {statistic.shape[0]} values but the graph "
            f"has {adjacency.shape[0]} nodes"
        )
    if not np.all(np.isfinite(statistic)):
        raise StatisticalError("Statistic image contains non-finite values")

    enhanced = np.zeros_like(statistic)
    if statistic.size == 0:
        return enhanced

    n_steps = int(np.floor(statistic.max() / dh + _HEIGHT_TOLERANCE))

    for step in range(1, n_steps + 1):
        height = step * dh
        above = np.flatnonzero(statistic >= height - _HEIGHT_TOLERANCE * dh)
        if above.size == 0:
            continue

        labels, extents = label_clusters(above, adjacency)
        enhanced[above] += extents[labels].astype(float) ** E * height ** H

    return enhanced


def enhance_both(
    statistic: np.ndarray,
    graph: Union[ConnectivityGraph, sparse.spmatrix],
    dh: float = 0.1,
    E: float = 0.5,
    H: float = 2.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Positive- and negative-going TFCE images of a signed statistic.

    Returns:
        Tuple of (positive, negative) enhanced images. Both are
        non-negative; the negative image enhances clusters of large
        negative statistic values.
    """
    statistic = np.asarray(statistic, dtype=float)
    positive = enhance(statistic, graph, dh=dh, E=E, H=H)
    negative = enhance(-statistic, graph, dh=dh, E=E, H=H)
    return positive, negative
