"""Voxel adjacency graph built from an analysis mask.

The graph is the only spatial structure the permutation pipeline needs: every
active voxel (or voxel and orientation, for a 4D mask) becomes a node, and
edges link nodes that may belong to the same cluster.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy import sparse

from permutix.connectivity.directions import orientation_pairs, to_unit_vectors
from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ANGULAR_THRESHOLD = 12.0


@dataclass(frozen=True, eq=False)
class ConnectivityGraph:
    """Adjacency structure over the active samples of a mask.

    Attributes:
        coordinates: Integer array of shape (n_nodes, 3), or (n_nodes, 4)
            when orientation-aware, giving the mask index of every node.
        adjacency: Symmetric boolean CSR matrix of shape (n_nodes, n_nodes)
            with an empty diagonal.
        shape: Shape of the mask the graph was built from.
        directions: Unit vectors of the fourth mask axis, or None.
        angular_threshold: Threshold in degrees used for orientation edges,
            or None.
        use_26_connectivity: Whether corner neighbours are connected.
    """
    coordinates: np.ndarray
    adjacency: sparse.csr_matrix
    shape: Tuple[int, ...]
    directions: Optional[np.ndarray] = None
    angular_threshold: Optional[float] = None
    use_26_connectivity: bool = False

    @property
    def n_nodes(self) -> int:
        return self.coordinates.shape[0]

    @property
    def n_edges(self) -> int:
        """Number of undirected edges."""
        return self.adjacency.nnz // 2

    @property
    def is_orientation_aware(self) -> bool:
        return self.directions is not None

    def neighbours(self, node: int) -> np.ndarray:
        """Indices of the nodes adjacent to ``node``."""
        start, stop = self.adjacency.indptr[node], self.adjacency.indptr[node + 1]
        return self.adjacency.indices[start:stop]

    def degree(self) -> np.ndarray:
        """Number of neighbours of every node."""
        return np.diff(self.adjacency.indptr)


def neighbourhood_offsets(use_26_connectivity: bool = False) -> List[Tuple[int, int, int]]:
    """Half of the spatial neighbourhood, one offset per undirected edge.

    Only offsets whose first non-zero component is positive are returned;
    the opposite offsets describe the same edges.

    Args:
        use_26_connectivity: Include edge and corner neighbours as well as
            face neighbours.

    Returns:
        List of 3 offsets for face connectivity, 13 for full connectivity.
    """
    offsets = []
    for offset in itertools.product((-1, 0, 1), repeat=3):
        if not any(offset):
            continue
        if not use_26_connectivity and sum(abs(o) for o in offset) != 1:
            continue
        first = next(o for o in offset if o != 0)
        if first > 0:
            offsets.append(offset)
    return offsets


def _shifted_slices(shape: Tuple[int, ...], offset: Tuple[int, int, int]):
    """Slices selecting voxels ``v`` and ``v + offset`` that both lie in the volume."""
    source, target = [], []
    for dim, o in zip(shape, offset):
        source.append(slice(max(0, -o), dim - max(0, o)))
        target.append(slice(max(0, o), dim - max(0, -o)))
    return tuple(source), tuple(target)


def _pairs_between(source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Node index pairs where both index arrays point at active nodes."""
    both = (source >= 0) & (target >= 0)
    return np.column_stack([source[both], target[both]])


def build_adjacency(
    mask: np.ndarray,
    directions: Optional[np.ndarray] = None,
    angular_threshold: Optional[float] = None,
    use_26_connectivity: bool = False,
) -> ConnectivityGraph:
    """Precompute the node adjacency of a mask.

    Nodes are the non-zero samples of ``mask`` in C order. For a 3D mask,
    neighbouring active voxels are joined according to face (6) or full (26)
    connectivity. For a 4D mask, the fourth axis holds orientations: spatial
    edges join the same orientation in neighbouring voxels, and orientation
    edges join directions of the same voxel that are closer than
    ``angular_threshold`` degrees.

    Args:
        mask: 3D or 4D array; non-zero finite values are active.
        directions: Direction table matching the fourth mask axis. Required
            for a 4D mask, see ``to_unit_vectors`` for the accepted layouts.
        angular_threshold: Angle in degrees below which two orientations of
            the same voxel are neighbours. Default 12.
        use_26_connectivity: Use the 26-neighbourhood instead of the
            6-neighbourhood.

    Returns:
        ConnectivityGraph shared read-only by the whole analysis.

    Raises:
        ConfigurationError: If the mask has the wrong number of dimensions,
            is empty, or disagrees with the direction table.

    Example:
        >>> mask = np.zeros((3, 3, 3))
        >>> mask[1, 1, :2] = 1
        >>> graph = build_adjacency(mask)
        >>> graph.n_nodes, graph.n_edges
        (2, 1)
    """
    mask = np.asarray(mask)

    if mask.ndim not in (3, 4):
        raise ConfigurationError(
            f"Mask must be 3D or 4D, got {mask.ndim} dimensions with shape {mask.shape}"
        )

    unit_vectors = None
    if mask.ndim == 4:
        if directions is None:
            raise ConfigurationError(
                f"A 4D mask (shape {mask.shape}) requires a direction table "
                f"describing its fourth axis"
            )
        unit_vectors = to_unit_vectors(directions)
        if unit_vectors.shape[0] != mask.shape[3]:
            raise ConfigurationError(
                f"The number of directions ({unit_vectors.shape[0]}) is not equal to "
                f"the number of volumes within the mask ({mask.shape[3]})"
            )
        if angular_threshold is None:
            angular_threshold = DEFAULT_ANGULAR_THRESHOLD
    else:
        if directions is not None:
            logger.warning("Direction table ignored for a 3D mask")
        angular_threshold = None

    active = np.isfinite(mask) & (mask != 0)
    coordinates = np.argwhere(active)
    n_nodes = coordinates.shape[0]

    if n_nodes == 0:
        raise ConfigurationError("Mask contains no active voxels")

    # Node index of every mask sample, -1 outside the mask
    index = np.full(mask.shape, -1, dtype=np.int64)
    index[tuple(coordinates.T)] = np.arange(n_nodes)

    pairs = []
    for offset in neighbourhood_offsets(use_26_connectivity):
        source, target = _shifted_slices(mask.shape[:3], offset)
        pairs.append(_pairs_between(index[source].ravel(), index[target].ravel()))

    if unit_vectors is not None:
        for first, second in orientation_pairs(unit_vectors, angular_threshold):
            pairs.append(_pairs_between(index[..., first].ravel(), index[..., second].ravel()))

    pairs = np.concatenate(pairs) if pairs else np.empty((0, 2), dtype=np.int64)

    rows = np.concatenate([pairs[:, 0], pairs[:, 1]])
    cols = np.concatenate([pairs[:, 1], pairs[:, 0]])
    adjacency = sparse.csr_matrix(
        (np.ones(rows.shape[0], dtype=bool), (rows, cols)),
        shape=(n_nodes, n_nodes),
    )
    adjacency.sum_duplicates()

    graph = ConnectivityGraph(
        coordinates=coordinates,
        adjacency=adjacency,
        shape=tuple(mask.shape),
        directions=unit_vectors,
        angular_threshold=angular_threshold,
        use_26_connectivity=use_26_connectivity,
    )

    logger.info(
        f"Built adjacency: {graph.n_nodes} nodes, {graph.n_edges} edges "
        f"({26 if use_26_connectivity else 6}-connectivity"
        f"{', orientation-aware' if graph.is_orientation_aware else ''})"
    )

    return graph
