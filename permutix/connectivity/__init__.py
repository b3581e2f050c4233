"""Connectivity graph construction from analysis masks."""

from permutix.connectivity.adjacency import (
    ConnectivityGraph,
    build_adjacency,
    neighbourhood_offsets,
)
from permutix.connectivity.directions import (
    to_unit_vectors,
    angles_between,
    orientation_pairs,
)

__all__ = [
    "ConnectivityGraph",
    "build_adjacency",
    "neighbourhood_offsets",
    "to_unit_vectors",
    "angles_between",
    "orientation_pairs",
]
