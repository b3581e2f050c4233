"""Orientation tables for direction-aware connectivity.

A 4D mask carries one orientation per sample of its fourth axis. The
orientations come as a table with one row per sample, either as
``[azimuth, elevation]`` pairs in radians (elevation measured from the z
axis) or as ``[x, y, z]`` vectors.
"""

import logging

import numpy as np

from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def to_unit_vectors(directions: np.ndarray) -> np.ndarray:
    """Convert a direction table to unit vectors.

    Args:
        directions: Array of shape (n_directions, 2) holding azimuth and
            elevation in radians, or (n_directions, 3) holding vectors.

    Returns:
        Array of shape (n_directions, 3) of unit vectors.

    Raises:
        ConfigurationError: If the table has the wrong shape or contains a
            zero-length vector.
    """
    directions = np.atleast_2d(np.asarray(directions, dtype=float))

    if directions.ndim != 2 or directions.shape[1] not in (2, 3):
        raise ConfigurationError(
            f"Direction table must have 2 columns (azimuth, elevation) or "
            f"3 columns (x, y, z), got shape {directions.shape}"
        )

    if directions.shape[1] == 2:
        azimuth, elevation = directions[:, 0], directions[:, 1]
        return np.column_stack([
            np.sin(elevation) * np.cos(azimuth),
            np.sin(elevation) * np.sin(azimuth),
            np.cos(elevation),
        ])

    norms = np.linalg.norm(directions, axis=1)
    if np.any(norms == 0):
        bad = np.flatnonzero(norms == 0).tolist()
        raise ConfigurationError(f"Direction table has zero-length rows: {bad}")

    return directions / norms[:, None]


def angles_between(unit_vectors: np.ndarray) -> np.ndarray:
    """Pairwise angles in degrees between axially symmetric directions.

    Since ``v`` and ``-v`` describe the same orientation, the angle is taken
    from the absolute dot product and never exceeds 90 degrees.

    Args:
        unit_vectors: Array of shape (n_directions, 3).

    Returns:
        Symmetric array of shape (n_directions, n_directions).
    """
    dots = np.abs(unit_vectors @ unit_vectors.T)
    return np.degrees(np.arccos(np.clip(dots, 0.0, 1.0)))


def orientation_pairs(unit_vectors: np.ndarray, angular_threshold: float) -> np.ndarray:
    """Pairs of distinct directions closer than ``angular_threshold``.

    Args:
        unit_vectors: Array of shape (n_directions, 3).
        angular_threshold: Threshold in degrees.

    Returns:
        Integer array of shape (n_pairs, 2) with ``i < j`` on every row.
    """
    angles = angles_between(unit_vectors)
    close = np.triu(angles < angular_threshold, k=1)
    pairs = np.argwhere(close)

    logger.debug(
        f"{len(pairs)} orientation pairs below {angular_threshold} degrees "
        f"among {len(unit_vectors)} directions"
    )

    return pairs
