"""Readers for the plain-text inputs of a permutation test.

Design matrices, contrasts and direction tables are whitespace- or
tab-separated numeric text files without a header, one row per line.
"""

import logging
from pathlib import Path
from typing import List, Union

import numpy as np
import pandas as pd

from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def load_numeric_table(path: Union[str, Path]) -> np.ndarray:
    """Load a header-free numeric table.

    Args:
        path: Path to a whitespace- or tab-separated text file.

    Returns:
        2D float array, one row per non-empty line.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file holds non-numeric values
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        table = pd.read_csv(path, sep=r"\s+", header=None, comment="#", dtype=float)
    except pd.errors.EmptyDataError as e:
        raise ConfigurationError(f"File is empty: {path}") from e
    except ValueError as e:
        raise ConfigurationError(f"Non-numeric values in {path}: {e}") from e

    return table.to_numpy()


def load_design_matrix(path: Union[str, Path]) -> np.ndarray:
    """Load a design matrix (rows = subjects, columns = regressors).

    Args:
        path: Path to design matrix text file

    Returns:
        Design matrix as a 2D array
    """
    design = load_numeric_table(path)
    logger.info(f"Loaded design matrix: {design.shape[0]} subjects x {design.shape[1]} regressors")
    return design


def load_contrast(path: Union[str, Path]) -> np.ndarray:
    """Load a single-row contrast.

    A file with one value per line is read as a column and flattened.

    Args:
        path: Path to contrast text file

    Returns:
        Contrast vector

    Raises:
        ConfigurationError: If the file holds more than one contrast
    """
    contrast = load_numeric_table(path)
    if 1 not in contrast.shape:
        raise ConfigurationError(
            f"Only a single contrast is supported, got a {contrast.shape[0]} x "
            f"{contrast.shape[1]} matrix in {path}"
        )
    return contrast.ravel()


def load_directions(path: Union[str, Path]) -> np.ndarray:
    """Load a direction table.

    Args:
        path: Path to a file with ``azimuth elevation`` (radians) or
            ``x y z`` on every line.

    Returns:
        Array of shape (n_directions, 2) or (n_directions, 3)

    Raises:
        ConfigurationError: If rows have neither 2 nor 3 columns
    """
    directions = load_numeric_table(path)
    if directions.shape[1] not in (2, 3):
        raise ConfigurationError(
            f"Direction file must have 2 or 3 columns, got {directions.shape[1]} in {path}"
        )
    logger.info(f"Loaded {directions.shape[0]} directions from {path}")
    return directions


def parse_directions(text: str) -> np.ndarray:
    """Parse ``azimuth elevation`` pairs stored as text, e.g. in an image header.

    Values may be spread over any number of lines; they are read as a flat
    sequence of pairs.

    Args:
        text: Whitespace- or comma-separated numbers.

    Returns:
        Array of shape (n_directions, 2)

    Raises:
        ConfigurationError: If no pairs are found or a value is left over
    """
    values = text.replace(",", " ").split()
    if not values:
        raise ConfigurationError("No directions have been specified")
    try:
        numbers = np.array([float(v) for v in values])
    except ValueError as e:
        raise ConfigurationError(f"Invalid direction values: {e}") from e

    if numbers.size % 2:
        raise ConfigurationError(
            f"Directions must come in azimuth/elevation pairs, got {numbers.size} values"
        )
    return numbers.reshape(-1, 2)


def load_subject_list(path: Union[str, Path]) -> List[str]:
    """Read one subject entry per line, skipping blank lines.

    Args:
        path: Path to subject list text file

    Returns:
        List of entries in file order (the order of the design rows)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Subject list not found: {path}")

    with path.open() as f:
        subjects = [line.strip() for line in f if line.strip()]

    if not subjects:
        raise ConfigurationError(f"Subject list is empty: {path}")

    return subjects
