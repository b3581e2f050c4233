"""File writers for permutation test outputs."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from permutix.connectivity.adjacency import ConnectivityGraph
from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def unmask_nodes(values: np.ndarray, graph: ConnectivityGraph, fill: float = 0.0) -> np.ndarray:
    """Re-embed one value per graph node into a dense volume.

    Args:
        values: Array of shape (n_nodes,), in graph node order.
        graph: Graph the values were computed on.
        fill: Value of samples outside the mask.

    Returns:
        Array with the shape of the mask the graph was built from.

    Raises:
        ConfigurationError: If the number of values does not match the graph.
    """
    values = np.asarray(values).ravel()
    if values.shape[0] != graph.n_nodes:
        raise ConfigurationError(
            f"Got {values.shape[0]} values for a graph of {graph.n_nodes} nodes"
        )

    volume = np.full(graph.shape, fill, dtype=np.result_type(values.dtype, np.float32))
    volume[tuple(graph.coordinates.T)] = values
    return volume


def save_matrix_with_sidecar(
    matrix: np.ndarray,
    output_path: Union[str, Path],
    metadata: Dict[str, Any],
) -> Path:
    """Write an array as .npy next to a JSON sidecar of the same stem.

    The sidecar holds ``metadata`` plus the array shape, dtype and the
    time of writing.

    Returns:
        Path of the sidecar.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.save(output_path, matrix)

    sidecar = {
        **metadata,
        "Shape": list(matrix.shape),
        "Dtype": str(matrix.dtype),
        "CreationTime": datetime.now().isoformat(),
    }

    sidecar_path = output_path.with_suffix(".json")
    with sidecar_path.open("w") as f:
        json.dump(make_serializable(sidecar), f, indent=2)
    return sidecar_path


def save_distribution(distribution: np.ndarray, output_path: Union[str, Path]) -> None:
    """Save a null distribution as plain text, one value per line.

    Args:
        distribution: 1D array of permutation maxima
        output_path: Path for output text file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(output_path, np.asarray(distribution, dtype=float).ravel(), fmt="%.8g")


def save_results(
    results,
    output_dir: Union[str, Path],
    prefix: Optional[str] = None,
    as_volumes: bool = True,
) -> Dict[str, Path]:
    """Write every output of a permutation test.

    Files written, for each side ``pos`` and ``neg``:

    - ``<prefix>_tfce_<side>.npy``: observed enhanced image
    - ``<prefix>_pvalue_<side>.npy``: FWE-corrected p-values
    - ``<prefix>_permutation_<side>.txt``: null distribution

    plus ``<prefix>_stat.npy`` with the observed contrast statistic. Every
    ``.npy`` file has a JSON sidecar.

    Args:
        results: PermutationResults from ``run_permutation_test``.
        output_dir: Output directory.
        prefix: Filename prefix. Defaults to the configured output prefix.
        as_volumes: Re-embed node values into the mask volume. If False,
            the node vectors are saved as they are.

    Returns:
        Dictionary mapping output names to written paths.
    """
    output_dir = Path(output_dir)
    prefix = prefix or results.config.output_prefix

    metadata = {
        "NumberOfPermutations": results.n_permutations,
        "NumberOfNodes": results.graph.n_nodes,
        "Connectivity": 26 if results.graph.use_26_connectivity else 6,
        "AngularThreshold": results.graph.angular_threshold,
        "TFCE": {
            "dh": results.config.tfce.dh,
            "E": results.config.tfce.e,
            "H": results.config.tfce.h,
        },
    }

    images = {
        "stat": ("Observed contrast t statistic", results.statistic),
        "tfce_pos": ("Positive-going TFCE-enhanced statistic", results.tfce_pos),
        "tfce_neg": ("Negative-going TFCE-enhanced statistic", results.tfce_neg),
        "pvalue_pos": ("FWE-corrected p-values, positive-going effects", results.pvalue_pos),
        "pvalue_neg": ("FWE-corrected p-values, negative-going effects", results.pvalue_neg),
    }

    written = {}
    for name, (description, values) in images.items():
        path = output_dir / f"{prefix}_{name}.npy"
        data = unmask_nodes(values, results.graph) if as_volumes else values
        save_matrix_with_sidecar(data, path, {**metadata, "Description": description})
        written[name] = path

    for side, distribution in (("pos", results.null_pos), ("neg", results.null_neg)):
        path = output_dir / f"{prefix}_permutation_{side}.txt"
        save_distribution(distribution, path)
        written[f"permutation_{side}"] = path

    logger.info(f"Saved {len(written)} outputs to {output_dir}")

    return written


def make_serializable(obj: Any) -> Any:
    """Turn paths, numpy scalars and arrays into JSON types, recursing into containers."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: make_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [make_serializable(item) for item in obj]
    elif isinstance(obj, np.generic):
        return obj.item()
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    else:
        return obj
