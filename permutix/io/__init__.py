"""Plain-text inputs and array outputs for Permutix."""

from permutix.io.readers import (
    load_numeric_table,
    load_design_matrix,
    load_contrast,
    load_directions,
    parse_directions,
    load_subject_list,
)
from permutix.io.writers import (
    unmask_nodes,
    save_matrix_with_sidecar,
    save_distribution,
    save_results,
    make_serializable,
)

__all__ = [
    "load_numeric_table",
    "load_design_matrix",
    "load_contrast",
    "load_directions",
    "parse_directions",
    "load_subject_list",
    "unmask_nodes",
    "save_matrix_with_sidecar",
    "save_distribution",
    "save_results",
    "make_serializable",
]
