import numpy as np
from scipy import sparse


def make_mask(shape, active):
    """3D mask with ones at the given voxel indices."""
    mask = np.zeros(shape)
    for voxel in active:
        mask[tuple(voxel)] = 1
    return mask


def make_line_graph(n_nodes, connected=True):
    """Adjacency of ``n_nodes`` nodes in a chain, or without any edge."""
    if not connected or n_nodes < 2:
        return sparse.csr_matrix((n_nodes, n_nodes), dtype=bool)
    rows = np.arange(n_nodes - 1)
    cols = rows + 1
    adjacency = sparse.csr_matrix(
        (np.ones(2 * (n_nodes - 1), dtype=bool),
         (np.concatenate([rows, cols]), np.concatenate([cols, rows]))),
        shape=(n_nodes, n_nodes),
    )
    return adjacency


def make_two_group_design(n_per_group):
    """Intercept plus group indicator, first half of the rows in group 0."""
    group = np.repeat([0.0, 1.0], n_per_group)
    return np.column_stack([np.ones(2 * n_per_group), group])


def make_block_dataset(shape=(6, 6, 4), n_per_group=6, effect=3.0, seed=0):
    """Full-volume mask and two-group data with an effect in one corner block.

    Returns:
        Tuple of (mask, design, data, effect_nodes) where ``effect_nodes``
        flags the nodes of the block carrying the group difference.
    """
    rng = np.random.default_rng(seed)
    mask = np.ones(shape)
    n_nodes = int(np.prod(shape))
    design = make_two_group_design(n_per_group)

    data = rng.normal(size=(n_nodes, 2 * n_per_group))

    block = np.zeros(shape, dtype=bool)
    block[:3, :3, :2] = True
    effect_nodes = block.ravel()
    data[np.ix_(effect_nodes, design[:, 1] == 1)] += effect

    return mask, design, data, effect_nodes
