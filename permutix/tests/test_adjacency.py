import numpy as np
import pytest

from permutix.connectivity.adjacency import build_adjacency, neighbourhood_offsets
from permutix.connectivity.directions import angles_between, orientation_pairs, to_unit_vectors
from permutix.utils.exceptions import ConfigurationError
from permutix.tests.tools import make_mask


def test_single_voxel_has_no_edges():
    graph = build_adjacency(make_mask((3, 3, 3), [(1, 1, 1)]))
    assert graph.n_nodes == 1
    assert graph.n_edges == 0
    assert graph.neighbours(0).size == 0


def test_two_face_neighbours_share_one_edge():
    graph = build_adjacency(make_mask((3, 3, 3), [(1, 1, 0), (1, 1, 1)]))
    assert graph.n_nodes == 2
    assert graph.n_edges == 1
    assert graph.neighbours(0).tolist() == [1]
    assert graph.neighbours(1).tolist() == [0]


def test_offsets_cover_half_the_neighbourhood():
    assert len(neighbourhood_offsets(False)) == 3
    assert len(neighbourhood_offsets(True)) == 13


def test_full_cube_edge_counts():
    mask = np.ones((3, 3, 3))

    face = build_adjacency(mask)
    full = build_adjacency(mask, use_26_connectivity=True)

    assert face.n_edges == 54
    assert full.n_edges == 158
    # Centre voxel is node 13 in C order
    assert face.degree()[13] == 6
    assert full.degree()[13] == 26


def test_diagonal_voxels_only_connected_with_26_neighbourhood():
    mask = make_mask((3, 3, 3), [(0, 0, 0), (1, 1, 1)])
    assert build_adjacency(mask).n_edges == 0
    assert build_adjacency(mask, use_26_connectivity=True).n_edges == 1


def test_adjacency_is_symmetric_without_self_loops():
    rng = np.random.default_rng(3)
    mask = rng.random((6, 5, 4)) > 0.4
    graph = build_adjacency(mask, use_26_connectivity=True)

    adjacency = graph.adjacency
    assert (adjacency != adjacency.T).nnz == 0
    assert not adjacency.diagonal().any()


def test_node_order_follows_mask_c_order():
    mask = make_mask((4, 4, 4), [(3, 0, 0), (0, 2, 1), (0, 2, 2)])
    graph = build_adjacency(mask)
    np.testing.assert_array_equal(graph.coordinates, np.argwhere(mask))


def test_orientation_aware_edges():
    directions = np.array([
        [0.0, 0.0, 1.0],
        [np.sin(np.radians(5)), 0.0, np.cos(np.radians(5))],
        [1.0, 0.0, 0.0],
    ])
    mask = np.ones((1, 1, 2, 3))

    graph = build_adjacency(mask, directions=directions, angular_threshold=12)

    assert graph.n_nodes == 6
    assert graph.is_orientation_aware
    assert graph.coordinates.shape == (6, 4)
    # 3 spatial edges (one per orientation) and 1 orientation edge per voxel
    assert graph.n_edges == 5
    # Node 0 is voxel (0, 0, 0) along the first direction
    assert sorted(graph.neighbours(0).tolist()) == [1, 3]
    assert sorted(graph.neighbours(2).tolist()) == [5]


def test_antipodal_directions_are_neighbours():
    directions = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0]])
    graph = build_adjacency(np.ones((1, 1, 1, 2)), directions=directions)
    assert graph.n_edges == 1


def test_4d_mask_requires_directions():
    with pytest.raises(ConfigurationError, match="direction"):
        build_adjacency(np.ones((2, 2, 2, 3)))


def test_direction_count_must_match_mask():
    directions = np.eye(3)[:2]
    with pytest.raises(ConfigurationError, match="number of directions"):
        build_adjacency(np.ones((2, 2, 2, 3)), directions=directions)


def test_invalid_masks():
    with pytest.raises(ConfigurationError, match="3D or 4D"):
        build_adjacency(np.ones((4, 4)))
    with pytest.raises(ConfigurationError, match="no active"):
        build_adjacency(np.zeros((2, 2, 2)))


def test_azimuth_elevation_conversion():
    vectors = to_unit_vectors(np.array([[0.0, 0.0], [0.0, np.pi / 2], [np.pi / 2, np.pi / 2]]))
    np.testing.assert_allclose(vectors, np.eye(3)[[2, 0, 1]], atol=1e-12)


def test_zero_length_direction_rejected():
    with pytest.raises(ConfigurationError, match="zero-length"):
        to_unit_vectors(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]))


def test_angles_are_axially_symmetric():
    vectors = to_unit_vectors(np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]))
    angles = angles_between(vectors)
    assert angles[0, 1] == pytest.approx(0.0, abs=1e-6)
    assert angles[0, 2] == pytest.approx(90.0)

    pairs = orientation_pairs(vectors, 12.0)
    assert pairs.tolist() == [[0, 1]]
