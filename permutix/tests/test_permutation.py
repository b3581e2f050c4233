import threading

import numpy as np
import pytest

from permutix.connectivity.adjacency import build_adjacency
from permutix.statistics.glm import compute_statistic
from permutix.statistics.permutation import (
    PermutationAccumulator,
    PermutationDescriptor,
    PermutationGenerator,
    run_pipeline,
)
from permutix.statistics.tfce import enhance_both
from permutix.utils.exceptions import ConfigurationError, PipelineError
from permutix.tests.tools import make_block_dataset, make_mask, make_two_group_design


def test_generator_issues_identity_first():
    generator = PermutationGenerator(5, 6, random_state=0)

    descriptors = list(generator)

    assert len(descriptors) == 5
    assert descriptors[0].is_identity
    assert not any(d.is_identity for d in descriptors[1:])
    assert [d.index for d in descriptors] == list(range(5))
    assert generator.next() is None
    assert generator.remaining == 0


def test_generator_draws_label_permutations():
    for descriptor in list(PermutationGenerator(20, 7, random_state=1))[1:]:
        assert descriptor.signs is None
        assert sorted(descriptor.order.tolist()) == list(range(7))


def test_generator_draws_sign_flips():
    for descriptor in list(PermutationGenerator(20, 7, sign_flip=True, random_state=1))[1:]:
        assert descriptor.order is None
        assert set(descriptor.signs.tolist()) <= {-1.0, 1.0}
        assert descriptor.signs.shape == (7,)


def test_generator_is_reproducible_with_seed():
    first = [d.order for d in list(PermutationGenerator(10, 8, random_state=42))[1:]]
    second = [d.order for d in list(PermutationGenerator(10, 8, random_state=42))[1:]]
    for a, b in zip(first, second):
        np.testing.assert_array_equal(a, b)


def test_generator_is_thread_safe():
    generator = PermutationGenerator(500, 5, random_state=0)
    issued = []
    lock = threading.Lock()

    def drain():
        while (descriptor := generator.next()) is not None:
            with lock:
                issued.append(descriptor)

    threads = [threading.Thread(target=drain) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(issued) == 500
    assert sorted(d.index for d in issued) == list(range(500))
    assert sum(d.is_identity for d in issued) == 1


def test_generator_rejects_invalid_counts():
    with pytest.raises(ConfigurationError):
        PermutationGenerator(0, 5)
    with pytest.raises(ConfigurationError):
        PermutationGenerator(10, 0)


def test_accumulator_rejects_second_identity():
    accumulator = PermutationAccumulator(3)
    identity = PermutationDescriptor(index=0, is_identity=True)
    values = np.zeros(2)

    accumulator.record(identity, values, values, values)
    with pytest.raises(PipelineError, match="more than once"):
        accumulator.record(identity, values, values, values)


def test_accumulator_requires_complete_run():
    accumulator = PermutationAccumulator(2)
    values = np.array([1.0, 3.0])

    with pytest.raises(PipelineError, match="never processed"):
        accumulator.result()

    accumulator.record(PermutationDescriptor(index=0, is_identity=True), values, values, values)
    with pytest.raises(PipelineError, match="Only 1 of 2"):
        accumulator.result()

    accumulator.record(PermutationDescriptor(index=1, order=np.arange(2)), values, values, -values)
    result = accumulator.result()
    np.testing.assert_array_equal(result.null_pos, [3.0])
    np.testing.assert_array_equal(result.null_neg, [-1.0])
    assert result.n_permutations == 2


def test_pipeline_observed_images_match_direct_computation():
    mask, design, data, _ = make_block_dataset(shape=(4, 4, 3), n_per_group=4)
    graph = build_adjacency(mask)
    contrast = np.array([0.0, 1.0])

    result = run_pipeline(data, design, contrast, graph, n_permutations=10, n_workers=2, random_state=0)

    statistic = compute_statistic(data, design, contrast)
    positive, negative = enhance_both(statistic, graph)
    np.testing.assert_array_equal(result.statistic, statistic)
    np.testing.assert_array_equal(result.tfce_pos, positive)
    np.testing.assert_array_equal(result.tfce_neg, negative)
    assert result.null_pos.shape == (9,)
    assert result.null_neg.shape == (9,)


def test_pipeline_null_does_not_depend_on_worker_count():
    mask, design, data, _ = make_block_dataset(shape=(4, 4, 3), n_per_group=4)
    graph = build_adjacency(mask)
    contrast = np.array([0.0, 1.0])

    single = run_pipeline(data, design, contrast, graph, n_permutations=40, n_workers=1, random_state=7)
    multi = run_pipeline(data, design, contrast, graph, n_permutations=40, n_workers=4, random_state=7)

    np.testing.assert_array_equal(np.sort(single.null_pos), np.sort(multi.null_pos))
    np.testing.assert_array_equal(np.sort(single.null_neg), np.sort(multi.null_neg))
    np.testing.assert_array_equal(single.tfce_pos, multi.tfce_pos)


def test_pipeline_with_identity_only():
    mask, design, data, _ = make_block_dataset(shape=(3, 3, 2), n_per_group=3)
    graph = build_adjacency(mask)

    result = run_pipeline(data, design, [0, 1], graph, n_permutations=1, random_state=0)

    assert result.null_pos.size == 0
    assert result.null_neg.size == 0
    assert result.n_permutations == 1


def test_pipeline_enhances_observed_statistic(monkeypatch):
    graph = build_adjacency(make_mask((3, 3, 3), [(1, 1, 0), (1, 1, 1)]))
    design = make_two_group_design(2)
    data = np.zeros((2, 4))

    monkeypatch.setattr(
        "permutix.statistics.permutation.compute_statistic",
        lambda data, design, contrast, permutation=None: np.array([3.0, 3.0]),
    )

    result = run_pipeline(data, design, [0, 1], graph, n_permutations=1, dh=1.0, E=1.0, H=1.0)

    np.testing.assert_allclose(result.tfce_pos, [12.0, 12.0])
    np.testing.assert_allclose(result.tfce_neg, [0.0, 0.0])


def test_pipeline_propagates_worker_failure(monkeypatch):
    mask, design, data, _ = make_block_dataset(shape=(3, 3, 2), n_per_group=3)
    graph = build_adjacency(mask)

    def failing_statistic(data, design, contrast, permutation=None):
        if permutation is not None and permutation.index == 5:
            raise FloatingPointError("singular design")
        return compute_statistic(data, design, contrast, permutation)

    monkeypatch.setattr("permutix.statistics.permutation.compute_statistic", failing_statistic)

    with pytest.raises(FloatingPointError, match="singular design"):
        run_pipeline(data, design, [0, 1], graph, n_permutations=50, n_workers=3, random_state=0)


def test_pipeline_rejects_mismatched_graph():
    mask, design, data, _ = make_block_dataset(shape=(3, 3, 2), n_per_group=3)
    graph = build_adjacency(np.ones((2, 2, 2)))

    with pytest.raises(ConfigurationError, match="rows but the mask defines"):
        run_pipeline(data, design, [0, 1], graph, n_permutations=5)


def test_pipeline_rejects_non_positive_tfce_parameters(monkeypatch):
    mask, design, data, _ = make_block_dataset(shape=(3, 3, 2), n_per_group=3)
    graph = build_adjacency(mask)

    def unexpected_run(self, source, consumer):
        raise AssertionError("pool should not start")

    monkeypatch.setattr("permutix.statistics.permutation.WorkerPool.run", unexpected_run)

    with pytest.raises(ConfigurationError, match="dh must be positive"):
        run_pipeline(data, design, [0, 1], graph, n_permutations=5, dh=-0.1, random_state=0)
    with pytest.raises(ConfigurationError, match="dh must be positive"):
        run_pipeline(data, design, [0, 1], graph, n_permutations=5, dh=0.0)
    with pytest.raises(ConfigurationError, match="H must be positive"):
        run_pipeline(data, design, [0, 1], graph, n_permutations=5, H=0.0)
