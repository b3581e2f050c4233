import numpy as np
import pandas as pd
import pytest
from scipy import stats

from permutix.statistics.glm import (
    check_inputs,
    compute_statistic,
    contrast_from_string,
    fit_glm,
    is_intercept_only,
    prepare_contrast,
)
from permutix.statistics.permutation import PermutationDescriptor
from permutix.utils.exceptions import ConfigurationError
from permutix.tests.tools import make_two_group_design


def test_two_group_statistic_matches_pooled_t_test():
    rng = np.random.default_rng(0)
    design = make_two_group_design(5)
    data = rng.normal(size=(20, 10))

    statistic = compute_statistic(data, design, np.array([0.0, 1.0]))

    group = design[:, 1] == 1
    expected = stats.ttest_ind(data[:, group], data[:, ~group], axis=1).statistic
    np.testing.assert_allclose(statistic, expected, rtol=1e-10)


def test_one_sample_statistic_matches_t_test():
    rng = np.random.default_rng(1)
    data = rng.normal(loc=0.5, size=(15, 8))
    design = np.ones((8, 1))

    statistic = compute_statistic(data, design, np.array([1.0]))

    expected = stats.ttest_1samp(data, 0.0, axis=1).statistic
    np.testing.assert_allclose(statistic, expected, rtol=1e-10)


def test_identity_permutation_reproduces_observed_statistic():
    rng = np.random.default_rng(2)
    design = make_two_group_design(4)
    data = rng.normal(size=(12, 8))
    contrast = np.array([0.0, 1.0])

    observed = compute_statistic(data, design, contrast)
    identity = compute_statistic(data, design, contrast, PermutationDescriptor(index=0, is_identity=True))

    np.testing.assert_array_equal(observed, identity)


def test_permutation_reorders_design_rows():
    rng = np.random.default_rng(3)
    design = make_two_group_design(4)
    data = rng.normal(size=(6, 8))
    contrast = np.array([0.0, 1.0])
    order = rng.permutation(8)

    permuted = compute_statistic(data, design, contrast, PermutationDescriptor(index=1, order=order))

    np.testing.assert_allclose(permuted, compute_statistic(data, design[order], contrast))


def test_sign_flip_negates_design_rows():
    design = np.ones((4, 1))
    signs = np.array([1.0, -1.0, -1.0, 1.0])
    descriptor = PermutationDescriptor(index=1, signs=signs)

    np.testing.assert_array_equal(descriptor.apply_to(design), signs[:, None])


def test_constant_node_gets_zero_statistic():
    rng = np.random.default_rng(4)
    design = make_two_group_design(4)
    data = rng.normal(size=(3, 8))
    data[1] = 2.0

    statistic = compute_statistic(data, design, np.array([0.0, 1.0]))

    assert statistic[1] == 0.0
    assert np.all(np.isfinite(statistic))
    assert statistic[0] != 0.0


def test_exact_fit_gives_zero_statistic():
    rng = np.random.default_rng(5)
    design = make_two_group_design(4)
    data = np.outer(rng.normal(size=5), design[:, 1]) + 1.0

    statistic = compute_statistic(data, design, np.array([0.0, 1.0]))

    np.testing.assert_array_equal(statistic, np.zeros(5))


def test_no_residual_degrees_of_freedom():
    design = np.column_stack([np.ones(2), [0.0, 1.0]])
    data = np.array([[1.0, 2.0], [3.0, 5.0]])

    fit = fit_glm(data, design)
    assert fit.dof == 0
    assert fit.degenerate.all()

    statistic = compute_statistic(data, design, np.array([0.0, 1.0]))
    np.testing.assert_array_equal(statistic, np.zeros(2))


def test_contrast_is_zero_padded():
    np.testing.assert_array_equal(prepare_contrast([0, 1], 4), [0.0, 1.0, 0.0, 0.0])
    np.testing.assert_array_equal(prepare_contrast(np.array([[1, -1]]), 2), [1.0, -1.0])


def test_invalid_contrasts():
    with pytest.raises(ConfigurationError, match="Too many contrast entries"):
        prepare_contrast([0, 1, 0], 2)
    with pytest.raises(ConfigurationError, match="all zeros"):
        prepare_contrast([0, 0], 2)
    with pytest.raises(ConfigurationError, match="single contrast row"):
        prepare_contrast(np.eye(2), 2)
    with pytest.raises(ConfigurationError, match="named columns"):
        prepare_contrast("group", 2)


def test_contrast_from_column_names():
    columns = ["intercept", "patients", "controls"]
    np.testing.assert_array_equal(contrast_from_string("patients", columns), [0, 1, 0])
    np.testing.assert_array_equal(contrast_from_string("patients-controls", columns), [0, 1, -1])

    with pytest.raises(ConfigurationError, match="not found"):
        contrast_from_string("age", columns)


def test_check_inputs_with_dataframe_design():
    design = pd.DataFrame({"intercept": np.ones(6), "age": np.arange(6.0)})
    data = np.zeros((3, 6))

    data, design_array, contrast = check_inputs(data, design, "age")

    assert design_array.shape == (6, 2)
    np.testing.assert_array_equal(contrast, [0.0, 1.0])


def test_check_inputs_rejects_subject_mismatch():
    with pytest.raises(ConfigurationError, match="does not match number of rows"):
        check_inputs(np.zeros((5, 7)), make_two_group_design(4), [0, 1])
    with pytest.raises(ConfigurationError, match="2D"):
        check_inputs(np.zeros(8), make_two_group_design(4), [0, 1])


def test_is_intercept_only():
    assert is_intercept_only(np.ones((5, 1)))
    assert not is_intercept_only(make_two_group_design(3))
    assert not is_intercept_only(np.arange(5.0)[:, None])
