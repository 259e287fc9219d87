"""
Tests for time series pre-processing.
"""

import numpy as np
import pytest

from satclstr import (
    SampleCollection,
    align_samples,
    compute_distances,
    normalize_samples,
    savitzky_golay,
    standardize_samples,
    whittaker,
)

from .conftest import DATES


def test_normalize(three_class_samples):
    normalized = normalize_samples(three_class_samples)
    data = normalized.values_array()
    np.testing.assert_allclose(data.min(axis=1), 0.0)
    np.testing.assert_allclose(data.max(axis=1), 1.0)


def test_normalize_constant_band(sample_factory):
    normalized = normalize_samples(SampleCollection([sample_factory("A", [0.4, 0.4, 0.4])]))
    np.testing.assert_array_equal(normalized[0].values, np.zeros((3, 1)))


def test_standardize(three_class_samples):
    data = standardize_samples(three_class_samples).values_array()
    np.testing.assert_allclose(data.mean(axis=1), 0.0, atol=1e-12)
    np.testing.assert_allclose(data.std(axis=1), 1.0)


def test_transforms_keep_identity(three_class_samples):
    subset = three_class_samples.subset([3, 9])
    smoothed = whittaker(subset, lambda_=2.0)
    np.testing.assert_array_equal(smoothed.indices, [3, 9])
    assert smoothed.labels.tolist() == subset.labels.tolist()
    assert smoothed[0].longitude == subset[0].longitude
    np.testing.assert_array_equal(smoothed[0].timeline, subset[0].timeline)


def test_savitzky_golay_preserves_quadratics(sample_factory):
    x = np.arange(12, dtype=float)
    sample = sample_factory("A", 0.01 * x ** 2 - 0.05 * x + 0.3)
    smoothed = savitzky_golay(SampleCollection([sample]), window_length=5, polyorder=2)
    np.testing.assert_allclose(smoothed[0].values, sample.values, atol=1e-12)


def test_savitzky_golay_reduces_roughness(sample_factory):
    rng = np.random.default_rng(5)
    noisy = 0.5 + 0.2 * np.sin(np.linspace(0, 2 * np.pi, 12)) + 0.05 * rng.standard_normal(12)
    smoothed = savitzky_golay(SampleCollection([sample_factory("A", noisy)]))
    assert smoothed[0].n_obs == 12
    assert np.sum(np.diff(smoothed[0].values[:, 0], 2) ** 2) < np.sum(np.diff(noisy, 2) ** 2)


@pytest.mark.parametrize("window_length, polyorder", [(4, 2), (3, 3)])
def test_savitzky_golay_invalid_window(two_class_samples, window_length, polyorder):
    with pytest.raises(ValueError):
        savitzky_golay(two_class_samples, window_length, polyorder)


def test_savitzky_golay_short_series(sample_factory):
    with pytest.raises(ValueError, match="shorter"):
        savitzky_golay(SampleCollection([sample_factory("A", [0.1, 0.2, 0.3])]), window_length=5)


def test_whittaker_without_penalty_is_identity(three_class_samples):
    smoothed = whittaker(three_class_samples, lambda_=0.0)
    np.testing.assert_allclose(smoothed.values_array(), three_class_samples.values_array())


def test_whittaker_keeps_lines(sample_factory):
    line = 0.2 + 0.03 * np.arange(12)
    smoothed = whittaker(SampleCollection([sample_factory("A", line, line[::-1])]), lambda_=100.0)
    np.testing.assert_allclose(smoothed[0].values[:, 0], line, atol=1e-10)
    np.testing.assert_allclose(smoothed[0].values[:, 1], line[::-1], atol=1e-10)


def test_whittaker_negative_lambda(two_class_samples):
    with pytest.raises(ValueError):
        whittaker(two_class_samples, lambda_=-1.0)


def test_align_samples(sample_factory):
    long = sample_factory("A", 0.1 * np.arange(12))
    short = sample_factory("B", 0.1 * np.arange(8), timeline=DATES[:8])
    aligned = align_samples(SampleCollection([long, short]), 6)
    assert [s.n_obs for s in aligned] == [6, 6]
    # endpoints are kept
    assert aligned[0].timeline[0] == DATES[0]
    assert aligned[1].timeline[-1] == DATES[7]
    np.testing.assert_allclose(aligned[1].values[[0, -1], 0], [0.0, 0.7])
    assert compute_distances(aligned, "euclidean").shape == (2, 2)


def test_align_samples_interpolates_linearly(sample_factory):
    # 16-day steps: day 0..176, four targets at 0, 59, 117, 176
    sample = sample_factory("A", 0.01 * np.arange(12))
    aligned = align_samples(SampleCollection([sample]), 4)
    days = (aligned[0].timeline - DATES[0]).astype("timedelta64[D]").astype(int)
    np.testing.assert_array_equal(days, [0, 59, 117, 176])
    np.testing.assert_allclose(aligned[0].values[:, 0], 0.01 * days / 16)


def test_align_samples_errors(sample_factory):
    collection = SampleCollection([sample_factory("A", [0.1, 0.2])])
    with pytest.raises(ValueError):
        align_samples(collection, 0)
    with pytest.raises(ValueError):
        align_samples(collection, 40)
