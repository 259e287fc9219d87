"""
Pytest configuration and shared fixtures.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from satclstr import Sample, SampleCollection


DATES = pd.date_range("2013-09-14", periods=12, freq="16D").values


def make_sample(label, ndvi, evi=None, lon=-55.0, lat=-10.0, timeline=None):
    ndvi = np.asarray(ndvi, dtype=float)
    values = ndvi if evi is None else np.column_stack([ndvi, np.asarray(evi, dtype=float)])
    bands = ("NDVI",) if evi is None else ("NDVI", "EVI")
    if timeline is None:
        timeline = DATES[: len(ndvi)]
    return Sample(lon, lat, timeline[0], timeline[-1], label, timeline, bands, values)


@pytest.fixture
def sample_factory():
    """Build a single-band or two-band sample from plain lists."""
    return make_sample


@pytest.fixture
def two_class_samples():
    """
    Six samples, three Forest and three Pasture, with well separated curves.
    """
    t = np.linspace(0, 2 * np.pi, 12)
    rng = np.random.default_rng(7)
    samples = []
    for i in range(3):
        samples.append(make_sample("Forest", 0.8 + 0.02 * np.sin(t) + 0.005 * rng.standard_normal(12) + 0.01 * i))
    for i in range(3):
        samples.append(make_sample("Pasture", 0.3 + 0.2 * np.sin(t) + 0.005 * rng.standard_normal(12) + 0.01 * i))
    return SampleCollection(samples)


@pytest.fixture
def three_class_samples():
    """
    Fifteen two-band samples in three groups, one Pasture sample mislabelled
    as Soy inside the Pasture group.
    """
    t = np.linspace(0, 2 * np.pi, 12)
    rng = np.random.default_rng(11)
    shapes = {
        "Forest": (0.85 + 0.02 * np.sin(t), 0.55 + 0.01 * np.sin(t)),
        "Pasture": (0.35 + 0.25 * np.sin(t), 0.25 + 0.15 * np.sin(t)),
        "Soy": (0.2 + 0.6 * np.clip(np.sin(t - 1), 0, None), 0.15 + 0.4 * np.clip(np.sin(t - 1), 0, None)),
    }
    samples = []
    for label, (ndvi, evi) in shapes.items():
        for i in range(5):
            noise = 0.01 * rng.standard_normal((2, 12))
            name = "Soy" if (label == "Pasture" and i == 4) else label
            samples.append(make_sample(name, ndvi + noise[0], evi + noise[1], lon=-55.0 + i, lat=-10.0))
    return SampleCollection(samples)
