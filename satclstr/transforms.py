"""
Pre-processing of sample time series.

Samples are immutable, so every transform returns a new collection with
the same labels, locations and original indices.
"""

import numpy as np
from scipy import sparse
from scipy.signal import savgol_filter
from scipy.sparse.linalg import spsolve
from typing import Callable, TYPE_CHECKING

from .samples import SampleCollection

if TYPE_CHECKING:
    from .samples import Sample


def _map_values(samples: SampleCollection, function: Callable[[np.ndarray], np.ndarray]) -> SampleCollection:
    return SampleCollection([s.with_values(function(s.values)) for s in samples], samples.indices)


def normalize_samples(samples: SampleCollection) -> SampleCollection:
    """
    Compute the normalized version of every band such that
    y_i = (x_i - min(x)) / (max(x) - min(x))

    Constant bands become zero.
    """
    def normalize(values: np.ndarray) -> np.ndarray:
        span = np.ptp(values, axis=0)
        return (values - np.min(values, axis=0)) / np.where(span == 0, 1, span)

    return _map_values(samples, normalize)


def standardize_samples(samples: SampleCollection) -> SampleCollection:
    """
    Compute the standardized version of every band such that
    y_i = (x_i - mean(x)) / std(x)
    """
    def standardize(values: np.ndarray) -> np.ndarray:
        std = np.std(values, axis=0)
        return (values - np.mean(values, axis=0)) / np.where(std == 0, 1, std)

    return _map_values(samples, standardize)


def savitzky_golay(samples: SampleCollection, window_length: int = 5, polyorder: int = 2) -> SampleCollection:
    """
    Smooth every band with a Savitzky-Golay filter.

    Parameters
    ----------
    samples : SampleCollection
        Samples to smooth.
    window_length : int, default=5
        Length of the filter window in observations, odd and larger than ``polyorder``.
    polyorder : int, default=2
        Order of the fitted polynomial.
    """
    if window_length % 2 == 0 or window_length <= polyorder:
        raise ValueError("window_length must be odd and larger than polyorder")

    def smooth(values: np.ndarray) -> np.ndarray:
        if values.shape[0] < window_length:
            raise ValueError(f"Series of {values.shape[0]} observations is shorter than the "
                             f"Savitzky-Golay window of {window_length}")
        return savgol_filter(values, window_length, polyorder, axis=0, mode='interp')

    return _map_values(samples, smooth)


def whittaker(samples: SampleCollection, lambda_: float = 0.5, order: int = 2) -> SampleCollection:
    """
    Smooth every band with the Whittaker smoother.

    Solves ``(I + lambda D'D) z = y`` where ``D`` is the difference matrix of
    the given order.

    Parameters
    ----------
    samples : SampleCollection
        Samples to smooth.
    lambda_ : float, default=0.5
        Smoothing weight; larger values give smoother series.
    order : int, default=2
        Order of the differences penalized.
    """
    if lambda_ < 0:
        raise ValueError(f"lambda_ must be >= 0, got {lambda_}")

    def smooth(values: np.ndarray) -> np.ndarray:
        n_obs = values.shape[0]
        if n_obs <= order:
            return values.copy()
        D = sparse.eye(n_obs, format='csr')
        for _ in range(order):
            D = D[1:] - D[:-1]
        system = sparse.csc_matrix(sparse.eye(n_obs) + lambda_ * (D.T @ D))
        return np.column_stack([spsolve(system, values[:, b]) for b in range(values.shape[1])])

    return _map_values(samples, smooth)


def _align_sample(sample: 'Sample', n_obs: int) -> 'Sample':
    days = (sample.timeline - sample.timeline[0]).astype(float)
    target = np.round(np.linspace(0.0, days[-1], n_obs))
    values = np.column_stack([np.interp(target, days, sample.values[:, b])
                              for b in range(sample.values.shape[1])])
    timeline = sample.timeline[0] + target.astype(np.int64).astype('timedelta64[D]')
    if n_obs > 1 and np.any(np.diff(timeline) <= np.timedelta64(0, 'D')):
        raise ValueError(f"Cannot place {n_obs} distinct dates between {sample.timeline[0]} "
                         f"and {sample.timeline[-1]}")
    return sample.with_values(values, timeline)


def align_samples(samples: SampleCollection, n_obs: int) -> SampleCollection:
    """
    Resample every sample onto ``n_obs`` evenly spaced dates.

    The dates span each sample's first to last observation and the band
    values are linearly interpolated, so that samples observed on different
    schedules can be compared position by position.
    """
    if n_obs < 1:
        raise ValueError(f"n_obs must be >= 1, got {n_obs}")
    return SampleCollection([_align_sample(s, n_obs) for s in samples], samples.indices)
