import numpy as np
from numba import njit
from typing import Optional


def _distance_dtw(data: np.ndarray, window: Optional[int] = None) -> np.ndarray:
    """
    Calculate pairwise Dynamic Time Warping (DTW) distances between all samples.

    Dynamic Time Warping measures the similarity of two temporal sequences
    that may be shifted or stretched in time, e.g. the same crop cycle seen
    a few weeks apart in two different years. It finds the alignment of the
    two sequences with the lowest accumulated cost.

    Parameters
    ----------
    data : np.ndarray
        Array of shape (n_samples, n_obs, n_bands).
    window : Optional[int], default=None
        Sakoe-Chiba band half width in observations. ``None`` allows any warping.

    Returns
    -------
    dRow : np.ndarray
        Condensed distance matrix as 1D array of length n_samples * (n_samples - 1) / 2.

    The local cost between two observations is the Euclidean distance across
    bands, which reduces to ``|x_i - y_j|`` for a single band.
    """
    data = np.ascontiguousarray(data, dtype=np.float64)
    if window is None:
        window = data.shape[1]
    if window < 0:
        raise ValueError(f"DTW window must be >= 0, got {window}")

    dRow = np.zeros(shape=(np.sum(np.arange(len(data))), ))

    return compute_dtw_distances(data, dRow, int(window))


@njit
def compute_dtw_distances(data: np.ndarray, dRow: np.ndarray, window: int) -> np.ndarray:
    """
    Compute DTW distances between all pairs using Numba for performance.

    Parameters
    ----------
    data : np.ndarray
        Input sequences array of shape (n_samples, n_obs, n_bands).
    dRow : np.ndarray
        Array to store distances.
    window : int
        Maximum allowed index offset between aligned observations.

    Returns
    -------
    np.ndarray
        Array filled with DTW distances.
    """
    n_obs = data.shape[1]
    n_bands = data.shape[2]
    index = -1
    for i in range(len(data)):
        for j in range(i+1, len(data)):
            index += 1

            sample1 = data[i]
            sample2 = data[j]

            dtw = np.full((n_obs + 1, n_obs + 1), np.inf)
            dtw[0, 0] = 0

            for k in range(n_obs):
                for l in range(max(0, k - window), min(n_obs, k + window + 1)):
                    cost = 0.0
                    for b in range(n_bands):
                        diff = sample1[k, b] - sample2[l, b]
                        cost += diff * diff
                    cost = np.sqrt(cost)
                    dtw[k + 1, l + 1] = cost + min(dtw[k + 1, l], dtw[k, l + 1], dtw[k, l])

            dRow[index] = dtw[n_obs, n_obs]

    return dRow
