import numpy as np
from scipy.spatial.distance import pdist


def _distance_scipy(data: np.ndarray, metric: str = 'euclidean', **kwargs) -> np.ndarray:
    """
    Calculate pairwise distances between all samples using scipy's pdist function.

    Each sample is flattened to a vector of n_obs * n_bands values, so the
    samples must be aligned to the same observation schedule.

    Parameters
    ----------
    data : np.ndarray
        Array of shape (n_samples, n_obs, n_bands).
    metric : str, optional
        Distance metric to use. Must be one of the metrics supported by scipy.spatial.distance.pdist.
        Default is 'euclidean'.
    **kwargs : dict
        Additional parameters for specific distance metrics:
        - For 'minkowski': p

    Returns
    -------
    dRow : np.ndarray
        Condensed distance matrix as 1D array of length n_samples * (n_samples - 1) / 2.
    """
    flat = np.asarray(data, dtype=float).reshape(len(data), -1)

    try:
        dRow = pdist(flat, metric=metric, **kwargs)
    except Exception as e:
        raise ValueError(f"Error computing {metric} distance: {str(e)}. "
                       f"Please check that the metric '{metric}' is supported by scipy and "
                       f"required parameters are provided.") from e

    if not np.all(np.isfinite(dRow)):
        raise ValueError(f"The {metric} distance produced non-finite values, "
                         f"e.g. for constant series with 'correlation' or 'cosine'.")

    return dRow
