"""
Hierarchical clustering of satellite image time series samples.

This module computes distance matrices between samples, builds dendrograms
with a choice of linkage criteria and cuts them into flat partitions.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np
import pandas as pd
from numba import njit
from scipy.cluster.hierarchy import fcluster, is_valid_linkage
from scipy.spatial.distance import squareform

from ._distance_dtw import _distance_dtw
from ._distance_scipy import _distance_scipy
from .errors import InvalidCutError

if TYPE_CHECKING:
    from .samples import SampleCollection

logger = logging.getLogger(__name__)

_distance_functions: Dict[str, Callable] = {
    'dtw': _distance_dtw,
    'euclidean': lambda data, **kwargs: _distance_scipy(data, metric='euclidean', **kwargs),
    'manhattan': lambda data, **kwargs: _distance_scipy(data, metric='cityblock', **kwargs),
    'cityblock': lambda data, **kwargs: _distance_scipy(data, metric='cityblock', **kwargs),
    'sqeuclidean': lambda data, **kwargs: _distance_scipy(data, metric='sqeuclidean', **kwargs),
    'cosine': lambda data, **kwargs: _distance_scipy(data, metric='cosine', **kwargs),
    'correlation': lambda data, **kwargs: _distance_scipy(data, metric='correlation', **kwargs),
    'chebyshev': lambda data, **kwargs: _distance_scipy(data, metric='chebyshev', **kwargs),
    'canberra': lambda data, **kwargs: _distance_scipy(data, metric='canberra', **kwargs),
    'braycurtis': lambda data, **kwargs: _distance_scipy(data, metric='braycurtis', **kwargs),
    'minkowski': lambda data, **kwargs: _distance_scipy(data, metric='minkowski', **kwargs),
}


def compute_distances(samples: 'SampleCollection', distance: str = 'dtw', **distance_kwargs) -> np.ndarray:
    """
    Compute the pairwise distance matrix of a sample collection.

    Parameters
    ----------
    samples : SampleCollection
        Samples sharing the same bands and number of observations.
    distance : str, default='dtw'
        ``dtw``: Dynamic Time Warping with Euclidean cost across bands.
        Accepts ``window`` (Sakoe-Chiba band half width).

        `Scipy distance metrics <https://docs.scipy.org/doc/scipy/reference/generated/scipy.spatial.distance.pdist.html>`_
        on the flattened series:

        ``euclidean``, ``manhattan``, ``cityblock``, ``sqeuclidean``, ``cosine``,
        ``correlation``, ``chebyshev``, ``canberra``, ``braycurtis``, ``minkowski``
    **distance_kwargs
        Additional distance function parameters.

    Returns
    -------
    np.ndarray
        Symmetric (n_samples, n_samples) matrix with a zero diagonal.

    Raises
    ------
    IncompatibleSeriesError
        If the samples have mismatched bands or series lengths.
    """
    try:
        distance_function = _distance_functions[distance]
    except KeyError:
        raise ValueError(f"Unknown distance: {distance}. "
                         f"Available distances: {sorted(_distance_functions)}") from None

    data = samples.values_array()
    if len(data) < 2:
        return np.zeros((len(data), len(data)))

    dRow = distance_function(data, **distance_kwargs)
    distances = squareform(dRow, checks=False)
    distances = (distances + distances.T) / 2
    np.fill_diagonal(distances, 0.0)

    logger.info("Computed %s distances between %d samples", distance, len(data))
    return distances


class LinkageStrategy(Enum):
    """Rule for the distance between two clusters."""
    SINGLE = 'single'
    COMPLETE = 'complete'
    AVERAGE = 'average'
    WARD = 'ward'


_linkage_codes: Dict[LinkageStrategy, int] = {
    LinkageStrategy.SINGLE: 0,
    LinkageStrategy.COMPLETE: 1,
    LinkageStrategy.AVERAGE: 2,
    LinkageStrategy.WARD: 3,
}


class Dendrogram:
    """
    Binary merge tree over the samples.

    The tree is stored as a linkage matrix in the format of
    `scipy.cluster.hierarchy.linkage <https://docs.scipy.org/doc/scipy/reference/generated/scipy.cluster.hierarchy.linkage.html>`_:
    row ``s`` merges the nodes ``Z[s, 0]`` and ``Z[s, 1]`` at height ``Z[s, 2]``
    into node ``n_leaves + s`` holding ``Z[s, 3]`` samples. Leaf ``i`` is the
    sample at position ``i`` of the clustered collection.

    Attributes
    ----------
    linkage_matrix : np.ndarray
        (n_leaves - 1, 4) linkage matrix with non-decreasing heights.
    linkage : LinkageStrategy
        Linkage criterion used to build the tree.
    n_clamped : int
        Number of merge heights raised to the previous height.
    """

    def __init__(self, linkage_matrix: np.ndarray, linkage: LinkageStrategy, n_clamped: int = 0):
        linkage_matrix = np.array(linkage_matrix, dtype=float)
        if linkage_matrix.ndim != 2 or linkage_matrix.shape[0] < 1:
            raise ValueError("A dendrogram needs at least two leaves")
        if not is_valid_linkage(linkage_matrix):
            raise ValueError("Invalid linkage matrix")
        if np.any(np.diff(linkage_matrix[:, 2]) < 0):
            raise ValueError("Merge heights must be non-decreasing")
        self.linkage_matrix = linkage_matrix
        self.linkage = LinkageStrategy(linkage)
        self.n_clamped = n_clamped

    def __repr__(self) -> str:
        return (f"Dendrogram(n_leaves={self.n_leaves}, linkage={self.linkage.value}, "
                f"max_height={self.max_height:.4g})")

    @property
    def n_leaves(self) -> int:
        return self.linkage_matrix.shape[0] + 1

    @property
    def heights(self) -> np.ndarray:
        """Merge heights in merge order."""
        return self.linkage_matrix[:, 2]

    @property
    def max_height(self) -> float:
        return float(self.heights[-1])

    def merges(self) -> List[Tuple[int, int, float]]:
        """Export the tree as (left child, right child, height) records."""
        return [(int(left), int(right), float(height)) for left, right, height, _ in self.linkage_matrix]

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.linkage_matrix, columns=['left', 'right', 'height', 'size'])
        frame = frame.astype({'left': int, 'right': int, 'size': int})
        frame.insert(0, 'node', np.arange(self.n_leaves, 2 * self.n_leaves - 1))
        return frame

    @classmethod
    def from_merges(cls, merges: Sequence[Tuple[int, int, float]],
                    linkage: LinkageStrategy = LinkageStrategy.COMPLETE) -> 'Dendrogram':
        """
        Rebuild a dendrogram from the records produced by ``merges()``.

        Parameters
        ----------
        merges : Sequence[Tuple[int, int, float]]
            Merge records in merge order.
        linkage : LinkageStrategy
            Linkage criterion the records were built with.
        """
        n_leaves = len(merges) + 1
        sizes = np.ones(2 * n_leaves - 1, dtype=int)
        rows = []
        for step, (left, right, height) in enumerate(merges):
            left, right = int(left), int(right)
            if not (0 <= left < n_leaves + step and 0 <= right < n_leaves + step):
                raise ValueError(f"Merge {step} references a node that does not exist yet")
            sizes[n_leaves + step] = sizes[left] + sizes[right]
            rows.append((min(left, right), max(left, right), float(height), sizes[n_leaves + step]))
        return cls(np.array(rows, dtype=float).reshape(-1, 4), linkage)


def _check_distance_matrix(distances: np.ndarray) -> np.ndarray:
    distances = np.asarray(distances, dtype=float)
    if distances.ndim != 2 or distances.shape[0] != distances.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {distances.shape}")
    if distances.shape[0] < 2:
        raise ValueError("At least two samples are needed to build a dendrogram")
    if not np.all(np.isfinite(distances)):
        raise ValueError("Distance matrix contains non-finite values")
    if np.any(distances < 0):
        raise ValueError("Distance matrix contains negative values")
    if np.any(np.diag(distances) != 0):
        raise ValueError("Distance matrix must have a zero diagonal")
    if not np.allclose(distances, distances.T):
        raise ValueError("Distance matrix must be symmetric")
    return np.ascontiguousarray((distances + distances.T) / 2)


def build_dendrogram(distances: np.ndarray, linkage: LinkageStrategy = LinkageStrategy.COMPLETE) -> Dendrogram:
    """
    Build a dendrogram by agglomerative hierarchical clustering.

    The two closest clusters are merged until one cluster remains. Distances
    to the merged cluster follow the Lance-Williams update of the linkage
    criterion:

    ``single``: minimum distance between members

    ``complete``: maximum distance between members

    ``average``: mean distance between members (UPGMA)

    ``ward``: increase of the within-cluster sum of squares, with heights on
    the same scale as ``scipy.cluster.hierarchy.linkage(method='ward')``

    Among equally close pairs, the pair whose smallest sample indices are
    lowest is merged first. A merge height below the previous one, which can
    only come from floating-point rounding, is raised to the previous height
    so that heights never decrease.

    Parameters
    ----------
    distances : np.ndarray
        Symmetric (n_samples, n_samples) distance matrix with a zero diagonal.
    linkage : LinkageStrategy, default=LinkageStrategy.COMPLETE
        Linkage criterion. Strings such as ``'ward'`` are accepted.

    Returns
    -------
    Dendrogram
    """
    linkage = LinkageStrategy(linkage)
    distances = _check_distance_matrix(distances)

    z = _agglomerate(distances, _linkage_codes[linkage])
    z[:, 2], n_clamped = _clamp_heights(z[:, 2])
    if n_clamped:
        logger.debug("Clamped %d non-monotonic merge heights", n_clamped)

    logger.info("Built %s-linkage dendrogram over %d samples", linkage.value, distances.shape[0])
    return Dendrogram(z, linkage, n_clamped)


def _clamp_heights(heights: np.ndarray) -> Tuple[np.ndarray, int]:
    """Raise every merge height below the running maximum to that maximum."""
    heights = np.asarray(heights, dtype=float)
    clamped = np.maximum.accumulate(heights) if heights.size else heights.copy()
    return clamped, int(np.count_nonzero(clamped != heights))


@njit
def _nearest(d: np.ndarray, active: np.ndarray, i: int) -> Tuple[int, float]:
    # first strict minimum among the active slots after i
    best = np.inf
    nearest = -1
    for j in range(i + 1, d.shape[0]):
        if active[j] and d[i, j] < best:
            best = d[i, j]
            nearest = j
    return nearest, best


@njit
def _agglomerate(distances: np.ndarray, method: int) -> np.ndarray:
    """
    Agglomeration on a dense distance matrix with a nearest-neighbour list.

    Cluster slots are identified by the smallest sample index they contain.
    Each active slot caches its nearest active slot with a higher index, so
    taking the first row with the strictly smallest cached distance picks the
    same pair as a row-major scan of all pairs: ties go to the lowest indices.
    Rows are rescanned only when their cached neighbour is merged or moves
    away.
    """
    n = distances.shape[0]
    d = distances.copy()
    active = np.ones(n, dtype=np.bool_)
    size = np.ones(n, dtype=np.int64)
    node_id = np.arange(n)
    nn = np.empty(n, dtype=np.int64)
    nn_dist = np.empty(n)
    z = np.zeros((n - 1, 4))

    for i in range(n):
        j, dist = _nearest(d, active, i)
        nn[i] = j
        nn_dist[i] = dist

    for step in range(n - 1):
        bi = -1
        best = np.inf
        for i in range(n):
            if active[i] and nn_dist[i] < best:
                best = nn_dist[i]
                bi = i
        bj = nn[bi]

        a = node_id[bi]
        b = node_id[bj]
        z[step, 0] = min(a, b)
        z[step, 1] = max(a, b)
        z[step, 2] = best
        z[step, 3] = size[bi] + size[bj]

        ni = size[bi]
        nj = size[bj]
        dij = d[bi, bj]
        for k in range(n):
            if not active[k] or k == bi or k == bj:
                continue
            dki = d[k, bi]
            dkj = d[k, bj]
            if method == 0:
                new = min(dki, dkj)
            elif method == 1:
                new = max(dki, dkj)
            elif method == 2:
                new = (ni * dki + nj * dkj) / (ni + nj)
            else:
                nk = size[k]
                total = nk + ni + nj
                new = ((nk + ni) * dki * dki + (nk + nj) * dkj * dkj - nk * dij * dij) / total
                new = np.sqrt(max(new, 0.0))
            d[k, bi] = new
            d[bi, k] = new

        active[bj] = False
        size[bi] = ni + nj
        node_id[bi] = n + step

        j, dist = _nearest(d, active, bi)
        nn[bi] = j
        nn_dist[bi] = dist
        for k in range(bi):
            if not active[k]:
                continue
            if nn[k] == bi or nn[k] == bj:
                j, dist = _nearest(d, active, k)
                nn[k] = j
                nn_dist[k] = dist
            elif d[k, bi] < nn_dist[k] or (d[k, bi] == nn_dist[k] and bi < nn[k]):
                nn[k] = bi
                nn_dist[k] = d[k, bi]
        for k in range(bi + 1, bj):
            if active[k] and nn[k] == bj:
                j, dist = _nearest(d, active, k)
                nn[k] = j
                nn_dist[k] = dist

    return z


@dataclass(frozen=True, eq=False)
class Partition:
    """
    Flat clustering of the samples.

    Attributes
    ----------
    cluster_ids : np.ndarray
        Cluster id (1..k) per sample position, numbered by first appearance.
    height : float
        Height at which the dendrogram was cut.
    """
    cluster_ids: np.ndarray
    height: float

    def __post_init__(self):
        cluster_ids = np.array(self.cluster_ids, dtype=int)
        cluster_ids.setflags(write=False)
        object.__setattr__(self, 'cluster_ids', cluster_ids)
        object.__setattr__(self, 'height', float(self.height))

    def __len__(self) -> int:
        return self.cluster_ids.shape[0]

    @property
    def n_clusters(self) -> int:
        return int(self.cluster_ids.max()) if len(self) else 0

    def members(self, cluster_id: int) -> np.ndarray:
        """Positions of the samples in a cluster."""
        return np.flatnonzero(self.cluster_ids == cluster_id)

    def sizes(self) -> pd.Series:
        return pd.Series(self.cluster_ids).value_counts().sort_index().rename('size')

    def to_frame(self, indices: Optional[Sequence[int]] = None) -> pd.DataFrame:
        """
        Export the partition as a (sample_index, cluster) table.

        Parameters
        ----------
        indices : Optional[Sequence[int]]
            Original sample indices, e.g. ``SampleCollection.indices``. Defaults to positions.
        """
        if indices is None:
            indices = np.arange(len(self))
        return pd.DataFrame({'sample_index': np.asarray(indices, dtype=int), 'cluster': self.cluster_ids})


def _relabel(clusters: np.ndarray) -> np.ndarray:
    _, first, inverse = np.unique(clusters, return_index=True, return_inverse=True)
    rank = np.empty(first.shape[0], dtype=int)
    rank[np.argsort(first)] = np.arange(1, first.shape[0] + 1)
    return rank[inverse.reshape(-1)]


def cut_at_height(dendrogram: Dendrogram, height: float) -> Partition:
    """
    Cut the dendrogram at a height.

    Merges at or below ``height`` are kept, merges above it are cut; each
    remaining subtree becomes one cluster.
    """
    clusters = fcluster(dendrogram.linkage_matrix, t=height, criterion='distance')
    return Partition(_relabel(clusters), height)


def cut_at_k(dendrogram: Dendrogram, k: int) -> Partition:
    """
    Cut the dendrogram into exactly ``k`` clusters.

    The first ``n_leaves - k`` merges are applied in merge order. The height
    of the partition is the height of the last applied merge, the smallest
    height that reaches ``k`` clusters.

    Raises
    ------
    InvalidCutError
        If ``k < 1`` or ``k > n_leaves``.
    """
    n = dendrogram.n_leaves
    if not isinstance(k, (int, np.integer)) or k < 1 or k > n:
        raise InvalidCutError(f"Cannot cut {n} samples into {k} clusters; k must lie in [1, {n}]")

    n_merges = n - int(k)
    parent = np.arange(n + n_merges)
    for step in range(n_merges):
        left, right = dendrogram.linkage_matrix[step, :2].astype(int)
        parent[left] = n + step
        parent[right] = n + step

    roots = np.arange(n)
    while True:
        moved = parent[roots]
        if np.array_equal(moved, roots):
            break
        roots = moved

    height = dendrogram.heights[n_merges - 1] if n_merges else 0.0
    return Partition(_relabel(roots), height)


def cut_tree(dendrogram: Dendrogram, height: Optional[float] = None, k: Optional[int] = None) -> Partition:
    """Cut the dendrogram either at a ``height`` or into ``k`` clusters."""
    if (height is None) == (k is None):
        raise ValueError("Give exactly one of height or k")
    if k is not None:
        return cut_at_k(dendrogram, k)
    return cut_at_height(dendrogram, height)
