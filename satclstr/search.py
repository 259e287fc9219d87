"""
Search for the dendrogram cut that best matches the ground-truth labels.
"""

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np
import pandas as pd

from .clusterer import Dendrogram, Partition, cut_at_height, cut_at_k
from .errors import DegenerateValidityError
from .validity import ValidityIndex, evaluate_partition

if TYPE_CHECKING:
    from .samples import SampleCollection

logger = logging.getLogger(__name__)


@dataclass
class BestCut:
    """
    Outcome of a best-cut search.

    Attributes
    ----------
    height : float
        Cut height with the best score.
    n_clusters : int
        Number of clusters at that height.
    score : float
        Value of the validity index at that height.
    index : ValidityIndex
        Validity index that was optimized.
    partition : Partition
        Partition at the best height.
    degenerate : bool
        Whether the best score is a substituted 0.
    scores : pd.DataFrame
        One row per candidate with columns height, n_clusters, score, degenerate.
    """
    height: float
    n_clusters: int
    score: float
    index: ValidityIndex
    partition: Partition
    degenerate: bool
    scores: pd.DataFrame


def _score_partition(labels: np.ndarray, partition: Partition, index: ValidityIndex) -> Tuple[float, bool]:
    result = evaluate_partition(labels, partition, [index], warn=False)
    return result[index], result.is_degenerate(index)


def _rank_key(row: Tuple[float, int, float, bool], index: ValidityIndex) -> Tuple[float, int, float]:
    height, n_clusters, score, _ = row
    return (-score if index.maximize else score, n_clusters, height)


def find_best_cut(dendrogram: Dendrogram, labels: Union['SampleCollection', Sequence[str]],
                  index: Union[ValidityIndex, str] = ValidityIndex.ARI, n_jobs: int = 1) -> BestCut:
    """
    Find the cut height that maximizes agreement with the ground-truth labels.

    Every distinct merge height of the dendrogram is a candidate. Each
    candidate partition is scored with ``index``; the best score wins
    (lowest for VI, highest otherwise). Ties go to the candidate with fewer
    clusters, then to the lower height.

    Parameters
    ----------
    dendrogram : Dendrogram
        Tree built from the samples.
    labels : SampleCollection or Sequence[str]
        Ground-truth label per leaf of the dendrogram.
    index : ValidityIndex, default=ValidityIndex.ARI
        Validity index to optimize.
    n_jobs : int, default=1
        Number of worker threads scoring candidates.

    Returns
    -------
    BestCut
    """
    index = ValidityIndex(index)
    if hasattr(labels, 'labels'):
        labels = labels.labels
    labels = np.asarray(labels, dtype=object)
    if labels.shape[0] != dendrogram.n_leaves:
        raise ValueError(f"Got {labels.shape[0]} labels for a dendrogram with {dendrogram.n_leaves} leaves")
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be >= 1, got {n_jobs}")

    candidates = np.unique(dendrogram.heights)

    def evaluate(height: float) -> Tuple[float, int, float, bool, Partition]:
        partition = cut_at_height(dendrogram, height)
        score, degenerate = _score_partition(labels, partition, index)
        return float(height), partition.n_clusters, score, degenerate, partition

    if n_jobs == 1:
        results = [evaluate(height) for height in candidates]
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as executor:
            results = list(executor.map(evaluate, candidates))

    rows = [result[:4] for result in results]
    best = min(range(len(rows)), key=lambda i: _rank_key(rows[i], index))
    height, n_clusters, score, degenerate, partition = results[best]

    scores = pd.DataFrame(rows, columns=['height', 'n_clusters', 'score', 'degenerate'])
    logger.debug("Scored %d candidate cuts", len(rows))
    logger.info("Best %s = %.4f at height %.4g with %d clusters", index.value, score, height, n_clusters)
    if degenerate:
        warnings.warn(f"Best {index.value} score is degenerate", DegenerateValidityError, stacklevel=2)

    return BestCut(height, n_clusters, score, index, partition, degenerate, scores)


def cut_scores(dendrogram: Dendrogram, labels: Union['SampleCollection', Sequence[str]],
               k_values: Iterable[int], index: Union[ValidityIndex, str] = ValidityIndex.ARI) -> pd.DataFrame:
    """
    Score the partitions of a dendrogram into given numbers of clusters.

    Parameters
    ----------
    dendrogram : Dendrogram
        Tree built from the samples.
    labels : SampleCollection or Sequence[str]
        Ground-truth label per leaf.
    k_values : Iterable[int]
        Cluster counts to evaluate.
    index : ValidityIndex, default=ValidityIndex.ARI

    Returns
    -------
    pd.DataFrame
        Columns n_clusters, height, score, degenerate.
    """
    index = ValidityIndex(index)
    if hasattr(labels, 'labels'):
        labels = labels.labels
    labels = np.asarray(labels, dtype=object)

    rows: List[Tuple[int, float, float, bool]] = []
    for k in k_values:
        partition = cut_at_k(dendrogram, k)
        score, degenerate = _score_partition(labels, partition, index)
        rows.append((int(k), partition.height, score, degenerate))
    return pd.DataFrame(rows, columns=['n_clusters', 'height', 'score', 'degenerate'])
