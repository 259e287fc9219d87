"""
External validity of a partition against ground-truth labels.

All indices are computed from the contingency table of labels against
clusters, so the cost is independent of the number of sample pairs.
"""

import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Set, Union, TYPE_CHECKING

import numpy as np
import pandas as pd

from .errors import DegenerateValidityError

if TYPE_CHECKING:
    from .clusterer import Partition
    from .samples import SampleCollection

logger = logging.getLogger(__name__)


class ValidityIndex(Enum):
    """External cluster validity indices."""
    ARI = 'ARI'
    RAND = 'RI'
    JACCARD = 'J'
    FOWLKES_MALLOWS = 'FM'
    VI = 'VI'

    @property
    def maximize(self) -> bool:
        """Whether larger values mean better agreement."""
        return self is not ValidityIndex.VI


@dataclass(frozen=True)
class PairCounts:
    """
    Counts of sample pairs.

    Attributes
    ----------
    a : int
        Pairs with the same label in the same cluster.
    b : int
        Pairs with the same label in different clusters.
    c : int
        Pairs with different labels in the same cluster.
    d : int
        Pairs with different labels in different clusters.
    """
    a: int
    b: int
    c: int
    d: int

    @property
    def total(self) -> int:
        return self.a + self.b + self.c + self.d


@dataclass
class ValidityResult:
    """
    Agreement between a partition and the ground-truth labels.

    Attributes
    ----------
    contingency : pd.DataFrame
        Counts with labels as rows and cluster ids as columns.
    pair_counts : PairCounts
    scores : Dict[ValidityIndex, float]
    degenerate : Set[ValidityIndex]
        Indices whose denominator was zero and whose score was set to 0.
    """
    contingency: pd.DataFrame
    pair_counts: PairCounts
    scores: Dict[ValidityIndex, float]
    degenerate: Set[ValidityIndex] = field(default_factory=set)

    def __getitem__(self, index: Union[ValidityIndex, str]) -> float:
        return self.scores[ValidityIndex(index)]

    def is_degenerate(self, index: Union[ValidityIndex, str] = ValidityIndex.ARI) -> bool:
        return ValidityIndex(index) in self.degenerate


def _as_labels(labels: Union['SampleCollection', Sequence[str]]) -> np.ndarray:
    if hasattr(labels, 'labels'):
        labels = labels.labels
    return np.asarray(labels, dtype=object)


def _as_clusters(partition: Union['Partition', Sequence[int]]) -> np.ndarray:
    if hasattr(partition, 'cluster_ids'):
        partition = partition.cluster_ids
    return np.asarray(partition)


def contingency_table(labels: Union['SampleCollection', Sequence[str]],
                      partition: Union['Partition', Sequence[int]]) -> pd.DataFrame:
    """
    Cross-tabulate ground-truth labels against cluster ids.

    Parameters
    ----------
    labels : SampleCollection or Sequence[str]
        Ground-truth label per sample.
    partition : Partition or Sequence[int]
        Cluster id per sample, in the same order.

    Returns
    -------
    pd.DataFrame
        Rows are the distinct labels, columns the distinct cluster ids.
    """
    labels = _as_labels(labels)
    clusters = _as_clusters(partition)
    if labels.shape[0] != clusters.shape[0]:
        raise ValueError(f"Got {labels.shape[0]} labels for {clusters.shape[0]} cluster assignments")
    table = pd.crosstab(pd.Series(labels, name='label'), pd.Series(clusters, name='cluster'))
    return table.astype(int)


def _comb2(counts: np.ndarray) -> int:
    counts = np.asarray(counts, dtype=np.int64)
    return int(np.sum(counts * (counts - 1) // 2))


def pair_counts(contingency: pd.DataFrame) -> PairCounts:
    """Derive the pair counts of a contingency table."""
    table = contingency.to_numpy(dtype=np.int64)
    n = int(table.sum())
    same_both = _comb2(table)
    same_label = _comb2(table.sum(axis=1))
    same_cluster = _comb2(table.sum(axis=0))
    total = n * (n - 1) // 2
    a = same_both
    b = same_label - same_both
    c = same_cluster - same_both
    return PairCounts(a, b, c, total - a - b - c)


def _ratio(numerator: float, denominator: float):
    if denominator == 0:
        return None
    return numerator / denominator


def _adjusted_rand(pairs: PairCounts) -> Optional[float]:
    if pairs.total == 0:
        return None
    a, b, c, d = (value / pairs.total for value in (pairs.a, pairs.b, pairs.c, pairs.d))
    expected = (a + b) * (a + c) + (c + d) * (b + d)
    return _ratio(a + d - expected, a + d + b + c - expected)


def _variation_of_information(contingency: pd.DataFrame) -> Optional[float]:
    table = contingency.to_numpy(dtype=float)
    n = table.sum()
    if n == 0:
        return None
    p = table / n
    p_label = p.sum(axis=1)
    p_cluster = p.sum(axis=0)
    nonzero = p > 0
    h_label = -np.sum(p_label[p_label > 0] * np.log(p_label[p_label > 0]))
    h_cluster = -np.sum(p_cluster[p_cluster > 0] * np.log(p_cluster[p_cluster > 0]))
    mutual = np.sum(p[nonzero] * np.log(p[nonzero] / np.outer(p_label, p_cluster)[nonzero]))
    return max(float(h_label + h_cluster - 2 * mutual), 0.0)


def _score(index: ValidityIndex, pairs: PairCounts, contingency: pd.DataFrame) -> Optional[float]:
    a, b, c, d = pairs.a, pairs.b, pairs.c, pairs.d
    if index is ValidityIndex.ARI:
        return _adjusted_rand(pairs)
    if index is ValidityIndex.RAND:
        return _ratio(a + d, pairs.total)
    if index is ValidityIndex.JACCARD:
        return _ratio(a, a + b + c)
    if index is ValidityIndex.FOWLKES_MALLOWS:
        return _ratio(a, np.sqrt(float(a + b) * float(a + c)))
    return _variation_of_information(contingency)


def evaluate_partition(labels: Union['SampleCollection', Sequence[str]],
                       partition: Union['Partition', Sequence[int]],
                       indices: Optional[Iterable[Union[ValidityIndex, str]]] = None,
                       warn: bool = True) -> ValidityResult:
    """
    Score a partition against ground-truth labels.

    ``ARI = (a + d - E) / (a + d + b + c - E)`` on pair proportions, with
    ``E = (a + b)(a + c) + (c + d)(b + d)`` the agreement expected by chance.

    ``RI = (a + d) / (a + b + c + d)``

    ``J = a / (a + b + c)``

    ``FM = a / sqrt((a + b)(a + c))``

    ``VI = H(labels) + H(clusters) - 2 I(labels, clusters)``, lower is better.

    An index whose denominator is zero, e.g. ARI when all samples share one
    label and one cluster, is set to 0, recorded in ``degenerate`` and
    reported with a ``DegenerateValidityError`` warning.

    Parameters
    ----------
    labels : SampleCollection or Sequence[str]
        Ground-truth label per sample.
    partition : Partition or Sequence[int]
        Cluster id per sample.
    indices : Optional[Iterable[ValidityIndex]]
        Indices to compute. Defaults to all of them.
    warn : bool, default=True
        Emit a warning for degenerate scores.

    Returns
    -------
    ValidityResult
    """
    indices = list(ValidityIndex) if indices is None else [ValidityIndex(i) for i in indices]
    contingency = contingency_table(labels, partition)
    pairs = pair_counts(contingency)

    scores: Dict[ValidityIndex, float] = {}
    degenerate: Set[ValidityIndex] = set()
    for index in indices:
        value = _score(index, pairs, contingency)
        if value is None:
            degenerate.add(index)
            value = 0.0
        scores[index] = float(value)

    if degenerate and warn:
        names = ', '.join(sorted(i.value for i in degenerate))
        warnings.warn(f"Zero denominator for {names} with pair counts {pairs}; score set to 0",
                      DegenerateValidityError, stacklevel=2)

    return ValidityResult(contingency, pairs, scores, degenerate)


def adjusted_rand_index(labels: Union['SampleCollection', Sequence[str]],
                        partition: Union['Partition', Sequence[int]]) -> float:
    """Adjusted Rand Index of a partition against ground-truth labels."""
    return evaluate_partition(labels, partition, [ValidityIndex.ARI])[ValidityIndex.ARI]
