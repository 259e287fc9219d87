"""
Cleaning of training samples with a flat clustering.

Two policies are offered. ``clean_samples`` drops samples whose label is a
minority inside their cluster; ``remove_clusters`` drops whole clusters
whose dominant label is not dominant enough.
"""

import logging
import warnings
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .errors import EmptyClusterPolicyError
from .validity import contingency_table

if TYPE_CHECKING:
    from .clusterer import Partition
    from .samples import SampleCollection

logger = logging.getLogger(__name__)


def _check_inputs(samples: 'SampleCollection', partition: 'Partition', min_perc: float) -> None:
    if len(samples) != len(partition):
        raise ValueError(f"Got {len(samples)} samples for a partition of {len(partition)}")
    if not 0.0 <= min_perc <= 1.0:
        raise ValueError(f"min_perc must lie in [0, 1], got {min_perc}")


def _filtered(samples: 'SampleCollection', keep: np.ndarray, policy: str) -> 'SampleCollection':
    curated = samples.subset(np.flatnonzero(keep))
    logger.info("%s kept %d of %d samples", policy, len(curated), len(samples))
    if len(samples) and not len(curated):
        warnings.warn(f"{policy} removed every sample", EmptyClusterPolicyError, stacklevel=3)
    return curated


def label_shares(samples: 'SampleCollection', partition: 'Partition') -> np.ndarray:
    """Share of each sample's own label among the members of its cluster."""
    table = contingency_table(samples, partition)
    shares = table / table.sum(axis=0)
    return np.array([shares.at[label, cluster]
                     for label, cluster in zip(samples.labels, partition.cluster_ids)], dtype=float)


def clean_samples(samples: 'SampleCollection', partition: 'Partition', min_perc: float = 0.05) -> 'SampleCollection':
    """
    Remove samples whose label is a minority inside their cluster.

    Parameters
    ----------
    samples : SampleCollection
        Clustered samples.
    partition : Partition
        Cluster id per sample.
    min_perc : float, default=0.05
        Samples whose label makes up less than this share of their cluster
        are removed. Values near 0 only catch true outliers.

    Returns
    -------
    SampleCollection
        Remaining samples with their original indices.
    """
    _check_inputs(samples, partition, min_perc)
    if not len(samples):
        return samples
    keep = label_shares(samples, partition) >= min_perc
    return _filtered(samples, keep, 'Sample clean')


def cluster_purity(samples: 'SampleCollection', partition: 'Partition') -> pd.DataFrame:
    """
    Dominant label and purity of each cluster.

    Returns
    -------
    pd.DataFrame
        Indexed by cluster id with columns label, size, purity.
    """
    table = contingency_table(samples, partition)
    sizes = table.sum(axis=0)
    purity = pd.DataFrame({
        'label': table.idxmax(axis=0),
        'size': sizes,
        'purity': table.max(axis=0) / sizes,
    })
    purity.index.name = 'cluster'
    return purity


def remove_clusters(samples: 'SampleCollection', partition: 'Partition', min_perc: float = 0.9) -> 'SampleCollection':
    """
    Remove every sample of the clusters whose purity is below ``min_perc``.

    The purity of a cluster is the count of its most common label divided by
    its size.

    Parameters
    ----------
    samples : SampleCollection
        Clustered samples.
    partition : Partition
        Cluster id per sample.
    min_perc : float, default=0.9
        Minimum purity of a kept cluster. Values near 1 drop every ambiguous cluster.

    Returns
    -------
    SampleCollection
        Remaining samples with their original indices.
    """
    _check_inputs(samples, partition, min_perc)
    if not len(samples):
        return samples
    purity = cluster_purity(samples, partition)
    kept_clusters = purity.index[purity['purity'] >= min_perc]
    keep = np.isin(partition.cluster_ids, np.asarray(kept_clusters))
    return _filtered(samples, keep, 'Cluster removal')


def cluster_frequency(samples: 'SampleCollection', partition: 'Partition', relative: bool = False) -> pd.DataFrame:
    """
    Label counts per cluster with ``Total`` margins.

    Parameters
    ----------
    samples : SampleCollection
        Clustered samples.
    partition : Partition
        Cluster id per sample.
    relative : bool, default=False
        If True, each cluster column is divided by the cluster size.
    """
    counts = contingency_table(samples, partition)
    if relative:
        table = counts / counts.sum(axis=0)
        table['Total'] = counts.sum(axis=1) / counts.to_numpy().sum()
    else:
        table = counts.copy()
        table['Total'] = counts.sum(axis=1)
    table.loc['Total'] = table.sum(axis=0)
    return table
