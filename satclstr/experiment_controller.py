"""
Experimental control module for sample curation runs.

This module runs the whole curation workflow on a sample set, from distance
computation to cleaned samples, and writes an Excel report of the run.
"""

import os
import time
import logging
import warnings
from typing import Any, Dict, Optional, Union

import numpy as np
import xlsxwriter

from .clusterer import build_dendrogram, compute_distances
from .config import ClusteringConfig, SampleImportConfig
from .curation import clean_samples, cluster_frequency, cluster_purity, remove_clusters
from .plotting import plot_clusters, plot_cut_scores, plot_dendrogram
from .samples import SampleCollection, read_samples
from .search import BestCut, find_best_cut
from .validity import evaluate_partition

logger = logging.getLogger(__name__)


def _cell(value):
    if hasattr(value, 'item'):
        value = value.item()
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _write_frame(ws, frame, index_name: str) -> None:
    ws.write(0, 0, index_name)
    for col, name in enumerate(frame.columns, start=1):
        ws.write(0, col, str(name))
    for row, (index, values) in enumerate(frame.iterrows(), start=1):
        ws.write(row, 0, _cell(index))
        for col, value in enumerate(values, start=1):
            ws.write(row, col, _cell(value))


def write_report(output_file_path: str, samples: SampleCollection, config: ClusteringConfig, best_cut: BestCut,
                 curated: SampleCollection, run_time: float, source: str = '') -> None:
    """
    Write an Excel report of a curation run.

    The workbook has four sheets: ``results`` (settings, best cut and
    scores), ``sweep`` (all candidate cuts), ``frequency`` (labels per
    cluster) and ``partition`` (cluster and curation status per sample).
    """
    partition = best_cut.partition
    validity = evaluate_partition(samples, partition, warn=False)
    kept = set(curated.indices.tolist())

    w = xlsxwriter.Workbook(output_file_path)
    try:
        ws = w.add_worksheet('results')
        ws.set_column('A:A', 24)
        ws.set_column('B:B', 14)

        ws.write(0, 0, 'Samples:')
        ws.write(0, 1, source)
        ws.write(1, 0, 'Distance Measure:')
        ws.write(1, 1, config.distance)
        ws.write(2, 0, 'Inter-Cluster Similarity')
        ws.write(2, 1, config.linkage.value)
        ws.write(3, 0, 'Validity Index')
        ws.write(3, 1, config.index.value)
        ws.write(4, 0, "Time:")
        ws.write(4, 1, time.strftime("%H:%M %d/%m/%Y"))
        ws.write(5, 0, 'Run Time')
        ws.write(5, 1, run_time)

        ws.write(7, 0, 'Best cut height')
        ws.write(7, 1, best_cut.height)
        ws.write(8, 0, 'Total number of clusters:')
        ws.write(8, 1, best_cut.n_clusters)
        ws.write(9, 0, 'Samples before curation')
        ws.write(9, 1, len(samples))
        ws.write(10, 0, 'Samples after curation')
        ws.write(10, 1, len(curated))

        ws.write(12, 0, 'Metric')
        ws.write(12, 1, 'Outcome')
        for row, (index, score) in enumerate(validity.scores.items(), start=13):
            ws.write(row, 0, index.value)
            ws.write(row, 1, score)

        _write_frame(w.add_worksheet('sweep'), best_cut.scores, 'Candidate')
        _write_frame(w.add_worksheet('frequency'), cluster_frequency(samples, partition), 'Label')

        ws = w.add_worksheet('partition')
        ws.write(0, 0, 'Index')
        ws.write(0, 1, 'Label')
        ws.write(0, 2, 'Cluster')
        ws.write(0, 3, 'Kept')
        for row, (index, label, cluster_id) in enumerate(
                zip(samples.indices, samples.labels, partition.cluster_ids), start=1):
            ws.write(row, 0, int(index))
            ws.write(row, 1, label)
            ws.write(row, 2, int(cluster_id))
            ws.write(row, 3, int(index) in kept)
    finally:
        w.close()


def curation_experiment(samples: Union[SampleCollection, str], config: Optional[ClusteringConfig] = None,
                        clean_min_perc: Optional[float] = None, remove_min_perc: Optional[float] = None,
                        note: str = '', save_plots: bool = False, output_dir: Optional[str] = None,
                        import_config: Optional[SampleImportConfig] = None) -> Dict[str, Any]:
    """
    Run a sample curation experiment with reporting.

    Distances are computed, the dendrogram is built and cut at the height
    that best agrees with the labels, and the samples are cleaned with the
    requested policies. A sample is kept when every requested policy keeps
    it.

    Parameters
    ----------
    samples : SampleCollection or str
        Samples, or the path of a .csv/.xlsx file read with ``read_samples``.
    config : Optional[ClusteringConfig]
        Distance, linkage and validity index. Defaults to ``ClusteringConfig()``.
    clean_min_perc : Optional[float], default=None
        Threshold of ``clean_samples``. ``None`` skips the policy.
    remove_min_perc : Optional[float], default=None
        Threshold of ``remove_clusters``. ``None`` skips the policy.
    note : str, default=''
        Additional note appended to the report filename.
    save_plots : bool, default=False
        Whether to save dendrogram, cut score and cluster plots as PNG files.
    output_dir : Optional[str], default=None
        Directory for the output files. ``None`` skips the report.
    import_config : Optional[SampleImportConfig]
        Column layout used when ``samples`` is a path.

    Returns
    -------
    Dict[str, Any]
        - ``samples``: Clustered samples
        - ``distances``: Distance matrix
        - ``dendrogram``: Dendrogram
        - ``best_cut``: BestCut of the search
        - ``partition``: Partition at the best cut
        - ``purity``: Dominant label and purity per cluster
        - ``curated``: Samples kept by the curation policies
        - ``run_time``: Clustering and search time in seconds
        - ``total_time``: Total experiment time including I/O in seconds
        - ``output_file``: Path of the Excel report, or None
        - ``plot_files``: Paths of saved plots
    """
    very_begin_time = time.time()
    config = config or ClusteringConfig()

    source = ''
    if not isinstance(samples, SampleCollection):
        source = str(samples)
        samples = read_samples(samples, import_config)

    begin_time = time.time()
    distances = compute_distances(samples, config.distance, **config.distance_kwargs)
    tree = build_dendrogram(distances, config.linkage)
    best_cut = find_best_cut(tree, samples, config.index, n_jobs=config.n_jobs)
    run_time = time.time() - begin_time

    partition = best_cut.partition
    keep = np.ones(len(samples), dtype=bool)
    if remove_min_perc is not None:
        keep &= np.isin(samples.indices, remove_clusters(samples, partition, remove_min_perc).indices)
    if clean_min_perc is not None:
        keep &= np.isin(samples.indices, clean_samples(samples, partition, clean_min_perc).indices)
    curated = samples.subset(np.flatnonzero(keep))

    output_file_path = None
    plot_files = []
    if output_dir is not None:
        os.makedirs(output_dir, exist_ok=True)
        base_name = f'{config.distance}-{config.linkage.value}-{config.index.value}-{note}'
        output_file_path = os.path.join(output_dir, base_name + '.xlsx')
        try:
            write_report(output_file_path, samples, config, best_cut, curated, run_time, source)
            logger.info("Excel report saved to: %s", output_file_path)
        except Exception as e:
            warnings.warn(f"Failed to generate Excel report: {e}")
            output_file_path = None

        if save_plots:
            try:
                base = os.path.join(output_dir, base_name)
                plot_dendrogram(tree, samples, best_cut.height, mode='save', fname=base + '-dendrogram')
                plot_cut_scores(best_cut, mode='save', fname=base + '-scores')
                plot_clusters(samples, partition, mode='save', fname=base + '-clusters')
                plot_files = [base + suffix + '.png' for suffix in ('-dendrogram', '-scores', '-clusters')]
                logger.info("Plots saved to: %s-*.png", base)
            except Exception as e:
                warnings.warn(f"Failed to generate plots: {e}")

    total_time = time.time() - very_begin_time
    logger.info("Total experiment time: %.2f seconds", total_time)

    return {
        'samples': samples,
        'distances': distances,
        'dendrogram': tree,
        'best_cut': best_cut,
        'partition': partition,
        'purity': cluster_purity(samples, partition),
        'curated': curated,
        'run_time': run_time,
        'total_time': total_time,
        'output_file': output_file_path,
        'plot_files': plot_files,
    }
