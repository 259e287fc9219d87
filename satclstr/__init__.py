"""
Top-level for satclstr sample curation package.

This package clusters labelled satellite image time series samples
hierarchically, finds the dendrogram cut that best agrees with the labels
and removes noisy samples before classifier training.
End users should use the main functions: read_samples, compute_distances,
build_dendrogram, find_best_cut, clean_samples and remove_clusters.
"""

from .errors import (
    SatclstrError,
    IncompatibleSeriesError,
    InvalidCutError,
    SatclstrWarning,
    DegenerateValidityError,
    EmptyClusterPolicyError
)

from .config import (
    SampleImportConfig,
    ClusteringConfig
)

from .samples import (
    Sample,
    SampleCollection,
    read_samples,
    samples_from_frame
)

from .transforms import (
    normalize_samples,
    standardize_samples,
    savitzky_golay,
    whittaker,
    align_samples
)

from .clusterer import (
    compute_distances,
    LinkageStrategy,
    Dendrogram,
    build_dendrogram,
    Partition,
    cut_at_height,
    cut_at_k,
    cut_tree
)

from .validity import (
    ValidityIndex,
    PairCounts,
    ValidityResult,
    contingency_table,
    pair_counts,
    evaluate_partition,
    adjusted_rand_index
)

from .search import (
    BestCut,
    find_best_cut,
    cut_scores
)

from .curation import (
    clean_samples,
    remove_clusters,
    cluster_purity,
    cluster_frequency,
    label_shares
)

from .plotting import (
    plot_dendrogram,
    plot_cut_scores,
    plot_clusters,
    plot_frequency,
    interactive_plot_clusters
)

from .experiment_controller import (
    curation_experiment,
    write_report
)

__all__ = [
    "SatclstrError",
    "IncompatibleSeriesError",
    "InvalidCutError",
    "SatclstrWarning",
    "DegenerateValidityError",
    "EmptyClusterPolicyError",
    "SampleImportConfig",
    "ClusteringConfig",
    "Sample",
    "SampleCollection",
    "read_samples",
    "samples_from_frame",
    "normalize_samples",
    "standardize_samples",
    "savitzky_golay",
    "whittaker",
    "align_samples",
    "compute_distances",
    "LinkageStrategy",
    "Dendrogram",
    "build_dendrogram",
    "Partition",
    "cut_at_height",
    "cut_at_k",
    "cut_tree",
    "ValidityIndex",
    "PairCounts",
    "ValidityResult",
    "contingency_table",
    "pair_counts",
    "evaluate_partition",
    "adjusted_rand_index",
    "BestCut",
    "find_best_cut",
    "cut_scores",
    "clean_samples",
    "remove_clusters",
    "cluster_purity",
    "cluster_frequency",
    "label_shares",
    "plot_dendrogram",
    "plot_cut_scores",
    "plot_clusters",
    "plot_frequency",
    "interactive_plot_clusters",
    "curation_experiment",
    "write_report"
]

__version__ = "0.1.0"
