"""
Plotting utilities for clustering results.

This module provides functions for visualizing dendrograms, cut searches and
clusters of samples. Static plots use matplotlib, interactive figures use
Plotly.
"""
import math
from typing import Optional, TYPE_CHECKING

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots
from scipy.cluster.hierarchy import dendrogram

from .validity import contingency_table

if TYPE_CHECKING:
    from .clusterer import Dendrogram, Partition
    from .samples import SampleCollection
    from .search import BestCut


def _finish(fig: plt.Figure, mode: str, fname: str) -> None:
    plt.tight_layout()
    if mode == 'show':
        plt.show()
    elif mode == 'save':
        fig.savefig('{0}.png'.format(fname))
        plt.close(fig)
    else:
        raise ValueError(f"mode must be 'show' or 'save', got {mode!r}")


def _label_colors(labels: np.ndarray) -> dict:
    palette = [matplotlib.colors.to_hex(c) for c in matplotlib.colormaps['tab10'].colors]
    return {label: palette[i % len(palette)] for i, label in enumerate(sorted(set(labels)))}


def plot_dendrogram(tree: 'Dendrogram', samples: 'SampleCollection', cut_height: Optional[float] = None,
                    mode: str = 'show', fname: str = 'dendrogram') -> None:
    """
    Plot the dendrogram with leaves colored by ground-truth label.

    Parameters
    ----------
    tree : Dendrogram
        Dendrogram built from ``samples``.
    samples : SampleCollection
        Clustered samples, in leaf order.
    cut_height : Optional[float], default=None
        If given, a horizontal line marks the cut.
    mode : str, default='show'
        'show' displays the plot, 'save' writes it to '{fname}.png'.
    fname : str, default='dendrogram'
        Base filename for saving.
    """
    labels = samples.labels
    colors = _label_colors(labels)

    fig, ax = plt.subplots(figsize=(14, 6))
    fig.canvas.manager.set_window_title(f'{tree.linkage.value} linkage')
    dendrogram(np.array(tree.linkage_matrix), ax=ax, labels=list(labels), color_threshold=0,
               above_threshold_color='#555555', leaf_font_size=7)

    for tick in ax.get_xticklabels():
        tick.set_color(colors[tick.get_text()])
    if cut_height is not None:
        ax.axhline(cut_height, color='#e74c3c', linestyle='--', linewidth=1.5)
    ax.set_ylabel('Height')
    ax.set_title(f'Dendrogram ({tree.linkage.value} linkage)', weight='bold')

    _finish(fig, mode, fname)


def plot_cut_scores(best_cut: 'BestCut', mode: str = 'show', fname: str = 'cut_scores') -> None:
    """Plot the validity index against the number of clusters of every candidate cut."""
    scores = best_cut.scores.sort_values('n_clusters')

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(scores['n_clusters'], scores['score'], marker='o', linewidth=2)
    ax.axvline(best_cut.n_clusters, color='#e74c3c', linestyle='--')
    ax.set_xlabel('Number of clusters')
    ax.set_ylabel(best_cut.index.value)
    ax.set_title(f'Best {best_cut.index.value} = {best_cut.score:.3f} with {best_cut.n_clusters} clusters',
                 weight='bold')

    _finish(fig, mode, fname)


def plot_clusters(samples: 'SampleCollection', partition: 'Partition', band: Optional[str] = None,
                  mode: str = 'show', fname: str = 'clusters') -> None:
    """
    Plot cluster members on separate subplots.

    This function creates a grid of subplots where each subplot shows the
    given band of all samples belonging to a cluster, colored by label.

    Parameters
    ----------
    samples : SampleCollection
        Clustered samples.
    partition : Partition
        Cluster id per sample.
    band : Optional[str], default=None
        Band to draw. Defaults to the first band.
    mode : str, default='show'
        'show' or 'save'.
    fname : str, default='clusters'
        Base filename for saving (without extension).
    """
    band = band or samples.bands[0]
    colors = _label_colors(samples.labels)

    main_fig = plt.figure(figsize=(14, 10))
    main_fig.canvas.manager.set_window_title(f'{band} by cluster')
    no_plots = partition.n_clusters
    no_cols = 4
    no_rows = int(math.ceil(float(no_plots) / no_cols))

    for i, cluster_id in enumerate(range(1, no_plots + 1), start=1):
        sub_plot = main_fig.add_subplot(no_rows, no_cols, i)

        for position in partition.members(cluster_id):
            sample = samples[position]
            sub_plot.plot(sample.timeline, sample.band(band), linewidth=1.5, color=colors[sample.label])

        sub_plot.tick_params(axis='x', labelrotation=45, labelsize=7)
        plt.title('Cluster no: ' + str(cluster_id), weight='bold')

    _finish(main_fig, mode, fname)


def plot_frequency(samples: 'SampleCollection', partition: 'Partition') -> go.Figure:
    """
    Heatmap of label counts per cluster.

    Returns
    -------
    go.Figure
        Plotly figure; call ``.show()`` or ``.write_html()`` on it.
    """
    table = contingency_table(samples, partition)
    fig = go.Figure(go.Heatmap(
        z=table.values,
        x=[f'Cluster {c}' for c in table.columns],
        y=list(table.index),
        text=table.values,
        texttemplate='%{text}',
        colorscale='Blues',
        hovertemplate='Label: %{y}<br>%{x}<br>Samples: %{z}<extra></extra>',
    ))
    fig.update_layout(
        title='Samples per label and cluster',
        plot_bgcolor='#f8f9fa',
        paper_bgcolor='#f8f9fa',
        font={'family': 'Arial, sans-serif'},
    )
    return fig


def interactive_plot_clusters(samples: 'SampleCollection', partition: 'Partition', band: Optional[str] = None,
                              no_cols: int = 3) -> go.Figure:
    """
    Create an interactive plot of cluster members.

    Hovering a series shows the sample's original index, label and cluster.

    Parameters
    ----------
    samples : SampleCollection
        Clustered samples.
    partition : Partition
        Cluster id per sample.
    band : Optional[str], default=None
        Band to draw. Defaults to the first band.
    no_cols : int, default=3
        Number of columns in the plot.

    Returns
    -------
    go.Figure
    """
    band = band or samples.bands[0]
    colors = _label_colors(samples.labels)
    no_plots = partition.n_clusters
    cluster_rows = int(math.ceil(float(no_plots) / no_cols))

    cluster_fig = make_subplots(
        rows=cluster_rows,
        cols=no_cols,
        subplot_titles=[f"Cluster {cluster_id}" for cluster_id in range(1, no_plots + 1)],
        vertical_spacing=min(0.12, 0.9 / max(cluster_rows - 1, 1)),
        horizontal_spacing=0.04
    )

    shown_labels = set()
    for idx, cluster_id in enumerate(range(1, no_plots + 1)):
        row = (idx // no_cols) + 1
        col = (idx % no_cols) + 1

        for position in partition.members(cluster_id):
            sample = samples[position]
            index = samples.indices[position]
            cluster_fig.add_trace(
                go.Scatter(
                    x=sample.timeline,
                    y=sample.band(band),
                    mode='lines',
                    name=sample.label,
                    legendgroup=sample.label,
                    showlegend=sample.label not in shown_labels,
                    line=dict(width=2, color=colors[sample.label]),
                    opacity=0.8,
                    hovertemplate=f"<b>Sample {index}</b><br>" +
                                  f"Label: {sample.label}<br>" +
                                  "Date: %{x}<br>" +
                                  f"{band}: " + "%{y:.3f}<br>" +
                                  f"Cluster: {cluster_id}" +
                                  "<extra></extra>",
                ),
                row=row, col=col
            )
            shown_labels.add(sample.label)

    cluster_fig.update_layout(
        height=280 * cluster_rows,
        plot_bgcolor='#f8f9fa',
        paper_bgcolor='#f8f9fa',
        font={'family': 'Arial, sans-serif'}
    )
    cluster_fig.update_annotations(font_size=18, font_color='#1a202c')

    return cluster_fig
