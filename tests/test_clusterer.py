"""
Tests for the dendrogram builder and cluster extraction.
"""

import numpy as np
import pytest
from scipy.cluster.hierarchy import linkage as scipy_linkage
from scipy.spatial.distance import pdist, squareform

from satclstr import (
    Dendrogram,
    InvalidCutError,
    LinkageStrategy,
    Partition,
    build_dendrogram,
    compute_distances,
    cut_at_height,
    cut_at_k,
    cut_tree,
)
from satclstr import clusterer
from satclstr.clusterer import _clamp_heights


@pytest.fixture
def random_distances():
    rng = np.random.default_rng(3)
    points = rng.standard_normal((20, 4))
    return squareform(pdist(points))


# ------------------------------------------------------------------
# build_dendrogram
# ------------------------------------------------------------------


@pytest.mark.parametrize("strategy", list(LinkageStrategy))
def test_heights_match_scipy(random_distances, strategy):
    tree = build_dendrogram(random_distances, strategy)
    expected = scipy_linkage(squareform(random_distances), method=strategy.value)
    np.testing.assert_allclose(np.sort(tree.heights), np.sort(expected[:, 2]), rtol=1e-10)


@pytest.mark.parametrize("strategy", list(LinkageStrategy))
def test_heights_non_decreasing(three_class_samples, strategy):
    tree = build_dendrogram(compute_distances(three_class_samples, "dtw"), strategy)
    assert np.all(np.diff(tree.heights) >= 0)
    assert tree.n_leaves == 15
    assert tree.linkage_matrix[-1, 3] == 15


def test_linkage_accepts_strings(random_distances):
    assert build_dendrogram(random_distances, "ward").linkage is LinkageStrategy.WARD


def test_ties_merge_lowest_indices_first():
    # all pairwise distances equal
    distances = np.ones((4, 4)) - np.eye(4)
    tree = build_dendrogram(distances, LinkageStrategy.SINGLE)
    assert tree.merges() == [(0, 1, 1.0), (2, 4, 1.0), (3, 5, 1.0)]


def test_tie_break_is_deterministic(random_distances):
    rounded = np.round(random_distances)
    first = build_dendrogram(rounded, LinkageStrategy.AVERAGE)
    second = build_dendrogram(rounded.copy(), LinkageStrategy.AVERAGE)
    np.testing.assert_array_equal(first.linkage_matrix, second.linkage_matrix)


def test_known_single_linkage():
    points = np.array([0.0, 1.0, 5.0, 6.5])[:, np.newaxis]
    tree = build_dendrogram(squareform(pdist(points)), LinkageStrategy.SINGLE)
    assert tree.merges() == [(0, 1, 1.0), (2, 3, 1.5), (4, 5, 4.0)]
    assert tree.n_clamped == 0


@pytest.mark.parametrize("distances, message", [
    (np.zeros((3, 2)), "square"),
    (np.zeros((1, 1)), "two samples"),
    (np.array([[0.0, -1.0], [-1.0, 0.0]]), "negative"),
    (np.array([[0.0, np.inf], [np.inf, 0.0]]), "non-finite"),
    (np.array([[1.0, 1.0], [1.0, 1.0]]), "diagonal"),
    (np.array([[0.0, 1.0], [2.0, 0.0]]), "symmetric"),
])
def test_invalid_distance_matrix(distances, message):
    with pytest.raises(ValueError, match=message):
        build_dendrogram(distances)


# ------------------------------------------------------------------
# Dendrogram export
# ------------------------------------------------------------------


def test_merges_round_trip(random_distances):
    tree = build_dendrogram(random_distances, LinkageStrategy.COMPLETE)
    rebuilt = Dendrogram.from_merges(tree.merges(), LinkageStrategy.COMPLETE)
    np.testing.assert_array_equal(rebuilt.linkage_matrix, tree.linkage_matrix)


def test_from_merges_rejects_future_nodes():
    with pytest.raises(ValueError):
        Dendrogram.from_merges([(0, 4, 1.0), (1, 2, 2.0)])


def test_to_frame(random_distances):
    frame = build_dendrogram(random_distances).to_frame()
    assert list(frame.columns) == ["node", "left", "right", "height", "size"]
    assert frame["node"].tolist() == list(range(20, 39))


def test_non_monotonic_linkage_rejected():
    with pytest.raises(ValueError, match="non-decreasing"):
        Dendrogram(np.array([[0, 1, 2.0, 2], [2, 3, 1.0, 3]]), LinkageStrategy.SINGLE)


# ------------------------------------------------------------------
# Cluster extraction
# ------------------------------------------------------------------


def test_cut_at_zero_gives_singletons(random_distances):
    tree = build_dendrogram(random_distances)
    partition = cut_at_height(tree, 0.0)
    assert partition.n_clusters == 20
    np.testing.assert_array_equal(partition.cluster_ids, np.arange(1, 21))


def test_cut_at_max_height_gives_one_cluster(random_distances):
    tree = build_dendrogram(random_distances)
    partition = cut_at_height(tree, tree.max_height)
    assert partition.n_clusters == 1
    assert np.all(partition.cluster_ids == 1)


def test_cut_at_height_keeps_merges_at_threshold():
    points = np.array([0.0, 1.0, 5.0, 6.5])[:, np.newaxis]
    tree = build_dendrogram(squareform(pdist(points)), LinkageStrategy.SINGLE)
    np.testing.assert_array_equal(cut_at_height(tree, 1.0).cluster_ids, [1, 1, 2, 3])
    np.testing.assert_array_equal(cut_at_height(tree, 1.49).cluster_ids, [1, 1, 2, 3])
    np.testing.assert_array_equal(cut_at_height(tree, 1.5).cluster_ids, [1, 1, 2, 2])


@pytest.mark.parametrize("k", [1, 2, 5, 13, 20])
def test_cut_at_k(random_distances, k):
    tree = build_dendrogram(random_distances)
    partition = cut_at_k(tree, k)
    assert partition.n_clusters == k
    assert sorted(set(partition.cluster_ids)) == list(range(1, k + 1))
    # the same partition is reached by cutting at its height
    np.testing.assert_array_equal(cut_at_height(tree, partition.height).cluster_ids, partition.cluster_ids)


def test_partition_is_total_and_disjoint(random_distances):
    tree = build_dendrogram(random_distances)
    partition = cut_at_k(tree, 4)
    members = np.concatenate([partition.members(c) for c in range(1, 5)])
    np.testing.assert_array_equal(np.sort(members), np.arange(20))
    assert partition.sizes().sum() == 20


def test_cut_at_k_with_tied_heights():
    distances = np.ones((4, 4)) - np.eye(4)
    tree = build_dendrogram(distances, LinkageStrategy.SINGLE)
    partition = cut_at_k(tree, 3)
    np.testing.assert_array_equal(partition.cluster_ids, [1, 1, 2, 3])
    assert partition.height == 1.0


def test_cut_at_k_height_is_smallest():
    points = np.array([0.0, 1.0, 5.0, 6.5])[:, np.newaxis]
    tree = build_dendrogram(squareform(pdist(points)), LinkageStrategy.SINGLE)
    assert cut_at_k(tree, 4).height == 0.0
    assert cut_at_k(tree, 3).height == 1.0
    assert cut_at_k(tree, 2).height == 1.5


@pytest.mark.parametrize("k", [0, 21, -1])
def test_invalid_cut(random_distances, k):
    tree = build_dendrogram(random_distances)
    with pytest.raises(InvalidCutError):
        cut_at_k(tree, k)


def test_cut_tree_dispatch(random_distances):
    tree = build_dendrogram(random_distances)
    assert cut_tree(tree, k=3).n_clusters == 3
    assert cut_tree(tree, height=tree.max_height).n_clusters == 1
    with pytest.raises(ValueError):
        cut_tree(tree)
    with pytest.raises(ValueError):
        cut_tree(tree, height=1.0, k=2)


def test_partition_export():
    partition = Partition([1, 2, 1], 0.5)
    frame = partition.to_frame(indices=[7, 8, 9])
    assert frame.to_dict("list") == {"sample_index": [7, 8, 9], "cluster": [1, 2, 1]}
    assert partition.n_clusters == 2


def _naive_merges(distances, update):
    # row-major scan of every active pair, first strict minimum wins
    d = distances.astype(float).copy()
    n = d.shape[0]
    active = list(range(n))
    node = list(range(n))
    size = [1] * n
    merges = []
    for step in range(n - 1):
        best, pair = np.inf, None
        for x, i in enumerate(active):
            for j in active[x + 1:]:
                if d[i, j] < best:
                    best, pair = d[i, j], (i, j)
        i, j = pair
        merges.append((min(node[i], node[j]), max(node[i], node[j]), best))
        for k in active:
            if k not in pair:
                d[k, i] = d[i, k] = update(d[k, i], d[k, j], size[i], size[j])
        active.remove(j)
        size[i] += size[j]
        node[i] = n + step
    return merges


@pytest.mark.parametrize("strategy, update", [
    (LinkageStrategy.SINGLE, lambda a, b, ni, nj: min(a, b)),
    (LinkageStrategy.COMPLETE, lambda a, b, ni, nj: max(a, b)),
    (LinkageStrategy.AVERAGE, lambda a, b, ni, nj: (ni * a + nj * b) / (ni + nj)),
])
def test_tied_distances_match_full_scan(strategy, update):
    rng = np.random.default_rng(8)
    points = rng.integers(0, 4, size=(25, 2)).astype(float)
    distances = squareform(pdist(points, "cityblock"))
    tree = build_dendrogram(distances, strategy)
    expected = _naive_merges(distances, update)
    assert [(left, right) for left, right, _ in tree.merges()] == [(left, right) for left, right, _ in expected]
    np.testing.assert_allclose(tree.heights, [height for _, _, height in expected])


def test_clamp_heights():
    heights, n_clamped = _clamp_heights(np.array([1.0, 0.5, 2.0, 1.9, 1.9, 3.0]))
    np.testing.assert_array_equal(heights, [1.0, 1.0, 2.0, 2.0, 2.0, 3.0])
    assert n_clamped == 3


def test_clamp_heights_monotone_input():
    heights, n_clamped = _clamp_heights(np.array([0.0, 1.0, 1.0, 2.5]))
    np.testing.assert_array_equal(heights, [0.0, 1.0, 1.0, 2.5])
    assert n_clamped == 0


def test_clamped_heights_are_counted(monkeypatch, random_distances):
    raw = clusterer._agglomerate(random_distances, 1)
    raw[3, 2] = raw[2, 2] - 1e-12
    monkeypatch.setattr(clusterer, "_agglomerate", lambda distances, method: raw.copy())
    tree = build_dendrogram(random_distances)
    assert tree.n_clamped == 1
    assert np.all(np.diff(tree.heights) >= 0)
    assert tree.heights[3] == raw[2, 2]


@pytest.mark.parametrize("strategy", list(LinkageStrategy))
def test_larger_tree_matches_scipy(strategy):
    points = np.random.default_rng(9).standard_normal((300, 3))
    distances = squareform(pdist(points))
    tree = build_dendrogram(distances, strategy)
    expected = scipy_linkage(pdist(points), method=strategy.value)
    np.testing.assert_allclose(np.sort(tree.heights), np.sort(expected[:, 2]), rtol=1e-9)
