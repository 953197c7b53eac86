# tests/unit/test_cluster.py

import pytest
import numpy as np

from canopyscan.exceptions import ParameterError
from canopyscan.lidar import TreeTop, ClusterParams, NOISE_LABEL, cluster_trees

from helpers import partition, assert_dbscan_labels

@pytest.fixture
def two_groups():
    """Two tight groups of five trees and one isolated tree between them."""
    trees = []
    tid = 1
    for ox, oy in [(0.0, 0.0), (100.0, 100.0)]:
        for dx, dy in [(0, 0), (1, 0), (0, 1), (1, 1), (0.5, 2)]:
            trees.append(TreeTop(tree_id=tid, x=ox + dx, y=oy + dy, height=20.0 + tid))
            tid += 1
    trees.append(TreeTop(tree_id=tid, x=50.0, y=50.0, height=40.0))
    return trees

def test_two_groups_and_noise(two_groups):
    """
    Module: lidar.cluster
    Function: cluster_trees
    Test: the two groups form two clusters, the isolated tree is noise.
    """
    clustered = cluster_trees(two_groups, ClusterParams(eps=3.0, min_pts=3))

    assert [c.tree_id for c in clustered] == [t.tree_id for t in two_groups]
    assert partition(clustered) == {frozenset({1, 2, 3, 4, 5}), frozenset({6, 7, 8, 9, 10})}
    assert clustered[-1].cluster == NOISE_LABEL
    assert clustered[-1].is_noise
    assert {c.cluster for c in clustered} == {0, 1, 2}

def test_records_keep_tree_fields(two_groups):
    clustered = cluster_trees(two_groups, ClusterParams(eps=3.0, min_pts=3))
    for tree, rec in zip(two_groups, clustered):
        assert (rec.tree_id, rec.x, rec.y, rec.height) == (tree.tree_id, tree.x, tree.y, tree.height)

def test_membership_independent_of_order(two_groups):
    params = ClusterParams(eps=3.0, min_pts=3)
    reference = partition(cluster_trees(two_groups, params))

    rng = np.random.default_rng(5)
    for _ in range(5):
        shuffled = [two_groups[i] for i in rng.permutation(len(two_groups))]
        assert partition(cluster_trees(shuffled, params)) == reference

def test_border_assignment_independent_of_order():
    """
    Tree 5 is within eps of a core tree of each group but is not core itself.
    Whatever the input order, it joins the group met first along x.
    """
    west = [TreeTop(i + 1, x, 0.0, 20.0) for i, x in enumerate([-1.5, -1.0, -0.5, 0.0])]
    border = [TreeTop(5, 2.0, 0.0, 20.0)]
    east = [TreeTop(i + 6, x, 0.0, 20.0) for i, x in enumerate([4.0, 4.5, 5.0, 5.5])]
    trees = west + border + east
    params = ClusterParams(eps=2.05, min_pts=4)

    rng = np.random.default_rng(9)
    for _ in range(8):
        shuffled = [trees[i] for i in rng.permutation(len(trees))]
        assert partition(cluster_trees(shuffled, params)) == {
            frozenset({1, 2, 3, 4, 5}), frozenset({6, 7, 8, 9})
        }

def test_dbscan_contract_on_random_layout():
    rng = np.random.default_rng(21)
    trees = [
        TreeTop(tree_id=i + 1, x=float(x), y=float(y), height=25.0)
        for i, (x, y) in enumerate(rng.uniform(0, 100, size=(80, 2)))
    ]
    clustered = cluster_trees(trees, ClusterParams(eps=12.0, min_pts=5))
    assert_dbscan_labels(clustered, eps=12.0, min_pts=5)

    labels = sorted({c.cluster for c in clustered} - {NOISE_LABEL})
    assert labels == list(range(1, len(labels) + 1))

def test_min_pts_larger_than_set_gives_all_noise(two_groups):
    clustered = cluster_trees(two_groups, ClusterParams(eps=3.0, min_pts=50))
    assert all(c.is_noise for c in clustered)

def test_empty_input():
    assert cluster_trees([], ClusterParams()) == []

@pytest.mark.parametrize("params", [
    ClusterParams(eps=0.0),
    ClusterParams(eps=-1.0),
    ClusterParams(min_pts=0),
    ClusterParams(min_pts=2.5),
])
def test_invalid_params(params):
    with pytest.raises(ParameterError):
        cluster_trees([TreeTop(1, 0.0, 0.0, 1.0)], params)
