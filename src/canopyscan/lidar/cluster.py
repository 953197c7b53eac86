# src/canopyscan/lidar/cluster.py

"""
This module groups treetops spatially with density-based clustering (DBSCAN).
"""

from dataclasses import dataclass
from typing import List
import logging

import numpy as np
from sklearn.cluster import DBSCAN

from canopyscan.exceptions import ParameterError

from .trees import TreeTop, ClusteredTree, tree_coords

log = logging.getLogger(__name__)

__all__ = [
    "ClusterParams",
    "NOISE_LABEL",
    "cluster_trees"
]

NOISE_LABEL = 0

@dataclass
class ClusterParams:
    """
    Parameters for DBSCAN clustering of treetop locations.

    Args:
        eps (float): Neighbourhood radius in map units.
        min_pts (int): Points (the point itself included) required within `eps`
            for a point to be a core point.
    """
    eps: float = 12.0
    min_pts: int = 5

    def validate(self):
        if not self.eps > 0:
            raise ParameterError(f"DBSCAN eps must be positive, got {self.eps}")
        if int(self.min_pts) != self.min_pts or self.min_pts < 1:
            raise ParameterError(f"DBSCAN min_pts must be a positive integer, got {self.min_pts}")

def cluster_trees(
    trees: List[TreeTop],
    params: ClusterParams = ClusterParams()
    ) -> List[ClusteredTree]:
    """
    Assigns every tree a spatial cluster label from its (x, y) position only.

    A tree is a core point when at least `min_pts` trees (itself included) lie within
    `eps` of it. Core points reachable from each other through chains of core points
    form a cluster; non-core trees within `eps` of a core point join that cluster as
    border points; every other tree is noise and gets label 0. Clusters are numbered
    1..k in order of their first core tree along the (x, y, tree_id) ordering.

    Membership is independent of the order of `trees`: the input is sorted by
    (x, y, tree_id) before clustering. A border tree within `eps` of core points of
    two different clusters joins whichever cluster reaches it first in that order.
    This is inherent to DBSCAN and is accepted, not corrected.

    Args:
        trees (List[TreeTop]): Trees to cluster, typically the tallest subset.
        params (ClusterParams): DBSCAN parameters.

    Returns:
        List[ClusteredTree]: One record per input tree, in input order.

    Raises:
        ParameterError: If eps or min_pts is out of range.
    """
    params.validate()
    if not trees:
        log.warning("No trees to cluster")
        return []

    coords = tree_coords(trees)
    ids = np.array([t.tree_id for t in trees])
    order = np.lexsort((ids, coords[:, 1], coords[:, 0]))

    db = DBSCAN(eps=params.eps, min_samples=int(params.min_pts)).fit(coords[order])
    raw = np.empty(len(trees), dtype=np.int64)
    raw[order] = db.labels_

    # sklearn numbers clusters 0..k-1 in discovery order and marks noise -1
    labels = np.where(raw < 0, NOISE_LABEL, raw + 1)

    clustered = [
        ClusteredTree(tree_id=t.tree_id, x=t.x, y=t.y, height=t.height, cluster=int(label))
        for t, label in zip(trees, labels)
    ]

    n_clusters = len(set(labels[labels != NOISE_LABEL].tolist()))
    n_noise = int(np.count_nonzero(labels == NOISE_LABEL))
    log.info(f"DBSCAN(eps={params.eps}, min_pts={params.min_pts}): {n_clusters} clusters, {n_noise} noise trees")
    return clustered
