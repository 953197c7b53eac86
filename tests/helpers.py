# tests/helpers.py

import laspy
import numpy as np
from pyproj import CRS

from canopyscan.raster.layer import Raster

# (x, y, crown height above ground) of the synthetic forest
FOREST_GROUND = 100.0
FOREST_CROWN_RADIUS = 4.0
FOREST_TREES = [
    # western group, short
    (10.0, 10.0, 10.0),
    (10.0, 20.0, 11.0),
    (20.0, 10.0, 12.0),
    (20.0, 20.0, 13.0),
    (15.0, 15.0, 14.0),
    (15.0, 22.0, 15.0),
    # isolated
    (10.0, 50.0, 12.5),
    (50.0, 10.0, 11.5),
    # eastern group, tall
    (40.0, 40.0, 25.0),
    (40.0, 50.0, 26.0),
    (50.0, 40.0, 27.0),
    (50.0, 50.0, 28.0),
    (45.0, 45.0, 30.0),
    (45.0, 52.0, 29.0),
]

def make_forest_points(extent: float = 60.0, spacing: float = 0.5):
    """
    Regular grid of returns over flat ground with one cone-shaped crown per tree.

    Every apex sits exactly on a grid node, so each crown has a single highest return.
    """
    ticks = np.arange(0.0, extent + spacing / 2, spacing)
    gx, gy = np.meshgrid(ticks, ticks)
    x, y = gx.ravel(), gy.ravel()

    canopy = np.zeros_like(x)
    for tx, ty, h in FOREST_TREES:
        d = np.hypot(x - tx, y - ty)
        canopy = np.maximum(canopy, h * np.clip(1.0 - d / FOREST_CROWN_RADIUS, 0.0, None))
    return x, y, FOREST_GROUND + canopy

def write_las(path, x, y, z, crs=None, return_number=None):
    """Writes a LAS 1.4 file (point format 6), declaring `crs` in a WKT record when given."""
    header = laspy.LasHeader(point_format=6, version="1.4")
    header.scales = np.array([0.001, 0.001, 0.001])
    header.offsets = np.array([np.floor(np.min(x)), np.floor(np.min(y)), np.floor(np.min(z))])
    if crs is not None:
        header.add_crs(CRS.from_user_input(crs))

    las = laspy.LasData(header)
    las.x = np.asarray(x)
    las.y = np.asarray(y)
    las.z = np.asarray(z)
    if return_number is not None:
        las.return_number = np.asarray(return_number, dtype=np.uint8)
    las.write(str(path))
    return path

def assert_grid_match(r1: Raster, r2: Raster):
    """Strictly verify two rasters share the exact same grid."""
    assert r1.crs == r2.crs, \
        f"CRS mismatch: {r1.crs} != {r2.crs}"

    assert r1.shape == r2.shape, \
        f"Shape mismatch: {r1.shape} != {r2.shape}"

    assert np.allclose(np.array(r1.transform), np.array(r2.transform), atol=1e-9), \
        "Transform mismatch (Pixel alignment error)"

def partition(clustered):
    """Cluster membership as a set of frozensets of tree ids, noise excluded."""
    groups = {}
    for tree in clustered:
        if not tree.is_noise:
            groups.setdefault(tree.cluster, set()).add(tree.tree_id)
    return {frozenset(members) for members in groups.values()}

def assert_dbscan_labels(clustered, eps: float, min_pts: int):
    """
    Checks the DBSCAN contract on a labelled set: every core tree is clustered,
    every clustered tree is core or within eps of a core tree of its own cluster,
    and noise trees are neither.
    """
    xy = np.array([(t.x, t.y) for t in clustered])
    labels = np.array([t.cluster for t in clustered])
    dist = np.hypot(xy[:, 0, None] - xy[None, :, 0], xy[:, 1, None] - xy[None, :, 1])
    core = (dist <= eps).sum(axis=1) >= min_pts

    for i in range(len(clustered)):
        if core[i]:
            assert labels[i] > 0, f"core tree {clustered[i].tree_id} labelled noise"
        elif labels[i] > 0:
            assert np.any(core & (dist[i] <= eps) & (labels == labels[i])), \
                f"border tree {clustered[i].tree_id} not reachable from its cluster"
        else:
            assert not np.any(core & (dist[i] <= eps)), \
                f"noise tree {clustered[i].tree_id} lies within eps of a core tree"
