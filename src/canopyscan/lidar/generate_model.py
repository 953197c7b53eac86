# src/canopyscan/lidar/generate_model.py

"""
This module implements the pit-free canopy height model (CHM) generation from lidar point clouds.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Any
import logging

import numpy as np
from rasterio.fill import fillnodata
from scipy.spatial import Delaunay, QhullError

from canopyscan.exceptions import ParameterError
from canopyscan.raster.layer import Raster

from .layer import PointCloud
from .rasterize import points_to_grid, grid_geometry, NODATA_VAL

log = logging.getLogger(__name__)

__all__ = [
    "CanopyParams",
    "generate_chm"
]

@dataclass
class CanopyParams:
    """
    Parameters for pit-free canopy height model generation.

    Args:
        resolution (float): Output cell size in map units.
        thresholds (Tuple[float, ...]): Height cut-offs of the stacked TIN layers, measured above
            `base_height`. A cut-off of 0 keeps every point.
        max_edge (Tuple[float, float]): Longest triangle edge kept in the base layer (first value)
            and in every thresholded layer (second value). 0 disables the edge limit.
        subcircle (float): Radius of the ring of 8 synthetic points added around each return
            to emulate the laser footprint. 0 disables it.
        first_returns_only (bool): Build the TINs from first returns only.
        fill_gaps (bool): Interpolate cells left empty by the TINs from their neighbours.
        base_height (Optional[float]): Elevation the thresholds are measured from. Defaults to
            the lowest return of the cloud, so absolute elevations (e.g. 190 m) and normalized
            heights behave alike.
    """
    resolution: float = 1.0
    thresholds: Tuple[float, ...] = (0.0, 2.0, 5.0, 10.0, 15.0)
    max_edge: Tuple[float, float] = (0.0, 1.0)
    subcircle: float = 0.0
    first_returns_only: bool = False
    fill_gaps: bool = True
    base_height: Optional[float] = None

    def validate(self):
        if not self.resolution > 0:
            raise ParameterError(f"CHM resolution must be positive, got {self.resolution}")
        if len(self.thresholds) == 0:
            raise ParameterError("At least one pit-free threshold is required")
        if any(t < 0 for t in self.thresholds) or list(self.thresholds) != sorted(self.thresholds):
            raise ParameterError(f"Pit-free thresholds must be non-negative and increasing, got {self.thresholds}")
        if len(self.max_edge) != 2 or any(e < 0 for e in self.max_edge):
            raise ParameterError(f"max_edge must hold two non-negative lengths, got {self.max_edge}")
        if self.subcircle < 0:
            raise ParameterError(f"subcircle must be non-negative, got {self.subcircle}")
        if self.base_height is not None and not np.isfinite(self.base_height):
            raise ParameterError(f"base_height must be finite, got {self.base_height}")

def _subcircle(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    radius: float
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Replaces each point with itself plus 8 points on a circle of the given radius, at the same elevation.
    """
    angles = np.linspace(0.0, 2.0 * np.pi, 8, endpoint=False)
    dx = np.concatenate(([0.0], radius * np.cos(angles)))
    dy = np.concatenate(([0.0], radius * np.sin(angles)))
    xs = (x[:, np.newaxis] + dx).ravel()
    ys = (y[:, np.newaxis] + dy).ravel()
    zs = np.repeat(z, dx.size)
    return xs, ys, zs

def _tin_layer(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    max_edge: float,
    qx: np.ndarray,
    qy: np.ndarray
    ) -> np.ndarray:
    """
    Linearly interpolates a Delaunay TIN of the points at query locations.

    Steps:
        1. Collapses duplicate (x, y) locations, keeping the highest return.
        2. Triangulates with scipy's Delaunay (Qhull). Fewer than 3 distinct points or a
           degenerate (collinear) set yields an all-NaN layer.
        3. Flags triangles whose longest edge exceeds `max_edge` (when > 0) as holes.
        4. Interpolates inside each remaining triangle with barycentric weights,
           written relative to the third vertex so a flat triangle returns its
           elevation exactly.

    Returns:
        np.ndarray: Interpolated values, NaN outside the kept triangles. Same shape as qx.
    """
    out = np.full(qx.shape, np.nan, dtype=np.float64)

    order = np.argsort(-z, kind="stable")
    xy = np.column_stack((x[order], y[order]))
    xy, first = np.unique(xy, axis=0, return_index=True)
    zz = z[order][first]
    if len(xy) < 3:
        return out

    try:
        tri = Delaunay(xy)
    except QhullError:
        log.debug(f"Degenerate TIN over {len(xy)} points; layer skipped")
        return out

    simplices = tri.simplices
    keep = np.ones(len(simplices), dtype=bool)
    if max_edge > 0:
        a, b, c = xy[simplices[:, 0]], xy[simplices[:, 1]], xy[simplices[:, 2]]
        longest = np.maximum.reduce([
            np.hypot(*(a - b).T),
            np.hypot(*(b - c).T),
            np.hypot(*(c - a).T)
        ])
        keep = longest <= max_edge

    query = np.column_stack((qx.ravel(), qy.ravel()))
    simplex = tri.find_simplex(query)
    hit = simplex >= 0
    hit[hit] = keep[simplex[hit]]
    if not np.any(hit):
        return out

    s = simplex[hit]
    T = tri.transform[s, :2]
    offset = query[hit] - tri.transform[s, 2]
    bary = np.einsum("ijk,ik->ij", T, offset)

    verts = zz[simplices[s]]
    values = verts[:, 2] + bary[:, 0] * (verts[:, 0] - verts[:, 2]) + bary[:, 1] * (verts[:, 1] - verts[:, 2])

    flat = out.ravel()
    flat[hit] = values
    return flat.reshape(qx.shape)

def _fill_gaps(grid: np.ndarray) -> np.ndarray:
    """
    Fills NaN cells from their neighbours with GDAL's inverse-distance fill.

    Valid cells keep their exact original values.
    """
    valid = ~np.isnan(grid)
    if np.all(valid) or not np.any(valid):
        return grid

    # Search far enough to reach every empty cell of the grid
    max_search_px = float(np.hypot(*grid.shape)) + 1.0
    filled = fillnodata(
        grid.astype(np.float32),
        mask=valid.astype(np.uint8),
        max_search_distance=max_search_px
    ).astype(np.float64)
    return np.where(valid, grid, filled)

def generate_chm(
    pc: PointCloud,
    params: CanopyParams = CanopyParams(),
    crs: Optional[Any] = None
    ) -> Raster:
    """
    Builds a pit-free canopy height model from a (filtered) point cloud.

    Steps:
        1. Sizes a grid covering the cloud's horizontal extent at `params.resolution`.
        2. Optionally replaces each return by a small ring of points (`subcircle`).
        3. For every threshold, triangulates the points at least that high above
           `base_height` (the lowest return by default), drops
           triangles with overly long edges, and interpolates at cell centres.
        4. Composites the layers with a running maximum, which removes the
           low-height pits that sparse sampling punches into a single TIN.
        5. Raises every cell to at least the highest return it contains.
        6. Fills cells still empty from their neighbours.

    An empty cloud is not an error: the result is a single nodata cell.

    Args:
        pc (PointCloud): Point cloud, usually the region-filtered one.
        params (CanopyParams): Rasterization parameters.
        crs (Optional[Any]): Output CRS. Defaults to the cloud's CRS.

    Returns:
        Raster: Single band float64 CHM with nodata = NODATA_VAL.

    Raises:
        ParameterError: If the parameters are out of range.
    """
    params.validate()
    out_crs = crs if crs is not None else pc.crs

    if pc.is_empty:
        log.warning("Empty point cloud; canopy height model is a single nodata cell")
        return points_to_grid(pc, params.resolution, out_crs, method='max', nodata=NODATA_VAL)

    shape, transform = grid_geometry(pc.bounds, params.resolution)
    # Cell centres in map coordinates
    centers_x = transform.c + (np.arange(shape[1]) + 0.5) * transform.a
    centers_y = transform.f + (np.arange(shape[0]) + 0.5) * transform.e
    qx, qy = np.meshgrid(centers_x, centers_y)

    src = pc.subset(pc.return_number <= 1) if params.first_returns_only else pc
    x, y, z = src.x, src.y, src.z
    if params.subcircle > 0:
        x, y, z = _subcircle(x, y, z, params.subcircle)

    if params.base_height is not None:
        base = params.base_height
    else:
        base = float(z.min()) if z.size else 0.0
    chm = np.full(shape, np.nan, dtype=np.float64)
    for threshold in params.thresholds:
        sel = (z - base) >= threshold if threshold > 0 else np.ones(z.shape, dtype=bool)
        edge = params.max_edge[0] if threshold == 0 else params.max_edge[1]
        if np.count_nonzero(sel) < 3:
            log.debug(f"Pit-free layer {threshold}: fewer than 3 points, skipped")
            continue
        layer = _tin_layer(x[sel], y[sel], z[sel], edge, qx, qy)
        chm = np.fmax(chm, layer)
        log.debug(f"Pit-free layer {threshold}: {np.count_nonzero(~np.isnan(layer))} cells")

    # No cell may sit below the highest return it contains
    max_grid = points_to_grid(pc, params.resolution, out_crs, method='max', nodata=np.nan, bounds=pc.bounds)
    chm = np.fmax(chm, max_grid.get_band(1))

    if params.fill_gaps:
        chm = _fill_gaps(chm)

    empty = np.isnan(chm)
    chm[empty] = NODATA_VAL
    log.info(
        f"Canopy height model {shape[0]}x{shape[1]} at {params.resolution} units/cell "
        f"({np.count_nonzero(empty)} nodata cells)"
    )

    return Raster(
        data=chm,
        transform=transform,
        crs=out_crs,
        nodata=NODATA_VAL,
        band_names={"CHM": 1}
    )
