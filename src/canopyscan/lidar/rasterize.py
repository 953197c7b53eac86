# src/canopyscan/lidar/rasterize.py

"""
This module implements functions to rasterize lidar point clouds.
"""

from typing import Optional, Tuple, Any
import logging
import math

import numpy as np
from rasterio.transform import Affine
from numba import jit

from canopyscan.exceptions import ParameterError
from canopyscan.raster.layer import Raster

from .layer import PointCloud

log = logging.getLogger(__name__)

__all__ = [
    "points_to_grid",
    "grid_geometry",
    "cell_indices",
    "NODATA_VAL"
]

NODATA_VAL = -9999.0

def _create_affine_transform(min_x: float, max_y: float, resolution: float) -> Affine:
    """
    Generates the affine transform of a north-up grid anchored at its top-left corner.

    Args:
        min_x (float): Minimum X coordinate of the grid.
        max_y (float): Maximum Y coordinate of the grid.
        resolution (float): Geographic units per pixel.

    Returns:
        Affine: Affine transformation object for georeferencing the raster grid.
    """
    return Affine.translation(min_x, max_y) * Affine.scale(resolution, -resolution)

def grid_geometry(
    bounds: Tuple[float, float, float, float],
    resolution: float
    ) -> Tuple[Tuple[int, int], Affine]:
    """
    Computes the shape and transform of a grid that covers `bounds` exactly.

    The grid is anchored at (min_x, max_y) and has ceil(extent / resolution) cells
    along each axis (at least one), so every point of the extent falls in a cell.

    Args:
        bounds: (min_x, min_y, max_x, max_y).
        resolution: Cell size in map units.

    Returns:
        Tuple[(rows, cols), Affine]
    """
    if not resolution > 0:
        raise ParameterError(f"Raster resolution must be positive, got {resolution}")

    min_x, min_y, max_x, max_y = bounds
    width = max(1, int(math.ceil((max_x - min_x) / resolution)))
    height = max(1, int(math.ceil((max_y - min_y) / resolution)))
    return (height, width), _create_affine_transform(min_x, max_y, resolution)

def cell_indices(
    x: np.ndarray,
    y: np.ndarray,
    transform: Affine,
    shape: Tuple[int, int]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Maps coordinates to (row, col) cell indices.

    Points lying exactly on the right or bottom grid edge are folded into the
    last column or row.

    Returns:
        Tuple of (rows, cols, valid_mask). Indices are only meaningful where valid_mask is True.
    """
    resolution = transform.a
    min_x, max_y = transform.c, transform.f
    cols = np.floor((x - min_x) / resolution).astype(np.int64)
    rows = np.floor((max_y - y) / resolution).astype(np.int64)

    # Points on the far edge of the extent belong to the last cell
    eps = 1e-9 * resolution
    cols[(cols == shape[1]) & (x <= min_x + shape[1] * resolution + eps)] = shape[1] - 1
    rows[(rows == shape[0]) & (y >= max_y - shape[0] * resolution - eps)] = shape[0] - 1

    valid_mask = (rows >= 0) & (rows < shape[0]) & (cols >= 0) & (cols < shape[1])
    return rows, cols, valid_mask

@jit(nopython=True, cache=True)
def _rasterize_points(
    grid: np.ndarray,
    rows: np.ndarray,
    cols: np.ndarray,
    z: np.ndarray,
    method_flag: int
    ):
    """
    Accumulates points into the grid using explicit loops for numba optimization.

    Args:
        grid: 2D array representing the raster grid to update.
        rows: Row indices for each point.
        cols: Column indices for each point.
        z: Z values for each point.
        method_flag: Integer flag indicating the aggregation method (0=count, 1=max, 2=min).

    Returns:
        None (the grid is modified in place).
    """
    for i in range(len(rows)):
        r = rows[i]
        c = cols[i]
        if method_flag == 0:  # count
            grid[r, c] += 1
        elif method_flag == 1:  # max
            if z[i] > grid[r, c]:
                grid[r, c] = z[i]
        elif method_flag == 2:  # min
            if z[i] < grid[r, c]:
                grid[r, c] = z[i]

def points_to_grid(
    pc: PointCloud,
    resolution: float,
    crs: Optional[Any] = None,
    method: str = 'max',
    nodata: float = NODATA_VAL,
    bounds: Optional[Tuple[float, float, float, float]] = None
) -> Raster:
    """
    Aggregates point elevations into a regular grid.

    Used for the per-cell maximum surface that backs the canopy height model, and
    for point density maps.

    Args:
        pc (PointCloud): Source cloud.
        resolution (float): Geographic units per pixel.
        crs (Optional[Any]): Output CRS. Defaults to the cloud's CRS.
        method (str): Statistical aggregator ('max', 'min', 'count').
        nodata (float): Filler value for cells without points ('max'/'min' only).
        bounds (Optional[Tuple]): Grid extent. Defaults to the cloud's bounding box.
            An empty cloud without explicit bounds yields a single nodata cell at the origin.

    Returns:
        Raster: Single-band, geo-aligned grid.

    Raises:
        ParameterError: If resolution is not positive or method is unknown.
    """
    if bounds is None:
        bounds = pc.bounds if not pc.is_empty else (0.0, 0.0, resolution, resolution)
    shape, transform = grid_geometry(bounds, resolution)

    if method == 'count':
        # zero counts are valid, so no nodata
        grid = np.zeros(shape, dtype=np.uint32)
        actual_nodata = None
        method_flag = 0
    elif method == 'max':
        grid = np.full(shape, -np.inf, dtype=np.float64)
        actual_nodata = nodata
        method_flag = 1
    elif method == 'min':
        grid = np.full(shape, np.inf, dtype=np.float64)
        actual_nodata = nodata
        method_flag = 2
    else:
        raise ParameterError(f"Unknown rasterization method: {method}")

    if not pc.is_empty:
        rows, cols, valid_mask = cell_indices(pc.x, pc.y, transform, shape)
        if not np.all(valid_mask):
            log.debug(f"{np.count_nonzero(~valid_mask)} points fall outside the grid and are ignored")
        _rasterize_points(grid, rows[valid_mask], cols[valid_mask], pc.z[valid_mask], method_flag)

    if method == 'max':
        grid[grid == -np.inf] = nodata
    elif method == 'min':
        grid[grid == np.inf] = nodata

    return Raster(
        data=grid,
        transform=transform,
        crs=crs if crs is not None else pc.crs,
        nodata=actual_nodata
    )
