# src/canopyscan/lidar/clip.py

"""
This module implements the region filter: cropping a point cloud to an area of
interest polygon and an elevation band.
"""

import logging

import numpy as np
import shapely

from canopyscan.exceptions import GeometryError, ParameterError
from canopyscan.vector.aoi import AreaOfInterest

from .layer import PointCloud

log = logging.getLogger(__name__)

__all__ = [
    "clip_to_aoi",
    "filter_elevation"
]

def _align_aoi(pc: PointCloud, aoi: AreaOfInterest) -> AreaOfInterest:
    """
    Expresses the area of interest in the point cloud's CRS.

    Two undeclared CRSs are assumed to be the same local frame. One declared and one
    undeclared CRS cannot be reconciled.
    """
    if pc.crs is None and aoi.crs is None:
        log.debug("Neither point cloud nor AOI declares a CRS; assuming a shared local frame.")
        return aoi
    if pc.crs is None or aoi.crs is None:
        raise GeometryError(
            f"CRS mismatch with no known transform: cloud={pc.crs}, aoi={aoi.crs}"
        )
    if pc.crs != aoi.crs:
        log.info(f"Reprojecting AOI from {aoi.crs.to_string()} to {pc.crs.to_string()}")
        return aoi.to_crs(pc.crs)
    return aoi

def filter_elevation(pc: PointCloud, z_min: float, z_max: float) -> PointCloud:
    """
    Keeps points with z inside the inclusive band [z_min, z_max].

    Raises:
        ParameterError: If z_min > z_max.
    """
    if z_min > z_max:
        raise ParameterError(f"Elevation band is inverted: z_min={z_min} > z_max={z_max}")
    return pc.subset((pc.z >= z_min) & (pc.z <= z_max))

def clip_to_aoi(
    pc: PointCloud,
    aoi: AreaOfInterest,
    z_min: float = -np.inf,
    z_max: float = np.inf
    ) -> PointCloud:
    """
    Crops a point cloud to a polygon and an elevation band.

    Steps:
        1. Reprojects the AOI into the cloud's CRS when they differ.
        2. Rejects points outside the polygon's bounding box with plain array
           comparisons before running the exact point-in-polygon test.
        3. Tests the remaining points with shapely's vectorized `intersects_xy`
           against a prepared polygon, so points on the boundary are kept.
        4. Applies the inclusive [z_min, z_max] band.

    The input cloud is left untouched. If the polygon and the cloud do not intersect
    the result is a valid empty PointCloud (a warning is logged, nothing is raised).

    Args:
        pc (PointCloud): Source cloud.
        aoi (AreaOfInterest): Closed simple polygon.
        z_min (float): Lower elevation bound (inclusive).
        z_max (float): Upper elevation bound (inclusive).

    Returns:
        PointCloud: Points inside both the polygon and the band.

    Raises:
        GeometryError: If the AOI CRS cannot be transformed to the cloud CRS.
        ParameterError: If z_min > z_max.
    """
    if z_min > z_max:
        raise ParameterError(f"Elevation band is inverted: z_min={z_min} > z_max={z_max}")

    aoi = _align_aoi(pc, aoi)
    polygon = aoi.polygon

    minx, miny, maxx, maxy = polygon.bounds
    in_box = (pc.x >= minx) & (pc.x <= maxx) & (pc.y >= miny) & (pc.y <= maxy)
    in_band = (pc.z >= z_min) & (pc.z <= z_max)
    candidates = np.flatnonzero(in_box & in_band)

    if candidates.size:
        shapely.prepare(polygon)
        inside = shapely.intersects_xy(polygon, pc.x[candidates], pc.y[candidates])
        keep = candidates[inside]
    else:
        keep = candidates

    clipped = pc.subset(keep)
    if clipped.is_empty:
        log.warning(
            f"Region filter kept 0 of {len(pc)} points "
            f"(aoi bounds={tuple(round(v, 3) for v in polygon.bounds)}, band=[{z_min}, {z_max}])"
        )
    else:
        log.info(f"Region filter kept {len(clipped)} of {len(pc)} points")
    return clipped
