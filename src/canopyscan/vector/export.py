# src/canopyscan/vector/export.py

"""
This module converts treetop records into georeferenced vector layers for map and table consumers.
"""

from typing import Any, Iterable
import logging

import geopandas as gpd

from canopyscan.exceptions import GeometryError
from canopyscan.lidar.trees import trees_to_frame
from canopyscan.vector.geom import as_crs, to_crs
from canopyscan.vector.layer import Vector

log = logging.getLogger(__name__)

__all__ = [
    "trees_to_vector",
    "trees_to_geographic"
]

def trees_to_vector(trees: Iterable, crs: Any) -> Vector:
    """
    Builds a point layer from TreeTop or ClusteredTree records.

    Args:
        trees: Records to convert. All record fields become attribute columns.
        crs: Coordinate reference system the x/y fields are expressed in.

    Returns:
        Vector: Point layer, one feature per tree.
    """
    frame = trees_to_frame(trees)
    gdf = gpd.GeoDataFrame(
        frame,
        geometry=gpd.points_from_xy(frame["x"], frame["y"]),
        crs=as_crs(crs)
    )
    return Vector(gdf)

def trees_to_geographic(trees: Iterable, crs: Any, target_crs: Any = "EPSG:4326") -> Vector:
    """
    Point layer reprojected to a geographic CRS (longitude/latitude) for web maps.

    The projected x/y attribute columns are kept; the geometry carries the new coordinates.

    Raises:
        GeometryError: If the source CRS is unknown.
    """
    if as_crs(crs) is None:
        raise GeometryError("Treetops have no CRS; cannot reproject to geographic coordinates.")

    vector = to_crs(trees_to_vector(trees, crs), target_crs)
    gdf = vector.data
    gdf["lon"] = gdf.geometry.x
    gdf["lat"] = gdf.geometry.y
    log.debug(f"Reprojected {len(gdf)} treetops to {as_crs(target_crs).to_string()}")
    return vector
