# src/canopyscan/vector/aoi.py

"""
This module defines the area of interest polygon used to crop point clouds.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple, Union
import logging

import numpy as np
from shapely.geometry import Polygon
from shapely.validation import explain_validity

from canopyscan.exceptions import GeometryError
from canopyscan.vector.geom import as_crs, transform_coords
from canopyscan.vector.io import load_vector

log = logging.getLogger(__name__)

__all__ = [
    "AreaOfInterest"
]

@dataclass(frozen=True)
class AreaOfInterest:
    """
    Closed, simple polygon in an explicit coordinate reference system.

    Attributes:
        vertices (Tuple[Tuple[float, float], ...]): Ring vertices; first and last coincide.
        crs (pyproj.CRS): Reference system of the vertices. May be None only when the
            point cloud it is applied to also has no CRS.
    """
    vertices: Tuple[Tuple[float, float], ...]
    crs: Any = None

    def __post_init__(self):
        verts = tuple((float(x), float(y)) for x, y in self.vertices)
        object.__setattr__(self, "vertices", verts)
        object.__setattr__(self, "crs", as_crs(self.crs))

        if len(verts) < 4:
            raise GeometryError(f"Area of interest needs at least 4 vertices (closed triangle), got {len(verts)}")
        if verts[0] != verts[-1]:
            raise GeometryError(f"Area of interest ring is not closed: {verts[0]} != {verts[-1]}")

        poly = Polygon(verts)
        if not poly.is_valid:
            raise GeometryError(f"Area of interest is not a simple polygon: {explain_validity(poly)}")
        if poly.area <= 0:
            raise GeometryError("Area of interest has zero area")

    @classmethod
    def from_bounds(
        cls,
        min_x: float,
        min_y: float,
        max_x: float,
        max_y: float,
        crs: Any = None
    ) -> 'AreaOfInterest':
        """Axis-aligned rectangle, wound counter-clockwise."""
        return cls(
            vertices=(
                (min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y), (min_x, min_y)
            ),
            crs=crs
        )

    @classmethod
    def from_polygon(cls, polygon: Polygon, crs: Any = None) -> 'AreaOfInterest':
        if polygon.interiors:
            log.warning("Area of interest polygon has holes; only the exterior ring is used.")
        return cls(vertices=tuple(polygon.exterior.coords), crs=crs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'AreaOfInterest':
        """
        Reads the first polygon feature of a vector file (GeoPackage, GeoJSON, Shapefile).

        Raises:
            InputError: If the file cannot be read.
            GeometryError: If it contains no polygon.
        """
        vector = load_vector(path)
        polygons = vector.data.geometry[vector.data.geom_type == "Polygon"]
        if polygons.empty:
            raise GeometryError(f"No polygon feature found in {path}")
        if len(vector) > 1:
            log.warning(f"{path} holds {len(vector)} features; using the first polygon only.")
        return cls.from_polygon(polygons.iloc[0], crs=vector.crs)

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.vertices)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.polygon.bounds

    def to_crs(self, target_crs: Any) -> 'AreaOfInterest':
        """
        Returns a new AreaOfInterest with vertices reprojected into target_crs.

        Raises:
            GeometryError: If either side has no CRS or no transformation is known.
        """
        target = as_crs(target_crs)
        if self.crs is not None and target is not None and self.crs == target:
            return self

        xy = np.asarray(self.vertices)
        tx, ty = transform_coords(xy[:, 0], xy[:, 1], self.crs, target)
        return AreaOfInterest(vertices=tuple(zip(tx, ty)), crs=target)
