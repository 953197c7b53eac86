# src/canopyscan/vector/geom.py

"""
This module provides coordinate reference helpers shared by vector and point cloud data.

Every transform takes its source and target CRS explicitly; nothing here falls
back to an ambient default.
"""

from typing import Any, Optional, Tuple
import logging

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from canopyscan.exceptions import GeometryError
from canopyscan.vector.layer import Vector

log = logging.getLogger(__name__)

__all__ = [
    "as_crs",
    "same_crs",
    "transform_coords",
    "to_crs"
]

def as_crs(value: Any) -> Optional[CRS]:
    """
    Normalizes user input (EPSG string, integer code, WKT, rasterio or pyproj CRS) into a pyproj CRS.

    Returns None for None. Raises GeometryError for input pyproj cannot interpret.
    """
    if value is None:
        return None
    if isinstance(value, CRS):
        return value
    if hasattr(value, "to_wkt"):
        value = value.to_wkt()
    try:
        return CRS.from_user_input(value)
    except CRSError as e:
        raise GeometryError(f"Unrecognized coordinate reference system: {value!r}") from e

def same_crs(a: Any, b: Any) -> bool:
    a, b = as_crs(a), as_crs(b)
    if a is None or b is None:
        return a is b
    return a == b

def transform_coords(
    x: np.ndarray,
    y: np.ndarray,
    src_crs: Any,
    dst_crs: Any
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Reprojects coordinate arrays between two explicit CRSs.

    Raises:
        GeometryError: If either CRS is unknown or no transformation exists.
    """
    src, dst = as_crs(src_crs), as_crs(dst_crs)
    if src is None or dst is None:
        raise GeometryError(f"Cannot transform coordinates without both CRSs (source={src}, target={dst})")

    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if src == dst:
        return x.copy(), y.copy()

    try:
        transformer = Transformer.from_crs(src, dst, always_xy=True)
        tx, ty = transformer.transform(x, y, errcheck=True)
    except ProjError as e:
        raise GeometryError(f"No transformation from {src.to_string()} to {dst.to_string()}: {e}") from e

    log.debug(f"Transformed {x.size} coordinates {src.to_string()} -> {dst.to_string()}")
    return np.asarray(tx), np.asarray(ty)

def to_crs(vector: Vector, target_crs: Any) -> Vector:
    if vector.crs is None:
        raise GeometryError("Vector has no CRS. Cannot reproject.")

    return Vector(vector.data.to_crs(as_crs(target_crs)))
