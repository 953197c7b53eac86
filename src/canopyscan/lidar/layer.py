# src/canopyscan/lidar/layer.py

"""
This module defines the core data structure for lidar point clouds, along with methods for loading and basic manipulation.
"""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Union, Optional, Tuple, Dict, Any
import logging

import laspy
from laspy.errors import LaspyException
import numpy as np
from pyproj import CRS

from canopyscan.exceptions import InputError
from canopyscan.vector.geom import as_crs

log = logging.getLogger(__name__)

__all__ = [
    "PointCloud"
]

@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Core data structure for holding LiDAR point cloud data and its coordinate reference.

    Instances are treated as immutable values: filtering produces a new PointCloud
    through `subset`, the source arrays are never modified.

    Attributes:
        x (np.ndarray): X coordinates of points.
        y (np.ndarray): Y coordinates of points.
        z (np.ndarray): Z coordinates (elevation) of points.
        classification (np.ndarray): Point classifications (ground, vegetation, etc.).
        return_number (np.ndarray): Return number for each point (1 for first return, etc.).
        crs (pyproj.CRS): Coordinate reference system of x/y, or None when undeclared.
    """
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray
    classification: np.ndarray = field(default=None, repr=False)
    return_number: np.ndarray = field(default=None, repr=False)
    crs: Optional[CRS] = None

    def __post_init__(self):
        x = np.array(self.x, dtype=np.float64)
        y = np.array(self.y, dtype=np.float64)
        z = np.array(self.z, dtype=np.float64)
        if not (x.shape == y.shape == z.shape) or x.ndim != 1:
            raise ValueError(f"x, y, z must be 1D arrays of equal length, got {x.shape}, {y.shape}, {z.shape}")

        n = x.size
        classification = self.classification
        classification = np.zeros(n, dtype=np.uint8) if classification is None else np.array(classification)
        return_number = self.return_number
        return_number = np.ones(n, dtype=np.uint8) if return_number is None else np.array(return_number)

        for arr in (x, y, z, classification, return_number):
            arr.flags.writeable = False

        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "z", z)
        object.__setattr__(self, "classification", classification)
        object.__setattr__(self, "return_number", return_number)
        object.__setattr__(self, "crs", as_crs(self.crs))

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        crs: Optional[Any] = None
        ) -> 'PointCloud':
        """
        Loads the entirety of a LiDAR point cloud into memory.

        The CRS is parsed from the LAS header. `crs` is only used when the header
        declares none; a conflicting declaration is logged and the header wins.

        Args:
            path (Union[str, Path]): Target .las or .laz file.
            crs (Optional[Any]): Fallback coordinate reference system.

        Returns:
            PointCloud: Fully populated object.

        Raises:
            InputError: If the file is missing, unreadable, or has no CRS at all.
        """
        path = Path(path)
        if not path.exists():
            raise InputError(f"Lidar file not found: {path}")

        try:
            with laspy.open(path) as fh:
                las = fh.read()
                header_crs = las.header.parse_crs()
        except (LaspyException, OSError, ValueError) as e:
            raise InputError(f"Failed to read lidar file {path}: {e}") from e

        fallback = as_crs(crs)
        if header_crs is None and fallback is None:
            raise InputError(f"Lidar file {path} declares no coordinate reference system and none was supplied.")
        if header_crs is not None and fallback is not None and header_crs != fallback:
            log.warning(f"{path.name}: header CRS {header_crs.to_string()} overrides supplied {fallback.to_string()}")

        pc = cls(
            # map laspy point attributes to our PointCloud structure
            x=np.array(las.x),
            y=np.array(las.y),
            z=np.array(las.z),
            classification=np.array(las.classification),
            return_number=np.array(las.return_number),
            crs=header_crs if header_crs is not None else fallback
        )
        log.info(f"Loaded {len(pc)} points from {path.name} ({pc.crs.to_string()})")
        return pc

    @staticmethod
    def read_info(path: Union[str, Path]) -> Dict[str, Any]:
        """
        Reads header metadata (point count, bounds, CRS) without loading points.
        """
        path = Path(path)
        if not path.exists():
            raise InputError(f"Lidar file not found: {path}")

        try:
            with laspy.open(path) as fh:
                header = fh.header
                return {
                    "point_count": header.point_count,
                    "point_format": header.point_format.id,
                    "version": str(header.version),
                    "bounds": (header.x_min, header.y_min, header.x_max, header.y_max),
                    "z_range": (header.z_min, header.z_max),
                    "crs": header.parse_crs()
                }
        except (LaspyException, OSError, ValueError) as e:
            raise InputError(f"Failed to read lidar header {path}: {e}") from e

    def subset(self, mask: np.ndarray) -> 'PointCloud':
        """New PointCloud holding the points selected by a boolean mask or index array."""
        return PointCloud(
            x=self.x[mask],
            y=self.y[mask],
            z=self.z[mask],
            classification=self.classification[mask],
            return_number=self.return_number[mask],
            crs=self.crs
        )

    @property
    def is_empty(self) -> bool:
        return self.x.size == 0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y). All NaN for an empty cloud."""
        if self.is_empty:
            return (np.nan, np.nan, np.nan, np.nan)
        return (float(self.x.min()), float(self.y.min()), float(self.x.max()), float(self.y.max()))

    @property
    def max_z(self) -> float:
        return float(self.z.max()) if not self.is_empty else np.nan

    def __len__(self) -> int:
        return int(self.x.size)
