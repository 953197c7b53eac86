# src/canopyscan/raster/layer.py

"""
This module defines the in-memory raster container used for canopy height models.
"""

import copy
import logging
from typing import Union, Optional, Dict, Any, Tuple

import numpy as np
import rasterio
from rasterio.transform import Affine
from rasterio.crs import CRS

from canopyscan.exceptions import RasterValidationError

log = logging.getLogger(__name__)

__all__ = [
    "Raster"
]

class Raster:
    """
    In-memory envelope that keeps a pixel array synchronized with its georeferencing.

    Attributes:
        data (np.ndarray): The pixel array in (Bands, Height, Width) format.
        transform (Affine): The affine transform matrix (pixel -> map coordinates).
        crs (CRS): The Coordinate Reference System, or None when unknown.
        nodata (float | int | None): The value representing missing data.
        band_names (Dict[str, int]): Mapping of semantic names to 1-based band indices.
    """

    def __init__(
        self,
        data: np.ndarray,
        transform: Affine,
        crs: Optional[Union[str, CRS]] = None,
        nodata: Optional[Union[float, int]] = None,
        band_names: Optional[Dict[str, int]] = None
    ):
        """
        Initialize a Raster object.

        Args:
            data: Input array. Must be 2D (Height, Width) or 3D (Bands, Height, Width).
                  2D arrays are automatically promoted to 3D (1, Height, Width).
            transform: Geospatial transform (maps pixels to coordinates).
            crs: Coordinate Reference System. Strings and pyproj objects are converted.
            nodata: Value indicating no data.
            band_names: Optional mapping of names to band indices ('CHM': 1).

        Raises:
            RasterValidationError: If dimensions mismatch or types are incorrect.
        """
        self._validate_inputs(data, transform)

        # Enforce 3D structure (Bands, Height, Width)
        if data.ndim == 2:
            data = data[np.newaxis, :, :]

        self._data = data
        self.transform = transform
        self.crs = _as_rasterio_crs(crs)
        self.nodata = nodata
        self.band_names = band_names or {}

    @staticmethod
    def _validate_inputs(data: np.ndarray, transform: Affine):
        if not isinstance(data, np.ndarray):
            raise TypeError(f"Data must be numpy.ndarray, got {type(data)}")

        if data.ndim not in (2, 3):
            raise RasterValidationError(f"Data must be 2D or 3D, got shape {data.shape}")

        if not isinstance(transform, Affine):
            raise TypeError(f"Transform must be rasterio.Affine, got {type(transform)}")

    @property
    def data(self) -> np.ndarray:
        """Access the raw pixel data."""
        return self._data

    @property
    def width(self) -> int:
        return self._data.shape[2]

    @property
    def height(self) -> int:
        return self._data.shape[1]

    @property
    def count(self) -> int:
        return self._data.shape[0]

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Returns (Bands, Height, Width)."""
        return self._data.shape

    @property
    def resolution(self) -> float:
        return abs(self.transform.a)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Returns (left, bottom, right, top) in CRS units."""
        return rasterio.transform.array_bounds(self.height, self.width, self.transform)

    @property
    def profile(self) -> Dict[str, Any]:
        """
        Generates a Rasterio-compliant GeoTIFF profile based on current state.
        """
        return {
            'driver': 'GTiff',
            'dtype': self._data.dtype,
            'nodata': self.nodata,
            'width': self.width,
            'height': self.height,
            'count': self.count,
            'crs': self.crs,
            'transform': self.transform,
            'compress': 'lzw'
        }

    def get_band(self, identifier: Union[int, str]) -> np.ndarray:
        """
        Retrieve a specific band by 1-based index or semantic name.

        Returns:
            np.ndarray: 2D array of the band.
        """
        if isinstance(identifier, str):
            if identifier not in self.band_names:
                raise KeyError(f"Band name '{identifier}' not found in {list(self.band_names.keys())}")
            idx = self.band_names[identifier]
        else:
            idx = identifier

        if not (1 <= idx <= self.count):
            raise IndexError(f"Band index {idx} out of range (1-{self.count})")

        return self._data[idx - 1]

    def valid_mask(self, band: int = 1) -> np.ndarray:
        """Boolean mask of cells holding real values (not nodata, not NaN)."""
        arr = self.get_band(band)
        mask = ~np.isnan(arr) if np.issubdtype(arr.dtype, np.floating) else np.ones(arr.shape, dtype=bool)
        if self.nodata is not None:
            mask &= arr != self.nodata
        return mask

    def cell_center(self, row: int, col: int) -> Tuple[float, float]:
        """Map coordinates of the centre of cell (row, col)."""
        x, y = self.transform * (col + 0.5, row + 0.5)
        return float(x), float(y)

    def copy(self) -> 'Raster':
        """Returns a deep copy of the Raster."""
        return Raster(
            data=self._data.copy(),
            transform=copy.deepcopy(self.transform),
            crs=copy.deepcopy(self.crs),
            nodata=self.nodata,
            band_names=self.band_names.copy()
        )

    def __repr__(self) -> str:
        return (f"<Raster shape={self.shape} dtype={self._data.dtype} "
                f"crs={self.crs} bounds={self.bounds}>")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented

        meta_eq = (
            self.transform == other.transform and
            self.crs == other.crs and
            self.nodata == other.nodata and
            self.shape == other.shape
        )
        if not meta_eq:
            return False

        return np.array_equal(self._data, other.data, equal_nan=True)

def _as_rasterio_crs(crs) -> Optional[CRS]:
    """Normalizes strings, EPSG codes and pyproj CRS objects into rasterio CRS."""
    if crs is None or isinstance(crs, CRS):
        return crs
    if hasattr(crs, "to_wkt"):
        return CRS.from_wkt(crs.to_wkt())
    return CRS.from_user_input(crs)
