# src/canopyscan/vector/layer.py

"""
This module defines the core data structure for vector data (treetop points, area of interest polygons).
"""

import logging

import geopandas as gpd

log = logging.getLogger(__name__)

__all__ = [
    "Vector"
]

class Vector:
    """Thin wrapper that guarantees its payload is a GeoDataFrame."""

    def __init__(self, data: gpd.GeoDataFrame):
        if not isinstance(data, gpd.GeoDataFrame):
            raise TypeError(f"Expected GeoDataFrame, got {type(data)}")
        self._data = data

    @property
    def data(self) -> gpd.GeoDataFrame:
        return self._data

    @property
    def crs(self):
        return self._data.crs

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self):
        return f"<Vector features={len(self._data)} crs={self.crs}>"
