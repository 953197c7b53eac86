# src/canopyscan/raster/io.py

"""
This module handles all disk-based operations for raster data.
"""

import logging
from pathlib import Path
from typing import Union, Optional, List

import rasterio
from rasterio.errors import RasterioError

from canopyscan.exceptions import InputError, OutputError
from .layer import Raster

log = logging.getLogger(__name__)

__all__ = [
    "load",
    "save"
]

def load(
    path: Union[str, Path],
    bands: Optional[Union[int, List[int]]] = None
) -> Raster:
    """
    Load a raster from disk into memory.

    Args:
        path: Path to raster file. All supported GDAL formats are accepted.
        bands: Specific band(s) to load (None=all, int=single, list=subset).

    Returns:
        Raster: In-memory Raster object.

    Raises:
        InputError: If the file is missing or cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Raster file not found: {path}")

    log.debug(f"Loading raster: {path.name}")

    try:
        with rasterio.open(path) as src:
            if bands is None:
                indices = list(src.indexes)
            elif isinstance(bands, int):
                indices = [bands]
            else:
                indices = list(bands)

            band_names = {}
            for i, idx in enumerate(indices):
                desc = src.descriptions[idx - 1]
                if desc:
                    band_names[desc] = i + 1

            return Raster(
                data=src.read(indices),
                transform=src.transform,
                crs=src.crs,
                nodata=src.nodata,
                band_names=band_names
            )
    except rasterio.RasterioIOError as e:
        raise InputError(f"Failed to read raster from {path}: {e}") from e

def save(
    raster: Raster,
    path: Union[str, Path],
    **profile_kwargs
) -> Path:
    """
    Write a Raster object to disk as a GeoTIFF.

    Args:
        raster: Raster object to save.
        path: Output file path.
        **profile_kwargs: Override default rasterio profile settings.

    Returns:
        Path: The written file.

    Raises:
        OutputError: If the directory or the file cannot be written.
    """
    path = Path(path)
    profile = raster.profile.copy()
    profile.update(profile_kwargs)

    log.info(f"Saving raster {raster.shape} -> {path}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with rasterio.open(path, 'w', **profile) as dst:
            dst.write(raster.data)

            for name, idx in raster.band_names.items():
                if 1 <= idx <= raster.count:
                    dst.set_band_description(idx, name)
    except (RasterioError, OSError) as e:
        raise OutputError(f"Failed to save raster to {path}: {e}") from e

    return path
