# src/canopyscan/vector/io.py

"""
This module provides functions for reading and writing vector data using GeoPandas.
"""

from pathlib import Path
from typing import Union, Optional
import logging

import geopandas as gpd

from canopyscan.exceptions import InputError
from canopyscan.vector.layer import Vector

log = logging.getLogger(__name__)

__all__ = [
    "load_vector",
    "save_vector"
]

def load_vector(path: Union[str, Path], engine: str = "pyogrio", **kwargs) -> Vector:
    path = Path(path)
    if not path.exists():
        raise InputError(f"Vector file not found: {path}")

    try:
        gdf = gpd.read_file(path, engine=engine, **kwargs)
    except Exception as e:
        raise InputError(f"Failed to read vector file {path}: {e}") from e
    return Vector(gdf)

def save_vector(
    vector: Vector,
    path: Union[str, Path],
    driver: Optional[str] = None,
    engine: str = "pyogrio",
    **kwargs
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    log.info(f"Saving {len(vector)} features → {path}")
    vector.data.to_file(path, driver=driver, engine=engine, **kwargs)
    return path
