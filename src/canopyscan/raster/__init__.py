# src/canopyscan/raster/__init__.py
#
# Copyright (c) The canopyscan project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The raster subpackage provides the in-memory raster container used for
canopy height models, along with GeoTIFF I/O.
"""

# Core data structure
from .layer import (
    Raster
)

# I/O operations
from .io import (
    load,
    save
)

__all__ = [
    # Layer
    "Raster",

    # I/O
    "load",
    "save"
]
