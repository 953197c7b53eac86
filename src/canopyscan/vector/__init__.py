# src/canopyscan/vector/__init__.py
#
# Copyright (c) The canopyscan project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The vector subpackage provides core functionality for handling vector data:
area of interest polygons, coordinate reference transforms and treetop export.
"""

# I/O and data structure
from .layer import (
    Vector
)

from .io import (
    load_vector,
    save_vector
)

# Coordinate reference handling
from .geom import (
    as_crs,
    same_crs,
    transform_coords,
    to_crs
)

# Area of interest
from .aoi import (
    AreaOfInterest
)

# Export of detection results
from .export import (
    trees_to_vector,
    trees_to_geographic
)

__all__ = [
    # I/O and data structure
    "Vector",
    "load_vector",
    "save_vector",

    # Coordinate reference handling
    "as_crs",
    "same_crs",
    "transform_coords",
    "to_crs",

    # Area of interest
    "AreaOfInterest",

    # Export
    "trees_to_vector",
    "trees_to_geographic"
]
