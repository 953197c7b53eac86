# src/canopyscan/lidar/__init__.py
#
# Copyright (c) The canopyscan project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The lidar subpackage provides core functionality for handling lidar data,
including I/O, region filtering, pit-free canopy height model generation,
treetop detection, tall-tree selection and spatial clustering.
"""

# Data structures
from .layer import (
    PointCloud
)
from .trees import (
    TreeTop,
    ClusteredTree,
    trees_to_frame
)

# Region filter
from .clip import (
    clip_to_aoi,
    filter_elevation
)

# Rasterization and CHM generation
from .rasterize import (
    points_to_grid,
    NODATA_VAL
)
from .generate_model import (
    CanopyParams,
    generate_chm
)

# Treetop detection
from .detect_treetop import (
    DetectionParams,
    detect_treetops
)

# Tall tree selection
from .select import (
    DEFAULT_PERCENTILE,
    height_percentile,
    select_above,
    select_tallest
)

# Spatial clustering
from .cluster import (
    ClusterParams,
    NOISE_LABEL,
    cluster_trees
)

# Summaries
from .stats import (
    HeightSummary,
    summarize_heights,
    height_histogram,
    cluster_summary
)

__all__ = [
    # Data structures
    "PointCloud",
    "TreeTop",
    "ClusteredTree",
    "trees_to_frame",

    # Region filter
    "clip_to_aoi",
    "filter_elevation",

    # Rasterization and CHM generation
    "points_to_grid",
    "NODATA_VAL",
    "CanopyParams",
    "generate_chm",

    # Treetop detection
    "DetectionParams",
    "detect_treetops",

    # Tall tree selection
    "DEFAULT_PERCENTILE",
    "height_percentile",
    "select_above",
    "select_tallest",

    # Spatial clustering
    "ClusterParams",
    "NOISE_LABEL",
    "cluster_trees",

    # Summaries
    "HeightSummary",
    "summarize_heights",
    "height_histogram",
    "cluster_summary",
]
