# src/canopyscan/__init__.py
#
# Copyright (c) The canopyscan project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
canopyscan: lidar canopy analysis.

Crops a point cloud to an area of interest, builds a pit-free canopy height
model, detects treetops, isolates the tallest trees with a height percentile and
groups them spatially with DBSCAN.
"""

__version__ = "0.1.0"

from . import exceptions, raster, vector, lidar
from .config import PipelineConfig, RegionConfig, load_config
from .pipeline import PipelineResult, run_pipeline, write_outputs

__all__ = [
    "exceptions",
    "raster",
    "vector",
    "lidar",
    "PipelineConfig",
    "RegionConfig",
    "load_config",
    "PipelineResult",
    "run_pipeline",
    "write_outputs",
]
