# src/canopyscan/lidar/trees.py

"""
This module defines the fixed-field records produced by treetop detection and clustering.
"""

from dataclasses import dataclass, asdict
from typing import Iterable, List
import logging

import numpy as np
import pandas as pd

log = logging.getLogger(__name__)

__all__ = [
    "TreeTop",
    "ClusteredTree",
    "trees_to_frame",
    "tree_heights",
    "tree_coords"
]

@dataclass(frozen=True)
class TreeTop:
    """
    A detected canopy apex.

    Attributes:
        tree_id (int): Stable identifier, unique within one detection run.
        x (float): Easting of the cell centre holding the apex.
        y (float): Northing of the cell centre holding the apex.
        height (float): Canopy height model value at the apex.
    """
    tree_id: int
    x: float
    y: float
    height: float

@dataclass(frozen=True)
class ClusteredTree:
    """
    A treetop together with its spatial cluster label (0 = noise).
    """
    tree_id: int
    x: float
    y: float
    height: float
    cluster: int

    @property
    def is_noise(self) -> bool:
        return self.cluster == 0

def trees_to_frame(trees: Iterable) -> pd.DataFrame:
    """Tabulates TreeTop or ClusteredTree records, one row per tree."""
    rows = [asdict(t) for t in trees]
    if not rows:
        return pd.DataFrame(columns=["tree_id", "x", "y", "height"])
    return pd.DataFrame(rows)

def tree_heights(trees: List[TreeTop]) -> np.ndarray:
    return np.array([t.height for t in trees], dtype=np.float64)

def tree_coords(trees: List[TreeTop]) -> np.ndarray:
    """(n, 2) array of x, y coordinates."""
    if not trees:
        return np.empty((0, 2), dtype=np.float64)
    return np.array([(t.x, t.y) for t in trees], dtype=np.float64)
