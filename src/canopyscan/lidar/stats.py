# src/canopyscan/lidar/stats.py

"""
This module computes summary tables over detected and clustered trees.
"""

from dataclasses import dataclass, asdict
from typing import List, Optional, Dict, Any
import logging

import numpy as np
import pandas as pd

from canopyscan.exceptions import ParameterError

from .trees import TreeTop, ClusteredTree, tree_heights, trees_to_frame

log = logging.getLogger(__name__)

__all__ = [
    "HeightSummary",
    "summarize_heights",
    "height_histogram",
    "cluster_summary"
]

@dataclass(frozen=True)
class HeightSummary:
    count: int
    mean: float
    min: float
    max: float
    median: float
    threshold: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def summarize_heights(trees: List[TreeTop], threshold: Optional[float] = None) -> HeightSummary:
    """
    Count and basic height statistics. Statistics are NaN for an empty collection.
    """
    heights = tree_heights(trees)
    if heights.size == 0:
        return HeightSummary(count=0, mean=np.nan, min=np.nan, max=np.nan, median=np.nan, threshold=threshold)

    return HeightSummary(
        count=int(heights.size),
        mean=float(heights.mean()),
        min=float(heights.min()),
        max=float(heights.max()),
        median=float(np.median(heights)),
        threshold=threshold
    )

def height_histogram(trees: List[TreeTop], bin_width: float = 1.0) -> pd.DataFrame:
    """
    Height distribution as fixed-width bins aligned on multiples of `bin_width`.

    Returns:
        pd.DataFrame: Columns bin_start, bin_end, count. Empty for no trees.
    """
    if not bin_width > 0:
        raise ParameterError(f"bin_width must be positive, got {bin_width}")

    heights = tree_heights(trees)
    if heights.size == 0:
        return pd.DataFrame(columns=["bin_start", "bin_end", "count"])

    start = np.floor(heights.min() / bin_width) * bin_width
    stop = (np.floor(heights.max() / bin_width) + 1) * bin_width
    edges = np.arange(start, stop + bin_width / 2, bin_width)
    counts, edges = np.histogram(heights, bins=edges)
    return pd.DataFrame({
        "bin_start": edges[:-1],
        "bin_end": edges[1:],
        "count": counts
    })

def cluster_summary(clustered: List[ClusteredTree]) -> pd.DataFrame:
    """
    One row per cluster label (noise included as label 0): size, mean height and centroid.
    """
    frame = trees_to_frame(clustered)
    if frame.empty:
        return pd.DataFrame(columns=["cluster", "size", "mean_height", "centroid_x", "centroid_y"])

    summary = (
        frame.groupby("cluster")
        .agg(
            size=("tree_id", "size"),
            mean_height=("height", "mean"),
            centroid_x=("x", "mean"),
            centroid_y=("y", "mean")
        )
        .reset_index()
    )
    return summary
