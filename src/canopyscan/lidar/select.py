# src/canopyscan/lidar/select.py

"""
This module isolates the tallest trees of a detection run with a height percentile.

The statistic and the filter are two separate pure functions. `select_tallest`
composes them explicitly, so the threshold is always computed over the exact
collection that is then filtered.
"""

from typing import List, Tuple
import logging

import numpy as np

from canopyscan.exceptions import InsufficientTreesError, ParameterError

from .trees import TreeTop, tree_heights

log = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PERCENTILE",
    "height_percentile",
    "select_above",
    "select_tallest"
]

DEFAULT_PERCENTILE = 0.90

def height_percentile(trees: List[TreeTop], q: float = DEFAULT_PERCENTILE) -> float:
    """
    Height value at quantile `q` of the treetop height distribution.

    Uses linear interpolation between order statistics (Hyndman & Fan type 7,
    numpy's "linear" method, R's `quantile` default). With the heights sorted
    ascending as x[0..n-1] and h = (n - 1) * q:

        percentile = x[floor(h)] + (h - floor(h)) * (x[floor(h) + 1] - x[floor(h)])

    Args:
        trees (List[TreeTop]): Detected treetops.
        q (float): Quantile in the open interval (0, 1).

    Returns:
        float: The threshold height.

    Raises:
        ParameterError: If q is outside (0, 1).
        InsufficientTreesError: If fewer than two treetops are given.
    """
    if not 0 < q < 1:
        raise ParameterError(f"Quantile must lie in (0, 1), got {q}")
    if len(trees) < 2:
        raise InsufficientTreesError(
            f"A height percentile needs at least 2 treetops, got {len(trees)}"
        )

    return float(np.percentile(tree_heights(trees), q * 100.0, method="linear"))

def select_above(trees: List[TreeTop], threshold: float) -> List[TreeTop]:
    """Trees with a height strictly greater than `threshold`, in input order."""
    return [t for t in trees if t.height > threshold]

def select_tallest(
    trees: List[TreeTop],
    q: float = DEFAULT_PERCENTILE
    ) -> Tuple[float, List[TreeTop]]:
    """
    Computes the `q` height percentile and keeps the trees strictly above it.

    Returns:
        Tuple[float, List[TreeTop]]: The threshold and the selected subset.

    Raises:
        InsufficientTreesError: If fewer than two treetops are given.
    """
    threshold = height_percentile(trees, q)
    tallest = select_above(trees, threshold)
    log.info(
        f"Height percentile {q:.2f} = {threshold:.3f}; "
        f"{len(tallest)} of {len(trees)} trees above it"
    )
    return threshold, tallest
