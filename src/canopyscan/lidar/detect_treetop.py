# src/canopyscan/lidar/detect_treetop.py

"""
This module implements functions for detecting treetop locations from canopy height models (CHMs) derived from lidar data.
"""

import logging
from typing import Tuple, List
from dataclasses import dataclass

import numpy as np
import scipy.ndimage as ndimage
from numba import jit

from canopyscan.exceptions import ParameterError
from canopyscan.raster.layer import Raster

from .trees import TreeTop

log = logging.getLogger(__name__)

__all__ = [
    "DetectionParams",
    "detect_treetops"
]

@dataclass
class DetectionParams:
    """
    Parameters for treetop detection algorithms.

    Args:
        detection_method (str): Method to use for treetop detection. Options: "lmf", "vws".
        window_size (float): Side of the square search window in map units ("lmf").
        min_height (float): Minimum CHM value for a valid treetop (same units as the CHM).
        height_tolerance (float): Two CHM values closer than this are treated as equal
            when resolving flat crowns.
        vws_min_window (float): Window diameter at zero height, in map units ("vws").
        vws_distance_scale (float): Window growth per unit of height ** vws_power ("vws").
        vws_power (float): Exponent applied to height in the window formula ("vws").
    """
    detection_method: str = "lmf"
    window_size: float = 5.0
    min_height: float = 2.0
    height_tolerance: float = 1e-3
    vws_min_window: float = 3.0
    vws_distance_scale: float = 0.12
    vws_power: float = 1.0

    def validate(self):
        if self.detection_method not in ("lmf", "vws"):
            raise ParameterError(f"Unknown detection method: {self.detection_method}")
        if not self.window_size > 0:
            raise ParameterError(f"Search window size must be positive, got {self.window_size}")
        if self.height_tolerance < 0:
            raise ParameterError(f"height_tolerance must be non-negative, got {self.height_tolerance}")
        if not self.vws_min_window > 0 or self.vws_distance_scale < 0:
            raise ParameterError("Variable window parameters must be positive")

def _window_pixels(window_size: float, resolution: float) -> int:
    """
    Converts a window side in map units into an odd pixel count of at least 3.
    """
    px = int(round(window_size / resolution))
    if px % 2 == 0:
        px += 1
    return max(3, px)

@jit(nopython=True, cache=True)
def _suppress_equal_neighbors(
    rows: np.ndarray,
    cols: np.ndarray,
    heights: np.ndarray,
    shape_r: int,
    shape_c: int,
    half_window: int,
    tolerance: float
    ) -> np.ndarray:
    """
    Drops candidates that share their height with an already accepted top inside the window.

    Candidates must arrive sorted by descending height. Because of that order, the
    lowest height claimed on a cell so far is the only one an incoming candidate
    can tie with, so a single claim grid is enough.

    Returns:
        np.ndarray: Boolean keep-mask aligned with the inputs.
    """
    claimed = np.full((shape_r, shape_c), np.inf)
    keep = np.zeros(rows.size, dtype=np.bool_)

    for i in range(rows.size):
        r = rows[i]
        c = cols[i]
        h = heights[i]
        if abs(claimed[r, c] - h) <= tolerance:
            continue

        keep[i] = True
        r_min = max(0, r - half_window)
        r_max = min(shape_r, r + half_window + 1)
        c_min = max(0, c - half_window)
        c_max = min(shape_c, c + half_window + 1)
        for ir in range(r_min, r_max):
            for ic in range(c_min, c_max):
                if h < claimed[ir, ic]:
                    claimed[ir, ic] = h

    return keep

def _plateau_representatives(
    candidates: np.ndarray,
    chm: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
    """
    Collapses 8-connected groups of candidate cells to one cell each.

    The representative is the highest cell of the group, so it is always its window
    maximum. Equal heights go to the cell closest to the group's centroid, then to
    row-major order, so a flat crown yields a single apex near its middle.
    """
    labels, n = ndimage.label(candidates, structure=np.ones((3, 3), dtype=int))
    if n == 0:
        return np.array([], dtype=np.int64), np.array([], dtype=np.int64)

    rr, cc = np.nonzero(labels)
    lab = labels[rr, cc]
    centroids = np.array(ndimage.center_of_mass(candidates.astype(np.float64), labels, np.arange(1, n + 1)))
    dist = np.hypot(rr - centroids[lab - 1, 0], cc - centroids[lab - 1, 1])

    # rr/cc are already row-major, so a stable sort on (label, height, distance) keeps that tie-break
    order = np.lexsort((dist, -chm[rr, cc], lab))
    _, first = np.unique(lab[order], return_index=True)
    pick = order[first]
    return rr[pick], cc[pick]

def _detect_peaks_lmf(
    chm: np.ndarray,
    window_px: int,
    params: DetectionParams
    ) -> Tuple[np.ndarray, np.ndarray]:
    """
    Detect treetop peaks utilizing a static Local Maximum Filter (LMF).

    Steps:
        1. Runs a square maximum filter of `window_px` cells over the CHM.
        2. Marks cells equal (within `height_tolerance`) to their window maximum and
           at or above `min_height` as candidates.
        3. Collapses every connected flat group of candidates to one representative.
        4. Visits representatives tallest first and drops any that ties in height with
           an accepted top less than one window away, so two separated cells of one
           flat crown do not both survive.

    Args:
        chm (np.ndarray): 2D CHM with invalid cells set to -inf.
        window_px (int): Odd window side in pixels.
        params (DetectionParams): Configuration object.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Row and column indices of accepted peaks,
        tallest first, ties in row-major order.
    """
    local_max = ndimage.maximum_filter(chm, size=window_px, mode='constant', cval=-np.inf)
    candidates = (chm >= local_max - params.height_tolerance) & (chm >= params.min_height) & np.isfinite(chm)

    peaks_r, peaks_c = _plateau_representatives(candidates, chm)
    if peaks_r.size == 0:
        return peaks_r, peaks_c

    heights = chm[peaks_r, peaks_c]
    order = np.lexsort((peaks_c, peaks_r, -heights))
    peaks_r, peaks_c, heights = peaks_r[order], peaks_c[order], heights[order]

    keep = _suppress_equal_neighbors(
        peaks_r, peaks_c, heights,
        chm.shape[0], chm.shape[1],
        window_px // 2,
        params.height_tolerance
    )
    return peaks_r[keep], peaks_c[keep]

@jit(nopython=True, cache=True)
def _detect_peaks_vws(
    chm: np.ndarray,
    base_dist_px: float,
    height_scale_px: float,
    threshold_abs: float,
    power: float
    ):
    """
    Detect treetop peaks using a Variable Window Smoothing (VWS) spatial inhibition algorithm.

    Taller trees have wider crowns, so the exclusion radius grows with height.

    Steps:
        1. Collects every finite pixel at or above `threshold_abs`.
        2. Sorts them by descending elevation (stable, so ties stay in row-major order).
        3. Walks the sorted list; a pixel already inside an exclusion zone is skipped,
           otherwise it becomes a peak and flags every pixel within
           base_distance + height ** power * scale as excluded.

    Args:
        chm (np.ndarray): 2D array representing the canopy height model.
        base_dist_px (float): Base exclusion radius in pixels.
        height_scale_px (float): Radius growth in pixels per unit of height ** power.
        threshold_abs (float): Minimum height threshold for valid candidates.
        power (float): Exponent dictating how aggressively the window scales with height.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Row and column indices of detected peaks.
    """
    rows, cols = chm.shape
    flat_chm = chm.ravel()

    valid_count = 0
    for i in range(flat_chm.size):
        if np.isfinite(flat_chm[i]) and flat_chm[i] >= threshold_abs:
            valid_count += 1

    valid_idxs = np.empty(valid_count, dtype=np.int64)
    valid_vals = np.empty(valid_count, dtype=np.float64)
    idx_c = 0
    for i in range(flat_chm.size):
        if np.isfinite(flat_chm[i]) and flat_chm[i] >= threshold_abs:
            valid_idxs[idx_c] = i
            valid_vals[idx_c] = -flat_chm[i]
            idx_c += 1

    sort_order = np.argsort(valid_vals, kind='mergesort')
    sorted_idxs = valid_idxs[sort_order]

    peaks_r = np.empty(valid_count, dtype=np.int64)
    peaks_c = np.empty(valid_count, dtype=np.int64)
    n_peaks = 0
    mask = np.zeros((rows, cols), dtype=np.int8)

    for idx in sorted_idxs:
        r = idx // cols
        c = idx % cols
        if mask[r, c] == 1:
            continue

        peaks_r[n_peaks] = r
        peaks_c[n_peaks] = c
        n_peaks += 1
        peak_height = chm[r, c]

        dynamic_dist_px = base_dist_px + ((peak_height ** power) * height_scale_px)
        dynamic_dist_sq = dynamic_dist_px ** 2

        r_min = max(0, int(r - dynamic_dist_px))
        r_max = min(rows, int(r + dynamic_dist_px + 1))
        c_min = max(0, int(c - dynamic_dist_px))
        c_max = min(cols, int(c + dynamic_dist_px + 1))

        for ir in range(r_min, r_max):
            for ic in range(c_min, c_max):
                if mask[ir, ic] == 0 and (ir - r)**2 + (ic - c)**2 <= dynamic_dist_sq:
                    mask[ir, ic] = 1

    return peaks_r[:n_peaks], peaks_c[:n_peaks]

def detect_treetops(
    chm: Raster,
    params: DetectionParams = DetectionParams()
    ) -> List[TreeTop]:
    """
    Detects treetop locations from a canopy height model (CHM).

    Steps:
        1. Masks nodata cells so they never become, or suppress, a peak.
        2. Routes the CHM to the configured detection function (LMF or VWS).
        3. Projects pixel indices to cell-centre map coordinates via the raster's
           affine transform.
        4. Numbers the tops 1..n, tallest first, ties in row-major order.

    Args:
        chm (Raster): Canopy height model.
        params (DetectionParams): Parameters dictating the active treetop detection algorithm.

    Returns:
        List[TreeTop]: Detected tops, every one at or above `params.min_height`.

    Raises:
        ParameterError: If the parameters are out of range.
    """
    params.validate()

    arr = chm.get_band(1).astype(np.float64)
    arr = np.where(chm.valid_mask(), arr, -np.inf)
    if not np.any(np.isfinite(arr)):
        log.warning("Canopy height model holds no valid cells; no treetops detected")
        return []

    resolution = chm.resolution
    if params.detection_method == "lmf":
        window_px = _window_pixels(params.window_size, resolution)
        peaks_r, peaks_c = _detect_peaks_lmf(arr, window_px, params)
    else:
        peaks_r, peaks_c = _detect_peaks_vws(
            arr,
            params.vws_min_window / 2.0 / resolution,
            params.vws_distance_scale / 2.0 / resolution,
            params.min_height,
            params.vws_power
        )

    tops = []
    for tree_id, (r, c) in enumerate(zip(peaks_r, peaks_c), start=1):
        x, y = chm.cell_center(int(r), int(c))
        tops.append(TreeTop(tree_id=tree_id, x=x, y=y, height=float(arr[r, c])))

    if not tops:
        log.warning(f"No treetops at or above min_height={params.min_height}")
    else:
        log.info(f"Detected {len(tops)} treetops ({params.detection_method})")
    return tops
