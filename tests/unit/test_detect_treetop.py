# tests/unit/test_detect_treetop.py

import pytest
import numpy as np

from canopyscan.exceptions import ParameterError
from canopyscan.lidar import DetectionParams, detect_treetops
from canopyscan.lidar.detect_treetop import _window_pixels

def test_window_pixels_is_odd_and_at_least_three():
    assert _window_pixels(5.0, 1.0) == 5
    assert _window_pixels(4.0, 1.0) == 5
    assert _window_pixels(5.0, 2.0) == 3
    assert _window_pixels(0.5, 1.0) == 3

def test_lmf_finds_each_crown(bumps_chm):
    """
    Module: lidar.detect_treetop
    Function: detect_treetops
    Test: one top per isolated crown, numbered tallest first, at the crown's cell centre.
    """
    tops = detect_treetops(bumps_chm, DetectionParams(window_size=5.0, min_height=2.0))

    assert [t.tree_id for t in tops] == [1, 2, 3]
    assert [t.height for t in tops] == pytest.approx([30.0, 25.0, 20.0], abs=1e-6)
    # cell (row 45, col 30) of a 60-row grid anchored at y=60
    assert (tops[0].x, tops[0].y) == (30.5, 14.5)
    assert (tops[1].x, tops[1].y) == (45.5, 44.5)
    assert (tops[2].x, tops[2].y) == (15.5, 44.5)

def test_lmf_respects_min_height(bumps_chm):
    tops = detect_treetops(bumps_chm, DetectionParams(min_height=22.0))
    assert len(tops) == 2
    assert all(t.height >= 22.0 for t in tops)

def test_lmf_tops_are_window_maxima(forest_cloud):
    from canopyscan.lidar import generate_chm
    chm = generate_chm(forest_cloud)
    band = chm.get_band(1)
    tops = detect_treetops(chm, DetectionParams(window_size=5.0, min_height=105.0))

    for t in tops:
        row = int((chm.transform.f - t.y) // chm.resolution)
        col = int((t.x - chm.transform.c) // chm.resolution)
        window = band[max(0, row - 2):row + 3, max(0, col - 2):col + 3]
        assert t.height == band[row, col]
        assert t.height >= window.max()

def test_flat_crown_yields_one_top(chm_factory):
    arr = np.zeros((20, 20))
    arr[8:11, 8:11] = 12.0
    tops = detect_treetops(chm_factory(arr), DetectionParams(window_size=5.0))

    assert len(tops) == 1
    assert (tops[0].x, tops[0].y) == (9.5, 10.5)

def test_flat_crown_top_is_its_highest_cell(chm_factory):
    """A plateau cell within the height tolerance but slightly higher wins over the centre."""
    arr = np.zeros((20, 20))
    arr[8:11, 8:11] = 12.0
    arr[8, 10] = 12.0005
    tops = detect_treetops(chm_factory(arr), DetectionParams(window_size=5.0))

    assert len(tops) == 1
    assert tops[0].height == 12.0005
    assert (tops[0].x, tops[0].y) == (10.5, 11.5)

def test_equal_neighbours_inside_window_deduplicated(chm_factory):
    """Two separate cells of equal height, two cells apart."""
    arr = np.zeros((20, 20))
    arr[10, 10] = 15.0
    arr[10, 12] = 15.0

    wide = detect_treetops(chm_factory(arr), DetectionParams(window_size=5.0))
    assert len(wide) == 1
    # row-major tie-break keeps the first cell
    assert wide[0].x == 10.5

    narrow = detect_treetops(chm_factory(arr), DetectionParams(window_size=3.0))
    assert len(narrow) == 2

def test_nodata_cells_never_become_tops(chm_factory):
    arr = np.full((10, 10), 5.0)
    arr[2, 2] = -9999.0
    arr[7, 7] = 8.0
    tops = detect_treetops(chm_factory(arr), DetectionParams(window_size=3.0))

    assert len(tops) >= 1
    assert tops[0].height == 8.0
    assert all(t.height > 0 for t in tops)

def test_all_nodata_chm_gives_no_tops(chm_factory):
    arr = np.full((4, 4), -9999.0)
    assert detect_treetops(chm_factory(arr)) == []

def test_nothing_above_min_height(bumps_chm):
    assert detect_treetops(bumps_chm, DetectionParams(min_height=100.0)) == []

def test_vws_finds_each_crown(bumps_chm):
    params = DetectionParams(detection_method="vws", min_height=2.0, vws_min_window=20.0, vws_distance_scale=0.12)
    tops = detect_treetops(bumps_chm, params)

    assert len(tops) == 3
    assert [t.height for t in tops] == pytest.approx([30.0, 25.0, 20.0], abs=1e-6)
    assert (tops[0].x, tops[0].y) == (30.5, 14.5)

@pytest.mark.parametrize("params", [
    DetectionParams(detection_method="watershed"),
    DetectionParams(window_size=0.0),
    DetectionParams(height_tolerance=-1.0),
])
def test_invalid_params(bumps_chm, params):
    with pytest.raises(ParameterError):
        detect_treetops(bumps_chm, params)
