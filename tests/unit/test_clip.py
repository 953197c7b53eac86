# tests/unit/test_clip.py

import pytest
import numpy as np

from canopyscan.exceptions import GeometryError, ParameterError
from canopyscan.lidar import PointCloud, clip_to_aoi, filter_elevation
from canopyscan.vector import AreaOfInterest

UTM = "EPSG:32619"

@pytest.fixture
def mixed_cloud():
    """Four points inside the unit-10 square, two outside, one on its edge, one on a corner."""
    x = [1.0, 5.0, 9.0, 5.0, -1.0, 11.0, 10.0, 0.0]
    y = [1.0, 5.0, 9.0, 5.0, 5.0, 5.0, 5.0, 0.0]
    z = [10.0, 20.0, 30.0, 40.0, 20.0, 20.0, 25.0, 15.0]
    return PointCloud(x=x, y=y, z=z, crs=UTM)

@pytest.fixture
def square():
    return AreaOfInterest.from_bounds(0, 0, 10, 10, crs=UTM)

def test_clip_keeps_inside_and_boundary(mixed_cloud, square):
    clipped = clip_to_aoi(mixed_cloud, square)

    kept = set(zip(clipped.x.tolist(), clipped.y.tolist(), clipped.z.tolist()))
    assert kept == {
        (1.0, 1.0, 10.0), (5.0, 5.0, 20.0), (9.0, 9.0, 30.0), (5.0, 5.0, 40.0),
        (10.0, 5.0, 25.0), (0.0, 0.0, 15.0)
    }
    assert clipped.crs == mixed_cloud.crs

def test_clip_elevation_band_is_inclusive(mixed_cloud, square):
    clipped = clip_to_aoi(mixed_cloud, square, z_min=20.0, z_max=30.0)
    assert sorted(clipped.z.tolist()) == [20.0, 25.0, 30.0]

def test_clip_output_is_subset_and_input_untouched(mixed_cloud, square):
    before = mixed_cloud.x.copy()
    clipped = clip_to_aoi(mixed_cloud, square, z_min=12.0)

    assert len(clipped) <= len(mixed_cloud)
    source = set(zip(mixed_cloud.x.tolist(), mixed_cloud.y.tolist(), mixed_cloud.z.tolist()))
    assert set(zip(clipped.x.tolist(), clipped.y.tolist(), clipped.z.tolist())) <= source
    np.testing.assert_array_equal(mixed_cloud.x, before)

def test_clip_disjoint_polygon_gives_empty_cloud(mixed_cloud):
    far = AreaOfInterest.from_bounds(1000, 1000, 1010, 1010, crs=UTM)
    clipped = clip_to_aoi(mixed_cloud, far)
    assert clipped.is_empty
    assert clipped.crs == mixed_cloud.crs

def test_clip_inverted_band(mixed_cloud, square):
    with pytest.raises(ParameterError):
        clip_to_aoi(mixed_cloud, square, z_min=30.0, z_max=10.0)

def test_clip_concave_polygon():
    """Points in the notch of an L-shaped polygon are dropped."""
    pc = PointCloud(x=[2.0, 8.0, 2.0, 8.0], y=[2.0, 2.0, 8.0, 8.0], z=[1.0, 1.0, 1.0, 1.0], crs=UTM)
    l_shape = AreaOfInterest(
        vertices=[(0, 0), (10, 0), (10, 5), (5, 5), (5, 10), (0, 10), (0, 0)],
        crs=UTM
    )
    clipped = clip_to_aoi(pc, l_shape)
    assert sorted(zip(clipped.x.tolist(), clipped.y.tolist())) == [(2.0, 2.0), (2.0, 8.0), (8.0, 2.0)]

def test_clip_reprojects_aoi():
    """An AOI drawn in geographic coordinates crops a projected cloud."""
    cx, cy = 500000.0, 5000000.0
    pc = PointCloud(
        x=[cx, cx + 40.0, cx + 500.0],
        y=[cy, cy - 40.0, cy + 500.0],
        z=[1.0, 2.0, 3.0],
        crs=UTM
    )
    aoi = AreaOfInterest.from_bounds(cx - 100, cy - 100, cx + 100, cy + 100, crs=UTM).to_crs("EPSG:4326")

    clipped = clip_to_aoi(pc, aoi)
    assert sorted(clipped.z.tolist()) == [1.0, 2.0]

def test_clip_crs_declared_on_one_side_only(mixed_cloud):
    undeclared = AreaOfInterest.from_bounds(0, 0, 10, 10)
    with pytest.raises(GeometryError):
        clip_to_aoi(mixed_cloud, undeclared)

def test_clip_shared_local_frame():
    pc = PointCloud(x=[1.0, 20.0], y=[1.0, 20.0], z=[1.0, 1.0])
    clipped = clip_to_aoi(pc, AreaOfInterest.from_bounds(0, 0, 10, 10))
    assert clipped.x.tolist() == [1.0]

def test_filter_elevation(mixed_cloud):
    band = filter_elevation(mixed_cloud, 20.0, 25.0)
    assert sorted(band.z.tolist()) == [20.0, 20.0, 20.0, 25.0]
