# tests/conftest.py

import pytest
import numpy as np
import yaml
from rasterio.transform import Affine

from canopyscan.lidar import PointCloud
from canopyscan.raster import Raster
from canopyscan.vector import AreaOfInterest

from helpers import make_forest_points, write_las

UTM = "EPSG:32619"

@pytest.fixture
def flat_cloud():
    """
    100 returns scattered over a 50 x 50 square, all at elevation 195.
    A perfectly flat canopy.
    """
    rng = np.random.default_rng(42)
    x = rng.uniform(0.5, 49.5, 100)
    y = rng.uniform(0.5, 49.5, 100)
    z = np.full(100, 195.0)
    return PointCloud(x=x, y=y, z=z, crs=UTM)

@pytest.fixture
def square_aoi():
    """The 50 x 50 square covering `flat_cloud`."""
    return AreaOfInterest.from_bounds(0.0, 0.0, 50.0, 50.0, crs=UTM)

@pytest.fixture
def forest_cloud():
    """Dense grid of returns over a 60 x 60 plot holding 14 conical crowns."""
    x, y, z = make_forest_points()
    return PointCloud(x=x, y=y, z=z, crs=UTM)

@pytest.fixture
def forest_las(tmp_path):
    """The synthetic forest written to a LAS file that declares its CRS."""
    x, y, z = make_forest_points()
    return write_las(tmp_path / "forest.las", x, y, z, crs=UTM)

@pytest.fixture
def forest_config(tmp_path, forest_las):
    """
    YAML configuration for the forest plot, with a relative input path.
    The 0.6 quantile (123) keeps exactly the six tall eastern crowns.
    """
    payload = {
        "input_path": forest_las.name,
        "percentile": 0.6,
        "region": {
            "vertices": [[0, 0], [60, 0], [60, 60], [0, 60], [0, 0]],
            "crs": UTM,
            "z_min": 90,
            "z_max": 200
        },
        "canopy": {"resolution": 1.0},
        "detection": {"window_size": 5, "min_height": 105},
        "cluster": {"eps": 12, "min_pts": 3}
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(payload))
    return path

@pytest.fixture
def chm_factory():
    """
    Factory building a north-up single band CHM Raster from a 2D array,
    with 1-unit cells and its top-left corner at (0, rows).
    """
    def _create(arr, resolution=1.0, nodata=-9999.0, crs=UTM):
        arr = np.asarray(arr, dtype=np.float64)
        transform = Affine.translation(0.0, arr.shape[0] * resolution) * Affine.scale(resolution, -resolution)
        return Raster(data=arr, transform=transform, crs=crs, nodata=nodata, band_names={"CHM": 1})
    return _create

@pytest.fixture
def bumps_chm(chm_factory):
    """60 x 60 CHM holding three isolated gaussian crowns of heights 20, 25 and 30."""
    rr, cc = np.mgrid[0:60, 0:60]
    arr = np.zeros((60, 60))
    for r, c, h in [(15, 15, 20.0), (15, 45, 25.0), (45, 30, 30.0)]:
        arr += h * np.exp(-((rr - r) ** 2 + (cc - c) ** 2) / (2 * 3.0 ** 2))
    return chm_factory(arr)
