# tests/test_basics.py
import pytest

import canopyscan
from canopyscan import lidar, raster, vector, exceptions
from canopyscan.lidar import TreeTop, ClusteredTree

def test_imports():
    """Simple smoke test to ensure modules import correctly."""
    assert lidar is not None
    assert raster is not None
    assert vector is not None
    assert canopyscan.__version__

def test_public_api():
    for name in ["load_config", "run_pipeline", "write_outputs", "PipelineConfig"]:
        assert hasattr(canopyscan, name)
    for name in lidar.__all__:
        assert hasattr(lidar, name)

def test_error_hierarchy():
    """Every pipeline error can be caught with the package base class."""
    for err in [
        exceptions.InputError,
        exceptions.OutputError,
        exceptions.GeometryError,
        exceptions.ParameterError,
        exceptions.InsufficientTreesError,
        exceptions.RasterValidationError
    ]:
        assert issubclass(err, exceptions.CanopyScanError)
    assert issubclass(exceptions.ParameterError, ValueError)

def test_tree_records_are_frozen():
    top = TreeTop(tree_id=1, x=2.0, y=3.0, height=18.5)
    with pytest.raises(AttributeError):
        top.height = 20.0

    tree = ClusteredTree(tree_id=1, x=2.0, y=3.0, height=18.5, cluster=0)
    assert tree.is_noise
    assert not ClusteredTree(2, 0.0, 0.0, 1.0, 3).is_noise
