# src/canopyscan/config.py

"""
This module defines the pipeline configuration and its YAML loader.

Every parameter is checked by `PipelineConfig.validate()` before any stage runs.
"""

from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import numbers

import yaml

from canopyscan.exceptions import InputError, ParameterError
from canopyscan.lidar.cluster import ClusterParams
from canopyscan.lidar.detect_treetop import DetectionParams
from canopyscan.lidar.generate_model import CanopyParams
from canopyscan.lidar.select import DEFAULT_PERCENTILE
from canopyscan.vector.aoi import AreaOfInterest

log = logging.getLogger(__name__)

__all__ = [
    "RegionConfig",
    "PipelineConfig",
    "load_config"
]

@dataclass
class RegionConfig:
    """
    Area of interest and elevation band of the region filter.

    Args:
        vertices (Optional[List[Tuple[float, float]]]): Closed polygon ring. Mutually exclusive with `aoi_path`.
        aoi_path (Optional[str]): Vector file holding the polygon.
        crs (Optional[str]): CRS of `vertices`. Ignored for `aoi_path`, whose file declares its own.
        z_min (float): Lower elevation bound, inclusive.
        z_max (float): Upper elevation bound, inclusive.
    """
    vertices: Optional[List[Tuple[float, float]]] = None
    aoi_path: Optional[str] = None
    crs: Optional[str] = None
    z_min: float = float("-inf")
    z_max: float = float("inf")

    def validate(self):
        if (self.vertices is None) == (self.aoi_path is None):
            raise ParameterError("Exactly one of region.vertices and region.aoi_path must be given")
        if self.z_min > self.z_max:
            raise ParameterError(f"Elevation band is inverted: z_min={self.z_min} > z_max={self.z_max}")

    def build_aoi(self) -> AreaOfInterest:
        if self.aoi_path is not None:
            return AreaOfInterest.from_file(self.aoi_path)
        return AreaOfInterest(vertices=tuple(tuple(v) for v in self.vertices), crs=self.crs)

@dataclass
class PipelineConfig:
    """
    Complete parameter set of one canopy analysis run.

    Args:
        input_path (Optional[str]): LAS/LAZ file to analyse.
        crs (Optional[str]): Fallback CRS for a point cloud whose header declares none.
        percentile (float): Quantile isolating the tallest trees.
        output_crs (str): Geographic CRS used for exported tree layers.
        region (RegionConfig): Region filter settings.
        canopy (CanopyParams): CHM settings.
        detection (DetectionParams): Treetop detection settings.
        cluster (ClusterParams): DBSCAN settings.
    """
    input_path: Optional[str] = None
    crs: Optional[str] = None
    percentile: float = DEFAULT_PERCENTILE
    output_crs: str = "EPSG:4326"
    region: RegionConfig = field(default_factory=RegionConfig)
    canopy: CanopyParams = field(default_factory=CanopyParams)
    detection: DetectionParams = field(default_factory=DetectionParams)
    cluster: ClusterParams = field(default_factory=ClusterParams)

    def validate(self) -> 'PipelineConfig':
        """
        Rejects every out-of-domain parameter.

        Raises:
            ParameterError: On the first invalid value found.
        """
        try:
            if not 0 < self.percentile < 1:
                raise ParameterError(f"percentile must lie in (0, 1), got {self.percentile}")
            self.region.validate()
            self.canopy.validate()
            self.detection.validate()
            self.cluster.validate()
        except ParameterError:
            raise
        except (TypeError, ValueError) as e:
            raise ParameterError(f"Invalid configuration value: {e}") from e
        return self

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'PipelineConfig':
        """
        Builds a configuration from nested dictionaries (as parsed from YAML).

        Raises:
            ParameterError: On unknown keys, a non-mapping section or a value of the wrong type.
        """
        payload = dict(payload or {})
        sections = {
            "region": RegionConfig,
            "canopy": CanopyParams,
            "detection": DetectionParams,
            "cluster": ClusterParams
        }

        kwargs = {}
        for name, section_cls in sections.items():
            if name in payload:
                kwargs[name] = _build_section(section_cls, payload.pop(name), name)

        kwargs.update(_check_keys(cls, payload, "pipeline", exclude=set(sections)))
        return cls(**kwargs)

def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)

def _coerce_value(value: Any, default: Any, key: str, section: str) -> Any:
    """
    Checks a parsed value against the type of the field default.

    Numbers become floats where the default is a float and sequences become
    tuples of floats (YAML has no tuples). Fields defaulting to None are passed
    through unchecked.
    """
    if default is None or default is MISSING:
        return value

    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, (int, float)):
        ok = _is_number(value)
    elif isinstance(default, tuple):
        ok = isinstance(value, (list, tuple)) and all(_is_number(v) for v in value)
    else:
        ok = isinstance(value, type(default))

    if not ok:
        raise ParameterError(
            f"'{section}.{key}' expects a {type(default).__name__}, got {type(value).__name__} {value!r}"
        )

    if isinstance(default, tuple):
        return tuple(float(v) for v in value)
    if isinstance(default, float):
        return float(value)
    return value

def _check_keys(target_cls, payload: Dict[str, Any], section: str, exclude=frozenset()) -> Dict[str, Any]:
    defaults = {f.name: f.default for f in fields(target_cls) if f.name not in exclude}
    unknown = set(payload) - set(defaults)
    if unknown:
        raise ParameterError(f"Unknown key(s) in '{section}' section: {sorted(unknown)}")
    return {key: _coerce_value(value, defaults[key], key, section) for key, value in payload.items()}

def _build_section(section_cls, payload: Any, section: str):
    if payload is None:
        return section_cls()
    if not isinstance(payload, dict):
        raise ParameterError(f"Section '{section}' must be a mapping, got {type(payload).__name__}")
    return section_cls(**_check_keys(section_cls, payload, section))

def load_config(config_path: Union[str, Path]) -> PipelineConfig:
    """
    Reads and validates a YAML pipeline configuration.

    Relative `input_path` and `region.aoi_path` entries are resolved against the
    directory holding the configuration file.

    Raises:
        InputError: If the file is missing or not valid YAML.
        ParameterError: If a value is invalid.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise InputError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as file:
            payload = yaml.safe_load(file)
    except yaml.YAMLError as e:
        raise InputError(f"Invalid YAML in {config_path}: {e}") from e

    if payload is not None and not isinstance(payload, dict):
        raise ParameterError(f"{config_path} must hold a mapping at the top level")

    config = PipelineConfig.from_dict(payload or {})
    base = config_path.parent
    if config.input_path and not Path(config.input_path).is_absolute():
        config.input_path = str(base / config.input_path)
    if config.region.aoi_path and not Path(config.region.aoi_path).is_absolute():
        config.region.aoi_path = str(base / config.region.aoi_path)

    log.debug(f"Loaded configuration from {config_path}")
    return config.validate()
