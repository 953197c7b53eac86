# src/canopyscan/exceptions.py

"""
Exception hierarchy shared by every stage of the canopy analysis pipeline.

Errors are fatal and propagate unchanged to the caller. Empty intermediate
results (no points left after clipping, no treetops detected) are not errors;
they are logged and passed downstream as valid empty values.
"""

__all__ = [
    "CanopyScanError",
    "InputError",
    "OutputError",
    "GeometryError",
    "ParameterError",
    "InsufficientTreesError",
    "RasterValidationError"
]

class CanopyScanError(Exception):
    """Base class for all canopyscan errors."""

class InputError(CanopyScanError):
    """Input file is missing, unreadable, or lacks coordinate reference metadata."""

class OutputError(CanopyScanError, OSError):
    """An output product cannot be written."""

class GeometryError(CanopyScanError):
    """Area of interest is malformed, or two CRSs cannot be reconciled."""

class ParameterError(CanopyScanError, ValueError):
    """A configuration value is out of its valid domain."""

class InsufficientTreesError(CanopyScanError):
    """Fewer than two treetops are available, so a height percentile is undefined."""

class RasterValidationError(CanopyScanError):
    """Raster array or georeferencing is structurally invalid."""
