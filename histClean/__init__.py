"""
histClean: History Period Cleaning for Raster Time Series
=========================================================

A Python package for removing implausible observations from the history
period of satellite image time series ahead of change monitoring.

Core Functionality
------------------
- `clean_history`: Filter history-period values using a static or per-pixel IQR threshold
- `resolve_dates`: Determine layer acquisition dates (explicit, coordinate or Landsat scene IDs)
- `apply_pixelwise`: Default engine applying a function to every pixel time series

Example
-------
>>> import xarray as xr
>>> import histClean
>>> ndvi = xr.open_zarr('ndvi_stack.zarr', chunks={}).ndvi
>>> cleaned = histClean.clean_history(ndvi, monitoring_period=(2009, 1), threshold="IQR")
"""

from .clean import (
    IQR_THRESHOLD,
    build_history_predicate,
    clean_history,
    history_mask,
    history_thresholds,
    monitoring_cutoff,
    pixel_threshold,
)
from .dates import get_scene_info, is_landsat_scene_id, resolve_dates
from .exceptions import (
    ConfigurationError,
    DataValidationError,
    DateLengthMismatchError,
    HistCleanError,
    MissingDateSourceError,
    ProcessingError,
    create_data_validation_error,
    create_processing_error,
)
from .helper import apply_pixelwise, configure_dask, write_to_zarr
from .logging_config import configure_logging, get_logger, get_verbosity_level

__all__ = [
    # History cleaning
    "clean_history",
    "build_history_predicate",
    "monitoring_cutoff",
    "history_mask",
    "history_thresholds",
    "pixel_threshold",
    "IQR_THRESHOLD",
    # Dates
    "resolve_dates",
    "get_scene_info",
    "is_landsat_scene_id",
    # Engine & Dask helpers
    "apply_pixelwise",
    "write_to_zarr",
    "configure_dask",
    # Exception hierarchy
    "HistCleanError",
    "DataValidationError",
    "MissingDateSourceError",
    "DateLengthMismatchError",
    "ConfigurationError",
    "ProcessingError",
    "create_data_validation_error",
    "create_processing_error",
    # Logging configuration
    "configure_logging",
    "get_verbosity_level",
    "get_logger",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("histClean")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "unknown"
