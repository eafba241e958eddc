"""
histClean-Clean: History Period Filtering of Raster Time Series
===============================================================

Removes implausible observations from the history period of a raster time
series before change monitoring (e.g. BFAST Monitor). Values beyond a static
threshold, or beyond a per-pixel threshold derived from the median and
interquartile range (IQR) of that pixel's time series, are set to NaN. Layers
acquired on or after the start of the monitoring period are never modified.

Threshold rules:

* numeric, ``is_max=False``: history values below the threshold are removed
* numeric, ``is_max=True``: history values above the threshold are removed
* ``"IQR"``, ``is_max=False``: threshold is ``median - IQR`` per pixel
* ``"IQR"``, ``is_max=True``: threshold is ``median + IQR`` per pixel
"""

import datetime
import functools
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from .dates import resolve_dates
from .exceptions import ConfigurationError, create_data_validation_error
from .helper import apply_pixelwise
from .logging_config import configure_logging, get_logger, log_dask_info, log_timing

logger = get_logger(__name__)

IQR_THRESHOLD = "IQR"

ThresholdSpec = Union[float, int, str]
MonitoringPeriod = Union[Tuple[int, int], Sequence[int], str, datetime.date, pd.Timestamp, None]


# ============================
# Validation Functions
# ============================


def _validate_cube(cube: xr.DataArray, time_dim: str) -> None:
    """Check the cube is a DataArray with a time dimension."""
    if not isinstance(cube, xr.DataArray):
        raise create_data_validation_error(
            "Input must be an xarray.DataArray",
            details=f"Got {type(cube).__name__}",
            suggestions=["Wrap numpy arrays: xr.DataArray(arr, dims=('time', 'lat', 'lon'))"],
            data_info={"data_type": type(cube).__name__},
        )

    if time_dim not in cube.dims:
        raise create_data_validation_error(
            f"Missing time dimension '{time_dim}'",
            details=f"Cube has dimensions: {list(cube.dims)}",
            suggestions=[
                "Update the 'dimensions' parameter to match your data structure",
                "Example: dimensions={'time': 'band'}",
            ],
            data_info={"available_dimensions": list(cube.dims), "time_dimension": time_dim},
        )


def _validate_threshold(threshold: ThresholdSpec) -> ThresholdSpec:
    """Normalise the threshold to a float or the IQR sentinel."""
    if isinstance(threshold, str):
        if threshold.upper() == IQR_THRESHOLD:
            return IQR_THRESHOLD
    elif isinstance(threshold, (int, float, np.integer, np.floating)) and not isinstance(threshold, (bool, np.bool_)):
        if not np.isnan(threshold):
            return float(threshold)

    raise ConfigurationError(
        "Invalid threshold",
        details="threshold must be a finite number or the string 'IQR'",
        suggestions=["Use a static value, e.g. threshold=0.1", "Use threshold='IQR' for a per-pixel threshold"],
        context={"provided_value": threshold},
    )


# ============================
# Monitoring Period
# ============================


def monitoring_cutoff(monitoring_period: MonitoringPeriod) -> Optional[pd.Timestamp]:
    """
    Convert a monitoring period start into a cutoff date.

    Parameters
    ----------
    monitoring_period : (int, int), str, date or None
        Start of the monitoring period as ``(year, day_of_year)`` with day 1
        being 1 January. Dates and date strings are used as is. ``None``
        means there is no monitoring period.

    Returns
    -------
    pandas.Timestamp or None
        First day of the monitoring period, or ``None`` when every layer
        belongs to the history period.

    Examples
    --------
    >>> monitoring_cutoff((2001, 1))
    Timestamp('2001-01-01 00:00:00')
    >>> monitoring_cutoff((2004, 60))
    Timestamp('2004-02-29 00:00:00')
    """
    if monitoring_period is None:
        return None

    if isinstance(monitoring_period, (str, datetime.date, pd.Timestamp, np.datetime64)):
        return pd.Timestamp(monitoring_period)

    try:
        year, doy = monitoring_period
        year, doy = _as_int(year), _as_int(doy)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            "Invalid monitoring period",
            details="monitoring_period must be a (year, day_of_year) pair of integers",
            suggestions=["Example: monitoring_period=(2005, 1)"],
            context={"provided_value": monitoring_period},
        ) from e

    start_of_year = pd.Timestamp(year=year, month=1, day=1)
    n_days = 366 if start_of_year.is_leap_year else 365
    if not 1 <= doy <= n_days:
        raise ConfigurationError(
            "Invalid monitoring period",
            details=f"day of year must be between 1 and {n_days} for {year}",
            context={"provided_value": monitoring_period},
        )

    return start_of_year + pd.Timedelta(days=doy - 1)


def _as_int(value) -> int:
    if isinstance(value, (bool, np.bool_)) or int(value) != value:
        raise ValueError(f"{value!r} is not an integer")
    return int(value)


def history_mask(dates: pd.DatetimeIndex, cutoff: Optional[pd.Timestamp]) -> np.ndarray:
    """Boolean mask of layers acquired strictly before ``cutoff``."""
    if cutoff is None:
        return np.ones(len(dates), dtype=bool)
    return np.asarray(dates < cutoff)


# ============================
# Pixel Functions
# ============================


def pixel_threshold(values: np.ndarray, threshold: ThresholdSpec, is_max: bool = False) -> float:
    """
    Threshold applying to one pixel time series.

    For a numeric ``threshold`` this is the threshold itself. For ``"IQR"``
    it is the median of the non-missing values minus (floor) or plus
    (ceiling) their interquartile range, or NaN if every value is missing.
    """
    if threshold != IQR_THRESHOLD:
        return threshold

    valid = values[~np.isnan(values)]
    if valid.size == 0:
        return np.nan

    q25, median, q75 = np.percentile(valid, [25, 50, 75])
    iqr = q75 - q25
    return median + iqr if is_max else median - iqr


def _filter_pixel(values: np.ndarray, history: np.ndarray, threshold: ThresholdSpec, is_max: bool) -> np.ndarray:
    """Set history values beyond the pixel threshold to NaN."""
    out = np.array(values, dtype=np.result_type(values, np.float32), copy=True)

    local_threshold = pixel_threshold(out, threshold, is_max)
    if np.isnan(local_threshold):
        return out

    # NaN compares False, so missing values are never selected
    beyond = out > local_threshold if is_max else out < local_threshold
    out[beyond & history] = np.nan
    return out


def build_history_predicate(
    dates: pd.DatetimeIndex,
    cutoff: Optional[pd.Timestamp],
    threshold: ThresholdSpec,
    is_max: bool = False,
) -> Callable[[np.ndarray], np.ndarray]:
    """
    Build the per-pixel filter function.

    Parameters
    ----------
    dates : pandas.DatetimeIndex
        Acquisition date of each layer
    cutoff : pandas.Timestamp or None
        First day of the monitoring period; ``None`` filters every layer
    threshold : float or 'IQR'
        Static threshold or per-pixel IQR threshold
    is_max : bool, default=False
        Treat the threshold as a ceiling rather than a floor

    Returns
    -------
    callable
        Pure function mapping one pixel time series (1D array aligned to
        ``dates``) to a filtered copy. It holds no mutable state and can be
        called concurrently or pickled to worker processes.
    """
    threshold = _validate_threshold(threshold)
    history = history_mask(dates, cutoff)
    history.setflags(write=False)

    logger.debug(f"History period covers {int(history.sum())} of {len(history)} layers")

    return functools.partial(_filter_pixel, history=history, threshold=threshold, is_max=bool(is_max))


# ============================
# Diagnostics
# ============================


def history_thresholds(
    cube: xr.DataArray,
    threshold: ThresholdSpec,
    is_max: bool = False,
    time_dim: str = "time",
) -> xr.DataArray:
    """
    Per-pixel thresholds used by :func:`clean_history`.

    Parameters
    ----------
    cube : xarray.DataArray
        Raster time series (before cleaning)
    threshold : float or 'IQR'
        Threshold specification
    is_max : bool, default=False
        Ceiling (True) or floor (False)
    time_dim : str, default='time'
        Name of the layer (time) dimension

    Returns
    -------
    xarray.DataArray
        Threshold for every spatial location (NaN where an IQR threshold is
        undefined because the pixel has no valid values)
    """
    threshold = _validate_threshold(threshold)
    _validate_cube(cube, time_dim)

    if threshold != IQR_THRESHOLD:
        return xr.full_like(cube.isel({time_dim: 0}, drop=True), threshold, dtype=np.float64).rename("threshold")

    if cube.chunks is not None:
        cube = cube.chunk({time_dim: -1})

    return xr.apply_ufunc(
        functools.partial(pixel_threshold, threshold=threshold, is_max=bool(is_max)),
        cube.astype(np.float64),
        input_core_dims=[[time_dim]],
        vectorize=True,
        dask="parallelized",
        output_dtypes=[np.float64],
    ).rename("threshold")


# ============================
# Main Entry Point
# ============================


def clean_history(
    cube: xr.DataArray,
    monitoring_period: MonitoringPeriod = None,
    *,
    threshold: ThresholdSpec,
    dates: Optional[Sequence] = None,
    is_max: bool = False,
    scene_ids: Optional[Sequence[str]] = None,
    dimensions: Optional[Dict[str, str]] = None,
    engine: Callable[..., xr.DataArray] = apply_pixelwise,
    return_diagnostics: bool = False,
    verbose: Optional[bool] = None,
    quiet: Optional[bool] = None,
    **engine_kwargs,
) -> Union[xr.DataArray, xr.Dataset]:
    """
    Clean the history period of a raster time series.

    Parameters
    ----------
    cube : xarray.DataArray
        Raster time series, e.g. (time, lat, lon). Numpy or Dask backed.
        Integer data is promoted to floating point so removed values can be
        stored as NaN.
    monitoring_period : (int, int) or date, optional
        Start of the monitoring period as ``(year, day_of_year)``. Only layers
        acquired before this date are filtered. If None, every layer is filtered.
    threshold : float or 'IQR'
        Static threshold, or ``'IQR'`` to derive a threshold per pixel from
        the median and interquartile range of its time series.
    dates : sequence, optional
        Acquisition dates, one per layer. If None, dates are taken from a
        datetime time coordinate or parsed from Landsat scene IDs.
    is_max : bool, default=False
        If True, values above the threshold are removed; otherwise values
        below it are removed.
    scene_ids : sequence of str, optional
        Landsat scene IDs, one per layer, used when no dates are available.
    dimensions : dict, default={"time": "time"}
        Mapping of dimensions to names in the data. Only ``"time"`` is used.
    engine : callable, default=apply_pixelwise
        Pixel-wise apply engine with signature
        ``engine(cube, func, time_dim=..., **engine_kwargs)``.
    return_diagnostics : bool, default=False
        Return a Dataset with the cleaned cube (``cleaned``), the per-pixel
        threshold (``threshold``) and the number of removed values per pixel
        (``n_removed``) instead of the bare cube.
    verbose : bool, optional
        Enable verbose logging for this call.
    quiet : bool, optional
        Enable quiet logging for this call. Takes precedence over verbose.
    **engine_kwargs
        Passed to ``engine`` untouched (e.g. ``dask_chunks``, ``n_cores``,
        ``output_path``, ``compute`` for the default engine).

    Returns
    -------
    xarray.DataArray or xarray.Dataset
        Cube of identical shape, coordinates and attributes with filtered
        history values set to NaN, or a diagnostics Dataset.

    Raises
    ------
    MissingDateSourceError
        If no acquisition dates can be resolved
    DateLengthMismatchError
        If ``dates`` or ``scene_ids`` do not have one entry per layer
    ConfigurationError
        If ``threshold`` or ``monitoring_period`` is invalid

    Examples
    --------
    >>> import pandas as pd
    >>> import xarray as xr
    >>> import histClean
    >>>
    >>> dates = pd.to_datetime(["2000-01-01", "2000-06-01", "2001-01-01", "2001-06-01"])
    >>> cube = xr.DataArray([[[5.0]], [[15.0]], [[20.0]], [[3.0]]],
    ...                     dims=("time", "lat", "lon"), coords={"time": dates})
    >>> histClean.clean_history(cube, monitoring_period=(2001, 1), threshold=10).values.ravel()
    array([nan, 15., 20.,  3.])

    Per-pixel IQR threshold removing cloud-contaminated NDVI dips:

    >>> ndvi = xr.open_zarr("ndvi.zarr", chunks={}).ndvi
    >>> cleaned = histClean.clean_history(ndvi, monitoring_period=(2005, 1), threshold="IQR",
    ...                                   output_path="ndvi_clean.zarr")
    """
    if verbose is not None or quiet is not None:
        configure_logging(verbose=verbose, quiet=quiet)

    if dimensions is None:
        dimensions = {"time": "time"}
    time_dim = dimensions.get("time", "time")

    _validate_cube(cube, time_dim)
    threshold = _validate_threshold(threshold)

    layer_dates = resolve_dates(cube, dates=dates, scene_ids=scene_ids, time_dim=time_dim)
    cutoff = monitoring_cutoff(monitoring_period)

    logger.info(
        f"Cleaning history period - threshold={threshold}, is_max={is_max}, "
        f"cutoff={cutoff.date() if cutoff is not None else 'none'}"
    )
    log_dask_info(logger, cube, "Input cube")

    predicate = build_history_predicate(layer_dates, cutoff, threshold, is_max)

    if not np.issubdtype(cube.dtype, np.floating):
        logger.debug(f"Promoting {cube.dtype} cube to floating point")
        cube = cube.astype(np.result_type(cube.dtype, np.float32))

    with log_timing(logger, "History filtering", log_memory=True):
        cleaned = engine(cube, predicate, time_dim=time_dim, **engine_kwargs)

    if not return_diagnostics:
        return cleaned

    n_removed = (cube.notnull() & cleaned.isnull()).sum(dim=time_dim).rename("n_removed")
    return xr.Dataset(
        {
            "cleaned": cleaned,
            "threshold": history_thresholds(cube, threshold, is_max, time_dim),
            "n_removed": n_removed,
        },
        attrs={
            "threshold": str(threshold),
            "is_max": int(bool(is_max)),
            "monitoring_start": str(cutoff.date()) if cutoff is not None else "none",
        },
    )
