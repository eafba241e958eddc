"""
histClean Helper: Pixel-wise Apply Engine and Dask Utilities
------------------------------------------------------------

This module provides the default engine used to apply a per-pixel function
along the time dimension of a raster cube, plus utilities for writing results
to Zarr and configuring Dask.
"""

import logging
from pathlib import Path
from tempfile import TemporaryDirectory, gettempdir
from typing import Any, Callable, Dict, Optional, Union

import dask
import numpy as np
import xarray as xr
from dask.base import is_dask_collection

from .exceptions import ConfigurationError, create_processing_error
from .logging_config import get_logger, log_dask_info, log_timing

logger = get_logger(__name__)


DEFAULT_DASK_CONFIG = {
    "array.slicing.split_large_chunks": False,
    "array.chunk-size": "64MiB",
}

DEFAULT_OUTPUT_NAME = "cleaned"


def configure_dask(
    scratch_dir: Optional[Union[str, Path]] = None,
    config: Optional[Dict[str, Any]] = None,
) -> TemporaryDirectory:
    """
    Configure Dask with default settings for pixel-wise raster processing.

    Parameters
    ----------
    scratch_dir : str or Path, optional
        Directory to use for temporary files. Defaults to the system temp dir.
    config : dict, optional
        Additional Dask configuration settings to apply.

    Returns
    -------
    TemporaryDirectory
        Temporary directory object that should be kept alive while Dask is in use.
    """
    logger.info("Configuring Dask")

    scratch_path = Path(scratch_dir) if scratch_dir else Path(gettempdir())
    if not scratch_path.exists():
        logger.debug(f"Creating scratch directory: {scratch_path}")
        scratch_path.mkdir(parents=True, exist_ok=True)

    temp_dir = TemporaryDirectory(dir=scratch_path)
    logger.info(f"Dask temporary directory: {temp_dir.name}")

    dask.config.set(temporary_directory=temp_dir.name)

    for key, value in DEFAULT_DASK_CONFIG.items():
        dask.config.set({key: value})
        logger.debug(f"Set Dask config: {key} = {value}")

    if config:
        logger.debug(f"Applying additional Dask configuration: {config}")
        dask.config.set(config)

    return temp_dir


def _regular_chunks(data: xr.DataArray) -> xr.DataArray:
    """Rechunk any dimension whose Dask chunks Zarr cannot store."""
    if data.chunks is None:
        return data

    new_chunks = {}
    for dim, dim_chunks in zip(data.dims, data.chunks):
        # Zarr needs equal chunks, with only the final one allowed to be smaller
        if len(dim_chunks) > 1 and (len(set(dim_chunks[:-1])) > 1 or dim_chunks[-1] > dim_chunks[0]):
            new_chunks[dim] = dim_chunks[0]
            logger.debug(f"Irregular {dim} chunks detected: {dim_chunks}")

    if new_chunks:
        data = data.chunk(new_chunks)
        logger.debug(f"Adjusted chunks for Zarr: {new_chunks}")
    return data


def write_to_zarr(data: xr.DataArray, output_path: Union[str, Path]) -> xr.DataArray:
    """
    Write a DataArray to a Zarr store and lazily reopen it.

    Parameters
    ----------
    data : xarray.DataArray
        Array to write; Dask-backed arrays are computed while writing
    output_path : str or Path
        Destination store, overwritten if it exists

    Returns
    -------
    xarray.DataArray
        The written array, reopened from disk (Dask-backed)

    Raises
    ------
    ProcessingError
        If the store cannot be written
    """
    output_path = Path(output_path)
    name = data.name if data.name is not None else DEFAULT_OUTPUT_NAME

    ds = _regular_chunks(data).to_dataset(name=name)
    for var in ds.variables.values():
        var.encoding = {}

    try:
        with log_timing(logger, f"Writing '{name}' to Zarr", logging.DEBUG):
            ds.to_zarr(output_path, mode="w")
    except (ValueError, OSError) as e:
        raise create_processing_error(
            f"Failed to write output to {output_path}",
            details=str(e),
            suggestions=["Check that the output directory is writable", "Check available disk space"],
            computation_info={"output_path": str(output_path), "shape": data.shape},
        ) from e

    logger.info(f"Output written to {output_path}")
    reloaded = xr.open_zarr(output_path, chunks={})[name]
    if data.name is None:
        reloaded.name = None
    return reloaded


def apply_pixelwise(
    cube: xr.DataArray,
    func: Callable[[np.ndarray], np.ndarray],
    time_dim: str = "time",
    dask_chunks: Optional[Dict[str, int]] = None,
    n_cores: Optional[int] = None,
    output_path: Optional[Union[str, Path]] = None,
    compute: bool = False,
) -> xr.DataArray:
    """
    Apply ``func`` to the full time vector of every pixel of ``cube``.

    ``func`` receives a 1D array (one pixel, all layers) and must return an
    array of the same length. Pixels may be visited in any order and, for
    Dask-backed input, concurrently.

    Parameters
    ----------
    cube : xarray.DataArray
        Raster time series
    func : callable
        Pixel function ``values -> values``
    time_dim : str, default='time'
        Name of the layer (time) dimension
    dask_chunks : dict, optional
        Chunking applied before processing. The time dimension is always
        merged into a single chunk.
    n_cores : int, optional
        Compute eagerly on the threaded Dask scheduler with this many workers.
        Numpy-backed input is chunked automatically in space.
    output_path : str or Path, optional
        Write the result to this Zarr store and return the reopened array
    compute : bool, default=False
        Load the result into memory before returning

    Returns
    -------
    xarray.DataArray
        Array with the same dimensions, coordinates and attributes as ``cube``
    """
    if n_cores is not None and n_cores < 1:
        raise ConfigurationError(
            "n_cores must be a positive integer",
            context={"n_cores": n_cores},
        )

    if dask_chunks is not None:
        cube = cube.chunk(dask_chunks)
    elif n_cores is not None and not is_dask_collection(cube.data):
        cube = cube.chunk({dim: "auto" if dim != time_dim else -1 for dim in cube.dims})

    if is_dask_collection(cube.data):
        cube = cube.chunk({time_dim: -1})

    log_dask_info(logger, cube, "Pixel-wise apply input")

    result = xr.apply_ufunc(
        func,
        cube,
        input_core_dims=[[time_dim]],
        output_core_dims=[[time_dim]],
        vectorize=True,
        dask="parallelized",
        output_dtypes=[cube.dtype],
        keep_attrs=True,
    ).transpose(*cube.dims)

    scheduler_config = {"scheduler": "threads", "num_workers": n_cores} if n_cores is not None else {}
    with dask.config.set(scheduler_config):
        if output_path is not None:
            return write_to_zarr(result, output_path)
        if compute or n_cores is not None:
            with log_timing(logger, "Pixel-wise apply", logging.DEBUG):
                result = result.compute()

    return result
