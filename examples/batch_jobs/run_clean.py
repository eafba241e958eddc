#!/usr/bin/env python
"""
Landsat NDVI Time Series: Cleaning the History Period with histClean

Removes cloud- and shadow-contaminated NDVI dips from the history period of a
Landsat stack before running change monitoring from 2009 onwards.

Layers are expected to carry a datetime 'time' coordinate or Landsat scene IDs
as layer names.
"""

import os
from pathlib import Path

import xarray as xr

import histClean
import histClean.helper as hpc


def main():
    """Run histClean on a Zarr NDVI stack using the threaded Dask scheduler."""
    n_cores = int(os.getenv("HISTCLEAN_N_CORES", "8"))
    data_dir = Path(os.getenv("HISTCLEAN_DATA_DIR", "."))

    temp_dir = hpc.configure_dask(scratch_dir=data_dir / "tmp")

    print("Loading data...")
    ndvi = xr.open_zarr(str(data_dir / "ndvi_stack.zarr"), chunks={"time": -1, "y": 512, "x": 512}).ndvi
    print(f"Data loaded: {ndvi}")

    print("Cleaning history period...")
    diagnostics = histClean.clean_history(
        ndvi,
        monitoring_period=(2009, 1),  # Monitoring starts on day 1 of 2009 -- only earlier layers are filtered
        threshold="IQR",  # Per-pixel threshold: median - IQR of each pixel's time series
        is_max=False,  # Remove values *below* the threshold (cloud/shadow dips in NDVI)
        dimensions={"time": "time", "x": "x", "y": "y"},
        return_diagnostics=True,
        n_cores=n_cores,  # Passed through to the apply engine
        output_path=data_dir / "ndvi_stack_clean.zarr",
    )

    removed = int(diagnostics.n_removed.sum())
    print(f"Removed {removed} history observations")

    diagnostics[["threshold", "n_removed"]].to_zarr(data_dir / "ndvi_clean_diagnostics.zarr", mode="w")
    temp_dir.cleanup()
    print("Processing complete!")


if __name__ == "__main__":
    main()
