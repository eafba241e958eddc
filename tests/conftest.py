"""Test configuration and fixtures for histClean package."""

import os

import dask
import numpy as np
import pandas as pd
import pytest
import xarray as xr


def pytest_configure(config):
    """Start the package logger in quiet mode unless a test reconfigures it."""
    os.environ.setdefault("HISTCLEAN_QUIET", "true")


@pytest.fixture(scope="session", autouse=True)
def configure_dask():
    """Use the synchronous scheduler for small deterministic computations."""
    with dask.config.set({"scheduler": "synchronous", "array.chunk-size": "32MB"}):
        yield


@pytest.fixture
def example_dates():
    """Four acquisitions straddling a 2001-01-01 monitoring start."""
    return pd.to_datetime(["2000-01-01", "2000-06-01", "2001-01-01", "2001-06-01"])


@pytest.fixture
def example_cube(example_dates):
    """Single-pixel cube with values [5, 15, 20, 3]."""
    values = np.array([5.0, 15.0, 20.0, 3.0]).reshape(4, 1, 1)
    return xr.DataArray(
        values,
        coords={"time": example_dates, "lat": [0.0], "lon": [0.0]},
        dims=["time", "lat", "lon"],
        name="ndvi",
        attrs={"units": "1"},
    )


@pytest.fixture
def random_cube():
    """Numpy-backed (time, lat, lon) cube with scattered NaNs spanning 2000-2003."""
    rng = np.random.default_rng(42)
    time = pd.date_range("2000-01-01", periods=24, freq="2MS")
    lat = np.linspace(-1, 1, 4)
    lon = np.linspace(10, 12, 5)

    data = rng.normal(0.6, 0.15, size=(len(time), len(lat), len(lon)))
    data[rng.random(data.shape) < 0.1] = np.nan

    return xr.DataArray(
        data,
        coords={"time": time, "lat": lat, "lon": lon},
        dims=["time", "lat", "lon"],
        name="ndvi",
    )


@pytest.fixture
def dask_cube(random_cube):
    """Dask-backed version of random_cube."""
    return random_cube.chunk({"time": 6, "lat": 2, "lon": 5})
