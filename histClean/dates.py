"""
histClean-Dates: Acquisition Date Resolution
============================================

Resolves one acquisition date per layer of a raster time series. Date sources
are tried in order, each either yielding a complete date vector or declaring
itself not applicable:

1. an explicit ``dates`` sequence
2. a datetime-valued time coordinate on the cube
3. Landsat scene identifiers (``scene_ids`` argument, a ``scene_id``
   coordinate, or string labels on the time coordinate)

Landsat identifiers in both the legacy scene ID form
(``LT50090452000100CUB00``) and the Collection product ID form
(``LC08_L1TP_009045_20130409_20170310_01_T1``) are understood.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import xarray as xr

from .exceptions import DateLengthMismatchError, MissingDateSourceError, create_data_validation_error
from .logging_config import get_logger

logger = get_logger(__name__)

# Legacy scene ID: sensor, mission, WRS path/row, year, day of year, ground station, version
_LEGACY_SCENE_ID = re.compile(
    r"L(?P<sensor>[CEOTM])(?P<mission>\d)(?P<path>\d{3})(?P<row>\d{3})"
    r"(?P<year>\d{4})(?P<doy>\d{3})(?P<station>[A-Z]{3})(?P<version>\d{2})"
)

# Collection product ID: LXSS_LLLL_PPPRRR_YYYYMMDD_yyyymmdd_CC_TX
_COLLECTION_PRODUCT_ID = re.compile(
    r"L(?P<sensor>[CEOTM])(?P<mission>\d{2})_(?P<level>[A-Z0-9]{4})_(?P<path>\d{3})(?P<row>\d{3})"
    r"_(?P<acquired>\d{8})_(?P<processed>\d{8})_(?P<collection>\d{2})_(?P<tier>[A-Z0-9]{2})"
)

# Landsat 7 scan line corrector failure
SLC_OFF_DATE = pd.Timestamp("2003-05-31")

SENSOR_NAMES = {
    "M": "MSS",
    "T": "TM",
    "C": "OLI",
    "O": "OLI",
}

SCENE_ID_COORD = "scene_id"


# ============================
# Scene Identifier Parsing
# ============================


def _parse_scene_id(scene_id: Any) -> Optional[Dict[str, Any]]:
    """Parse a single Landsat identifier, returning ``None`` if it is not one."""
    if not isinstance(scene_id, str):
        return None

    match = _COLLECTION_PRODUCT_ID.search(scene_id)
    if match is not None:
        try:
            date = pd.to_datetime(match["acquired"], format="%Y%m%d")
        except ValueError:
            return None
        return _scene_record(match, date)

    match = _LEGACY_SCENE_ID.search(scene_id)
    if match is not None:
        year, doy = int(match["year"]), int(match["doy"])
        if not 1 <= doy <= (366 if pd.Timestamp(year=year, month=1, day=1).is_leap_year else 365):
            return None
        date = pd.Timestamp(year=year, month=1, day=1) + pd.Timedelta(days=doy - 1)
        return _scene_record(match, date)

    return None


def _scene_record(match: "re.Match", date: pd.Timestamp) -> Dict[str, Any]:
    """Build a scene-info record from a regex match and its acquisition date."""
    sensor_code = match["sensor"]
    if sensor_code == "E":
        sensor = "ETM+ SLC-on" if date <= SLC_OFF_DATE else "ETM+ SLC-off"
    else:
        sensor = SENSOR_NAMES[sensor_code]

    return {
        "sensor": sensor,
        "mission": int(match["mission"]),
        "path": int(match["path"]),
        "row": int(match["row"]),
        "date": date,
    }


def is_landsat_scene_id(scene_ids: Union[str, Iterable[str]]) -> bool:
    """Check whether every element is a parsable Landsat scene identifier."""
    if isinstance(scene_ids, str):
        scene_ids = [scene_ids]

    scene_ids = list(scene_ids)
    if not scene_ids:
        return False

    return all(_parse_scene_id(s) is not None for s in scene_ids)


def get_scene_info(scene_ids: Union[str, Iterable[str]]) -> pd.DataFrame:
    """
    Extract sensor, WRS path/row and acquisition date from Landsat identifiers.

    Parameters
    ----------
    scene_ids : str or iterable of str
        Landsat scene IDs or Collection product IDs. Identifiers may be
        embedded in longer layer names (e.g. ``"ndvi.LT50090452000100CUB00"``).

    Returns
    -------
    pandas.DataFrame
        One row per identifier, indexed by identifier, with columns
        ``sensor``, ``mission``, ``path``, ``row`` and ``date``.

    Raises
    ------
    DataValidationError
        If any identifier cannot be parsed.

    Examples
    --------
    >>> info = get_scene_info(["LT50090452000100CUB00", "LE70090452005123EDC00"])
    >>> info.sensor.tolist()
    ['TM', 'ETM+ SLC-off']
    """
    if isinstance(scene_ids, str):
        scene_ids = [scene_ids]
    scene_ids = list(scene_ids)

    records = []
    invalid = []
    for scene_id in scene_ids:
        record = _parse_scene_id(scene_id)
        if record is None:
            invalid.append(scene_id)
        else:
            records.append(record)

    if invalid:
        raise create_data_validation_error(
            f"Could not parse {len(invalid)} Landsat scene identifier(s)",
            details=f"First invalid identifier: {invalid[0]!r}",
            suggestions=[
                "Only Landsat scene IDs and Collection product IDs are supported",
                "Supply acquisition dates explicitly for other sensors",
            ],
            data_info={"n_invalid": len(invalid), "n_total": len(scene_ids)},
        )

    info = pd.DataFrame.from_records(records, columns=["sensor", "mission", "path", "row", "date"])
    info.index = pd.Index(scene_ids, name=SCENE_ID_COORD)
    return info


# ============================
# Date Resolver Strategies
# ============================


def _check_length(values: Sequence, n_layers: int, name: str) -> None:
    if len(values) != n_layers:
        raise DateLengthMismatchError(
            f"{name} should be of same length as the number of layers",
            suggestions=[f"Supply exactly one entry in {name} per layer, in layer order"],
            context={f"n_{name}": len(values), "n_layers": n_layers},
        )


def _as_naive(index: pd.DatetimeIndex) -> pd.DatetimeIndex:
    """Convert timezone-aware dates to naive UTC so they compare with the cutoff."""
    if index.tz is not None:
        return index.tz_convert(None)
    return index


def _dates_from_argument(cube: xr.DataArray, time_dim: str, dates=None, **_) -> Optional[pd.DatetimeIndex]:
    """Explicit date vector supplied by the caller."""
    if dates is None:
        return None

    dates = list(dates) if not isinstance(dates, (pd.Index, np.ndarray)) else dates
    _check_length(dates, cube.sizes[time_dim], "dates")
    return _as_naive(pd.DatetimeIndex(pd.to_datetime(dates)))


def _dates_from_time_coordinate(cube: xr.DataArray, time_dim: str, **_) -> Optional[pd.DatetimeIndex]:
    """Datetime (or cftime) coordinate along the time dimension."""
    if time_dim not in cube.coords:
        return None

    index = cube.indexes.get(time_dim)
    if isinstance(index, xr.CFTimeIndex):
        return index.to_datetimeindex()

    if isinstance(index, pd.DatetimeIndex):
        return _as_naive(index)

    if np.issubdtype(cube[time_dim].dtype, np.datetime64):
        return pd.DatetimeIndex(cube[time_dim].values)

    return None


def _dates_from_scene_ids(cube: xr.DataArray, time_dim: str, scene_ids=None, **_) -> Optional[pd.DatetimeIndex]:
    """Landsat identifiers from the argument, a scene_id coordinate or time labels."""
    if scene_ids is not None:
        scene_ids = list(scene_ids)
        _check_length(scene_ids, cube.sizes[time_dim], "scene_ids")
        # Explicit identifiers must all parse
        return pd.DatetimeIndex(get_scene_info(scene_ids)["date"].values)
    elif SCENE_ID_COORD in cube.coords and cube[SCENE_ID_COORD].dims == (time_dim,):
        scene_ids = [str(s) for s in cube[SCENE_ID_COORD].values]
    elif time_dim in cube.coords and cube[time_dim].dtype.kind in "OUS":
        scene_ids = [str(s) for s in cube[time_dim].values]
    else:
        return None

    if not is_landsat_scene_id(scene_ids):
        logger.debug("Layer identifiers are not Landsat scene IDs - skipping")
        return None

    return pd.DatetimeIndex(get_scene_info(scene_ids)["date"].values)


# Tried in order; the first non-None result wins
DATE_RESOLVERS: List[Callable[..., Optional[pd.DatetimeIndex]]] = [
    _dates_from_argument,
    _dates_from_time_coordinate,
    _dates_from_scene_ids,
]


def resolve_dates(
    cube: xr.DataArray,
    dates: Optional[Sequence] = None,
    scene_ids: Optional[Sequence[str]] = None,
    time_dim: str = "time",
) -> pd.DatetimeIndex:
    """
    Determine one acquisition date per layer of ``cube``.

    Parameters
    ----------
    cube : xarray.DataArray
        Raster time series with a ``time_dim`` dimension
    dates : sequence, optional
        Explicit acquisition dates, one per layer in layer order
    scene_ids : sequence of str, optional
        Landsat identifiers, one per layer in layer order
    time_dim : str, default='time'
        Name of the layer (time) dimension

    Returns
    -------
    pandas.DatetimeIndex
        Dates aligned to the layers of ``cube``

    Raises
    ------
    DateLengthMismatchError
        If ``dates`` or ``scene_ids`` do not have one entry per layer
    MissingDateSourceError
        If no date source yields a complete date vector
    """
    for resolver in DATE_RESOLVERS:
        resolved = resolver(cube, time_dim, dates=dates, scene_ids=scene_ids)
        if resolved is not None:
            logger.debug(f"Resolved {len(resolved)} layer dates via {resolver.__name__}")
            return resolved

    raise MissingDateSourceError(
        "A date vector must be supplied, either via the dates argument, "
        f"a datetime '{time_dim}' coordinate or Landsat scene IDs as layer names",
        suggestions=[
            "Pass dates=[...] with one date per layer",
            f"Assign a datetime coordinate: cube.assign_coords({time_dim}=dates)",
            "Pass scene_ids=[...] with Landsat scene identifiers",
        ],
        context={"n_layers": cube.sizes[time_dim]},
    )
